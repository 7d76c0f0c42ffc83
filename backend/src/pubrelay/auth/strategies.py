"""Pluggable publisher authentication.

The in-band ``pub auth`` command, HTTP basic credentials and HTTP bearer tokens
are all checked through the same ``authenticate(credentials)`` call, so the
relay has one Authenticated transition no matter which front-end was used.
"""

import logging
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

import httpx

from pubrelay.utilities import AUTH_TIMEOUT

logger = logging.getLogger(__name__)


class AuthOutcome(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    # the credentials could not be checked at all
    ERROR = "error"


@dataclass(frozen=True)
class Credentials:
    secret: str
    username: Optional[str] = None


class Authenticator(Protocol):
    async def authenticate(self, credentials: Credentials) -> AuthOutcome:
        ...


class SharedSecretAuthenticator:
    ''' Compares the supplied secret with the configured password.'''

    def __init__(self, password: str):
        self._password = password

    async def authenticate(self, credentials: Credentials) -> AuthOutcome:
        if secrets.compare_digest(credentials.secret.encode(), self._password.encode()):
            return AuthOutcome.ACCEPT
        return AuthOutcome.REJECT


class TokenOracleAuthenticator:
    ''' Asks an external URL whether a bearer token is valid.

    Any 2xx answer accepts, any other status rejects. The body is never read.
    Transport failures map to AuthOutcome.ERROR so callers can tell
    "bad credentials" apart from "could not check credentials".
    '''

    def __init__(
        self,
        url: str,
        timeout: float = AUTH_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._client = client

    async def authenticate(self, credentials: Credentials) -> AuthOutcome:
        headers = {"Authorization": f"Bearer {credentials.secret}"}
        try:
            if self._client is not None:
                response = await self._client.get(self.url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.url, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("Token validation against %s failed: %s", self.url, e)
            return AuthOutcome.ERROR

        if response.is_success:
            return AuthOutcome.ACCEPT
        logger.info("Token rejected by %s with status %d", self.url, response.status_code)
        return AuthOutcome.REJECT
