"""Process configuration.

Read from the environment (and an optional ``.env`` file) once at startup.
``PASSWORD`` has no default: constructing ``Settings`` without it raises a
``pydantic.ValidationError`` and the relay refuses to start.
"""

from enum import Enum
from ipaddress import IPv4Address
from typing import Optional

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pubrelay.auth import Authenticator, SharedSecretAuthenticator, TokenOracleAuthenticator
from pubrelay.utilities import AUTH_TIMEOUT, HUB_CAPACITY


class LagPolicy(str, Enum):
    """What a subscriber's forward loop does after losing envelopes."""

    SKIP = "skip"
    DISCONNECT = "disconnect"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    password: str = Field(min_length=1, description="Shared secret for publishers")
    ip: IPv4Address = Field(IPv4Address("127.0.0.1"), description="Listen address")
    port: int = Field(3000, ge=0, le=65535, description="Listen port")

    auth_url: Optional[AnyHttpUrl] = Field(
        None, description="External bearer-token validation URL"
    )
    auth_timeout: float = Field(AUTH_TIMEOUT, gt=0)

    show_index_page: bool = Field(True, description="Redirect / instead of answering 404")
    redirect_url: str = "/docs"

    hub_capacity: int = Field(HUB_CAPACITY, ge=1)
    lag_policy: LagPolicy = LagPolicy.SKIP

    log_level: str = "INFO"

    def password_authenticator(self) -> Authenticator:
        """Strategy behind the in-band ``pub auth`` command and HTTP basic auth."""
        return SharedSecretAuthenticator(self.password)

    def token_authenticator(self) -> Optional[Authenticator]:
        """Strategy behind HTTP bearer auth; None when ``AUTH_URL`` is unset."""
        if self.auth_url is None:
            return None
        return TokenOracleAuthenticator(str(self.auth_url), timeout=self.auth_timeout)
