"""Per-connection protocol state machine.

A connection starts Pending and is driven one text frame at a time:

    Pending --pub auth <password>--> Authenticated --pub name <id>--> Publishing
    Pending --{"publisher": .., "topic": ..}--> Subscribing

Publishing and Subscribing are final roles (short of Terminated). Any frame the
current role does not accept terminates the connection by raising
ProtocolViolation; the caller closes the socket with its code and reason.
"""

import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from pubrelay.auth import AuthOutcome, Authenticator, Credentials
from pubrelay.models.exceptions import ProtocolViolation
from pubrelay.models.hub import Hub
from pubrelay.schemas import Envelope, PublishedMessage, SubscriptionFilter
from pubrelay.utilities import (
    AUTH_UNAVAILABLE,
    CLOSE_INTERNAL_ERROR,
    INVALID_COMMAND,
    INVALID_MESSAGE,
    INVALID_PASSWORD,
    MALFORMED_COMMAND,
    describe_validation_error,
)

logger = logging.getLogger(__name__)


# ------------ Roles ------------
@dataclass(frozen=True)
class Pending:
    pass


@dataclass(frozen=True)
class Authenticated:
    pass


@dataclass(frozen=True)
class Publishing:
    name: str


@dataclass(frozen=True)
class Subscribing:
    filter: SubscriptionFilter


@dataclass(frozen=True)
class Terminated:
    reason: Optional[str] = None


ConnectionRole = Union[Pending, Authenticated, Publishing, Subscribing, Terminated]

# order of the roles; a connection never moves to a lower rank
_RANK = {Pending: 0, Authenticated: 1, Publishing: 2, Subscribing: 2, Terminated: 3}


# ------------ Command grammar ------------
AUTH_COMMAND = re.compile(r"pub auth .+")
NAME_COMMAND = re.compile(r"pub name .+")


def command_argument(text: str) -> Optional[str]:
    """The single argument of a ``pub <verb> <arg>`` line, or None if there isn't exactly one."""
    parts = text.split()
    if len(parts) != 3:
        return None
    return parts[2]


def parse_subscription(text: str) -> Optional[SubscriptionFilter]:
    try:
        return SubscriptionFilter.model_validate_json(text)
    except ValidationError:
        return None


def publish_text(hub: Hub, name: str, text: str) -> Envelope:
    """Validate one publisher frame and push it into the hub.

    The number of subscriptions that saw it is only logged; publishing is
    fire-and-forget for the publisher.
    """
    try:
        message = PublishedMessage.model_validate_json(text)
    except ValidationError as e:
        raise ProtocolViolation(f"Invalid JSON: {describe_validation_error(e)}") from e
    envelope = Envelope(publisher_name=name, message=message)
    receivers = hub.publish(envelope)
    logger.debug("%s published to %r, %d receivers", name, message.topic, receivers)
    return envelope


Handler = Callable[["Connection", str], Awaitable[None]]


class Connection:
    ''' Protocol state for one socket.'''

    def __init__(self, hub: Hub, authenticator: Authenticator, client: str = "unknown"):
        self.hub = hub
        self.authenticator = authenticator
        self.client = client
        self._role: ConnectionRole = Pending()

    @property
    def role(self) -> ConnectionRole:
        return self._role

    def _transition(self, role: ConnectionRole) -> None:
        if _RANK[type(role)] <= _RANK[type(self._role)]:
            raise RuntimeError(f"illegal transition {self._role!r} -> {role!r}")
        logger.info("%s: %s -> %s", self.client, type(self._role).__name__, type(role).__name__)
        self._role = role

    def violate(self, reason: str, code: Optional[int] = None) -> ProtocolViolation:
        """Terminate the connection and build the exception describing why."""
        if not isinstance(self._role, Terminated):
            self._transition(Terminated(reason))
        if code is None:
            return ProtocolViolation(reason)
        return ProtocolViolation(reason, code)

    async def handle_text(self, text: str) -> None:
        role = self._role
        if isinstance(role, Publishing):
            try:
                publish_text(self.hub, role.name, text)
            except ProtocolViolation as e:
                raise self.violate(e.reason) from e
            return

        table = _DISPATCH.get(type(role))
        if table is None:
            # Subscribing and Terminated classify nothing
            raise self.violate(INVALID_MESSAGE)
        # every table ends with a catch-all, so some handler always matches
        handler = next(handler for predicate, handler in table if predicate(text))
        await handler(self, text)

    # ------------ Handlers ------------
    async def _on_auth(self, text: str) -> None:
        password = command_argument(text)
        if password is None:
            raise self.violate(MALFORMED_COMMAND)

        outcome = await self.authenticator.authenticate(Credentials(secret=password))
        if outcome is AuthOutcome.ACCEPT:
            self._transition(Authenticated())
        elif outcome is AuthOutcome.REJECT:
            raise self.violate(INVALID_PASSWORD)
        else:
            raise self.violate(AUTH_UNAVAILABLE, CLOSE_INTERNAL_ERROR)

    async def _on_subscribe_or_invalid(self, text: str) -> None:
        sub_filter = parse_subscription(text)
        if sub_filter is None:
            raise self.violate(INVALID_MESSAGE)
        self._transition(Subscribing(sub_filter))

    async def _on_name(self, text: str) -> None:
        name = command_argument(text)
        if name is None:
            raise self.violate(MALFORMED_COMMAND)
        self._transition(Publishing(name))

    async def _on_invalid_command(self, text: str) -> None:
        raise self.violate(INVALID_COMMAND)


def _always(text: str) -> bool:
    return True


# first matching predicate wins; each table ends with a catch-all
_DISPATCH: Dict[type, List[Tuple[Callable[[str], object], Handler]]] = {
    Pending: [
        (AUTH_COMMAND.fullmatch, Connection._on_auth),
        (_always, Connection._on_subscribe_or_invalid),
    ],
    Authenticated: [
        (NAME_COMMAND.fullmatch, Connection._on_name),
        (_always, Connection._on_invalid_command),
    ],
}
