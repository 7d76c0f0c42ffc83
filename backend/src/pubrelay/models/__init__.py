from .exceptions import ProtocolViolation, Lagged, HubClosed
from .hub import Hub, Subscription
from .connection import (
    Connection,
    ConnectionRole,
    Pending,
    Authenticated,
    Publishing,
    Subscribing,
    Terminated,
    publish_text,
)
