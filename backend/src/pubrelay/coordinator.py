"""Send/receive coordination for a subscribing socket.

Once a connection is subscribed two tasks share its socket: the forward loop
drains the hub and writes matching payloads, the watchdog reads the socket so a
peer close is noticed even while nothing is being forwarded. Whichever ends
first cancels the other, and the hub subscription is always released.

Both loops run inside one anyio task group, so cancellation from the server
(a Starlette cancel scope) and cancellation between the loops share a scope.
"""

import logging
from typing import Optional

import anyio
from fastapi import WebSocket

from pubrelay.config import LagPolicy
from pubrelay.models import HubClosed, Lagged, Subscription
from pubrelay.schemas import SubscriptionFilter
from pubrelay.utilities import CLOSE_INVALID, INVALID_MESSAGE, close_socket

logger = logging.getLogger(__name__)


async def forward_loop(
    websocket: WebSocket,
    subscription: Subscription,
    sub_filter: SubscriptionFilter,
    lag_policy: LagPolicy = LagPolicy.SKIP,
    client: str = "unknown",
) -> int:
    """Write every matching envelope's data to the socket. Returns how many were sent."""
    count = 0
    while True:
        try:
            envelope = await subscription.recv()
        except Lagged as e:
            if lag_policy is LagPolicy.DISCONNECT:
                logger.info("client %s lagged by %d messages, disconnecting", client, e.skipped)
                await close_socket(websocket, CLOSE_INVALID, str(e))
                return count
            logger.warning("client %s lagged, %d messages dropped", client, e.skipped)
            continue
        except HubClosed:
            logger.info("hub closed, stopping delivery to %s", client)
            return count

        if not sub_filter.matches(envelope):
            continue
        try:
            await websocket.send_text(envelope.message.data)
        except Exception as e:
            # broken pipe / closed
            logger.info("client %s abruptly disconnected: %s", client, e)
            return count
        count += 1


async def watchdog_loop(websocket: WebSocket, client: str = "unknown") -> None:
    """Return once the peer goes away or sends anything at all."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        logger.info(">>> %s sent close with code %s", client, message.get("code"))
        return
    # a subscriber has nothing further to say
    logger.info(">>> %s sent a frame after subscribing", client)
    await close_socket(websocket, CLOSE_INVALID, INVALID_MESSAGE)


async def coordinate(
    websocket: WebSocket,
    subscription: Subscription,
    sub_filter: SubscriptionFilter,
    lag_policy: LagPolicy = LagPolicy.SKIP,
    client: str = "unknown",
) -> None:
    sent: Optional[int] = None

    async def run_forward(scope: anyio.CancelScope) -> None:
        nonlocal sent
        try:
            sent = await forward_loop(websocket, subscription, sub_filter, lag_policy, client)
        except Exception as e:
            logger.error("Error sending messages to %s: %r", client, e)
        finally:
            scope.cancel()

    async def run_watchdog(scope: anyio.CancelScope) -> None:
        try:
            await watchdog_loop(websocket, client)
        except Exception as e:
            logger.info("Watchdog for %s ended with %r", client, e)
        finally:
            scope.cancel()

    try:
        # whichever loop finishes first cancels the group, and with it the other
        async with anyio.create_task_group() as tg:
            tg.start_soon(run_forward, tg.cancel_scope)
            tg.start_soon(run_watchdog, tg.cancel_scope)
    finally:
        subscription.close()

    if sent is not None:
        logger.info("%d messages sent to %s", sent, client)
