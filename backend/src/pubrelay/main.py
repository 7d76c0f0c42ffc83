import logging
from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, WebSocket
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import PlainTextResponse, RedirectResponse
from fastapi.security import (
    HTTPAuthorizationCredentials,
    HTTPBasic,
    HTTPBasicCredentials,
    HTTPBearer,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

from pubrelay.auth import AuthOutcome, Credentials
from pubrelay.config import LagPolicy, Settings
from pubrelay.coordinator import coordinate
from pubrelay.models import Connection, Hub, ProtocolViolation, Subscribing
from pubrelay.schemas import Envelope, HubStats, PublishAccepted, PublishedMessage
from pubrelay.utilities import (
    AUTH_UNAVAILABLE,
    CLOSE_INVALID,
    INVALID_MESSAGE,
    NOT_FOUND_TEXT,
    close_socket,
    configure_logging,
    describe_client,
    user_agent,
)

logger = logging.getLogger(__name__)

router = APIRouter()

basic_scheme = HTTPBasic(auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)


# -------------- WebSocket handling --------------
async def relay_socket(ws: WebSocket, connection: Connection, lag_policy: LagPolicy) -> None:
    """
    Feed inbound frames to the connection until it subscribes, closes or breaks protocol.
    A subscribed connection is then handed to the coordinator.
    """
    who = connection.client
    while True:
        message = await ws.receive()
        if message["type"] == "websocket.disconnect":
            logger.info(">>> %s sent close with code %s", who, message.get("code"))
            return

        text = message.get("text")
        if text is None:
            # binary frames are not part of the protocol
            connection.violate(INVALID_MESSAGE)
            await close_socket(ws, CLOSE_INVALID, INVALID_MESSAGE)
            return

        logger.debug(">>> %s sent str: %r", who, text)
        try:
            await connection.handle_text(text)
        except ProtocolViolation as e:
            logger.info("Closing %s: %s", who, e.reason)
            await close_socket(ws, e.code, e.reason)
            return

        if isinstance(connection.role, Subscribing):
            break

    sub_filter = connection.role.filter
    subscription = connection.hub.subscribe()
    await coordinate(ws, subscription, sub_filter, lag_policy, who)


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    who = describe_client(ws)
    logger.info("`%s` at %s connected.", user_agent(ws), who)

    state = ws.app.state
    connection = Connection(state.hub, state.authenticator, client=who)
    try:
        await relay_socket(ws, connection, state.settings.lag_policy)
    finally:
        logger.info("Websocket context %s destroyed", who)


# -------------- REST endpoints --------------

@router.post("/publish", status_code=202, response_model=PublishAccepted)
async def rest_publish(
    message: PublishedMessage,
    request: Request,
    name: Optional[str] = None,
    basic: Optional[HTTPBasicCredentials] = Depends(basic_scheme),
    bearer: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
):
    state = request.app.state
    if basic is not None:
        # basic-auth username doubles as the publisher name
        authenticator = state.authenticator
        credentials = Credentials(secret=basic.password, username=basic.username)
        publisher = basic.username
    elif bearer is not None and state.token_authenticator is not None:
        if not name:
            raise HTTPException(status_code=422, detail="name query parameter required")
        authenticator = state.token_authenticator
        credentials = Credentials(secret=bearer.credentials)
        publisher = name
    else:
        raise HTTPException(
            status_code=401,
            detail="credentials required",
            headers={"WWW-Authenticate": "Basic"},
        )

    outcome = await authenticator.authenticate(credentials)
    if outcome is AuthOutcome.ERROR:
        raise HTTPException(status_code=502, detail=AUTH_UNAVAILABLE)
    if outcome is AuthOutcome.REJECT:
        raise HTTPException(
            status_code=401,
            detail="invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    if not publisher:
        raise HTTPException(status_code=422, detail="publisher name required")

    receivers = state.hub.publish(Envelope(publisher_name=publisher, message=message))
    logger.debug("%s published to %r over http, %d receivers", publisher, message.topic, receivers)
    return PublishAccepted()


@router.get("/stats", response_model=HubStats)
async def rest_stats(request: Request):
    hub: Hub = request.app.state.hub
    return HubStats(
        subscribers=hub.subscriber_count,
        published=hub.published_count,
        capacity=hub.capacity,
    )


@router.get("/", include_in_schema=False)
async def rest_index(request: Request):
    settings: Settings = request.app.state.settings
    if settings.show_index_page:
        return RedirectResponse(settings.redirect_url)
    return PlainTextResponse(NOT_FOUND_TEXT, status_code=404)


async def not_found_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return PlainTextResponse(NOT_FOUND_TEXT, status_code=404)
    return await http_exception_handler(request, exc)


# -------------- Application --------------

def create_app(settings: Settings, hub: Optional[Hub] = None) -> FastAPI:
    app = FastAPI(title="pubrelay")

    # one hub per process, shared by every connection
    app.state.hub = hub if hub is not None else Hub(settings.hub_capacity)
    app.state.settings = settings
    app.state.authenticator = settings.password_authenticator()
    app.state.token_authenticator = settings.token_authenticator()

    app.include_router(router)
    app.add_exception_handler(StarletteHTTPException, not_found_handler)
    return app


def run() -> None:
    # a missing PASSWORD or a bad IP/PORT fails here, before anything binds
    settings = Settings()
    configure_logging(settings.log_level)
    app = create_app(settings)
    if settings.auth_url is None:
        logger.info("bearer publishing disabled, no AUTH_URL set")
    else:
        logger.info("bearer tokens checked against %s", settings.auth_url)
    logger.debug("listening on %s:%d", settings.ip, settings.port)
    uvicorn.run(
        app,
        host=str(settings.ip),
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
