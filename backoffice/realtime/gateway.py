"""Socket.IO gateway: authenticated connections, role/identity rooms, presence, fan-out.

Client convention:
- Socket.IO path: /<SOCKETIO_PATH> (default /socket.io)
- Auth: `auth: { token }` with the access token (``?token=`` query also accepted)

Every connection joins two rooms: its role ("ADMIN", "MODERATOR", "USER") and
its identity room ("user_<id>").
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs

import socketio
from socketio.exceptions import ConnectionRefusedError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from backoffice.core.errors import InvalidTokenError, TokenConfigurationError
from backoffice.core.security import verify_access_token
from backoffice.models.user import Role, User
from backoffice.realtime.presence import InMemoryPresenceStore, PresenceEntry, PresenceStore
from backoffice.schemas.auth import Principal

if TYPE_CHECKING:
    from backoffice.core.config import Settings

logger = logging.getLogger(__name__)

EVENT_USER_ONLINE = "user:online"
EVENT_USER_OFFLINE = "user:offline"
EVENT_GET_ONLINE = "users:getOnline"

REJECT_NO_TOKEN = "Authentication error: Token not provided"
REJECT_INVALID_TOKEN = "Authentication error: Invalid token"
REJECT_SERVER_ERROR = "Authentication error: Server error"


def create_socket_server(settings: Settings) -> socketio.AsyncServer:
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=list(settings.CORS_ORIGINS),
        logger=False,
        engineio_logger=False,
    )


def room_for_account(account_id: int) -> str:
    return f"user_{int(account_id)}"


def room_for_role(role: Role | str) -> str:
    return Role(role).value


def _extract_token(environ: dict[str, Any] | None, auth: Any | None) -> str | None:
    """Extract the access token from the handshake `auth` payload or the query string."""
    if isinstance(auth, dict):
        auth_token = auth.get("token")
        if isinstance(auth_token, str) and auth_token.strip():
            return auth_token.strip()

    scope: Any = environ or {}
    if isinstance(scope, dict) and "asgi.scope" in scope:
        inner = scope.get("asgi.scope")
        if isinstance(inner, dict):
            scope = inner

    query_string: str | bytes = ""
    if isinstance(scope, dict) and "query_string" in scope:
        query_string = scope.get("query_string", b"")
    elif isinstance(scope, dict) and "QUERY_STRING" in scope:
        query_string = scope.get("QUERY_STRING", "")

    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")

    token = parse_qs(str(query_string)).get("token", [None])[0]
    if isinstance(token, str) and token:
        return token
    return None


class RealtimeGateway:
    """Owns the Socket.IO server handlers and the presence store."""

    def __init__(
        self,
        sio: socketio.AsyncServer,
        settings: Settings,
        presence: PresenceStore | None = None,
        session_factory: sessionmaker | None = None,
    ) -> None:
        self.sio = sio
        self._settings = settings
        self.presence = presence or InMemoryPresenceStore()
        self._session_factory = session_factory
        sio.on("connect", handler=self.on_connect)
        sio.on("disconnect", handler=self.on_disconnect)
        sio.on(EVENT_GET_ONLINE, handler=self.on_get_online)

    def _current_role(self, account_id: int) -> Role | None:
        """Role from the database row, or None when the account no longer exists."""
        db: Session = self._session_factory()
        try:
            user = db.get(User, account_id)
            return Role(user.role) if user is not None else None
        finally:
            db.close()

    async def authenticate(self, token: str | None) -> Principal:
        if not token:
            raise ConnectionRefusedError(REJECT_NO_TOKEN)
        try:
            principal = verify_access_token(token, self._settings)
        except InvalidTokenError as exc:
            raise ConnectionRefusedError(REJECT_INVALID_TOKEN) from exc
        except TokenConfigurationError as exc:
            logger.error("Socket.IO token verification is not configured")
            raise ConnectionRefusedError(REJECT_SERVER_ERROR) from exc

        if self._session_factory is None:
            return principal
        try:
            role = await run_in_threadpool(self._current_role, principal.account_id)
        except Exception as exc:
            logger.exception("Socket.IO account lookup failed")
            raise ConnectionRefusedError(REJECT_SERVER_ERROR) from exc
        if role is None:
            raise ConnectionRefusedError(REJECT_INVALID_TOKEN)
        return Principal(account_id=principal.account_id, role=role)

    async def on_connect(self, sid: str, environ: dict[str, Any], auth: Any | None = None) -> None:
        token = _extract_token(environ, auth)
        try:
            principal = await self.authenticate(token)
        except ConnectionRefusedError as exc:
            logger.info("Socket.IO connection rejected", extra={"sid": sid, "reason": str(exc)})
            raise

        await self.sio.enter_room(sid, room_for_role(principal.role))
        await self.sio.enter_room(sid, room_for_account(principal.account_id))
        await self.presence.add(
            PresenceEntry(
                account_id=principal.account_id,
                role=principal.role,
                connection_id=sid,
            )
        )
        await self._safe_emit(
            EVENT_USER_ONLINE,
            {"userId": principal.account_id, "role": principal.role.value},
            skip_sid=sid,
        )
        logger.info(
            "User connected",
            extra={"account_id": principal.account_id, "role": principal.role.value, "sid": sid},
        )

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        gone = await self.presence.remove(sid)
        if gone is None:
            return
        await self._safe_emit(EVENT_USER_OFFLINE, {"userId": gone.account_id})
        logger.info("User offline", extra={"account_id": gone.account_id, "sid": sid})

    async def on_get_online(self, sid: str, *_args: Any) -> list[int]:
        """Acknowledgement payload for `users:getOnline`."""
        return await self.list_online()

    async def _safe_emit(self, event: str, payload: dict[str, Any], **kwargs: Any) -> None:
        # Best-effort: a failed emit must not fail the HTTP request that triggered it.
        try:
            await self.sio.emit(event, payload, **kwargs)
        except Exception:
            logger.exception("Socket.IO emit failed", extra={"event": event})

    async def broadcast_all(self, event: str, payload: dict[str, Any]) -> None:
        await self._safe_emit(event, payload)

    async def broadcast_to_roles(
        self, roles: Iterable[Role | str], event: str, payload: dict[str, Any]
    ) -> None:
        rooms = sorted({room_for_role(r) for r in roles})
        if not rooms:
            return
        await self._safe_emit(event, payload, to=rooms)

    async def broadcast_to_account(self, account_id: int, event: str, payload: dict[str, Any]) -> None:
        await self._safe_emit(event, payload, to=room_for_account(account_id))

    async def list_online(self) -> list[int]:
        return await self.presence.list_online()
