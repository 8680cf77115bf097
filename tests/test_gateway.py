"""Realtime gateway tests: handshake auth, rooms, presence events and fan-out."""

import unittest
from unittest.mock import AsyncMock, MagicMock

from socketio.exceptions import ConnectionRefusedError

from backoffice.core.security import create_access_token
from backoffice.models import Role, User
from backoffice.realtime.gateway import (
    EVENT_GET_ONLINE,
    REJECT_INVALID_TOKEN,
    REJECT_NO_TOKEN,
    REJECT_SERVER_ERROR,
    RealtimeGateway,
    _extract_token,
    room_for_account,
    room_for_role,
)
from tests.support import (
    add_user,
    expired_access_token,
    make_service,
    make_session_factory,
    make_settings,
)


def _mock_sio() -> MagicMock:
    sio = MagicMock()
    sio.enter_room = AsyncMock()
    sio.emit = AsyncMock()
    return sio


class TestExtractToken(unittest.TestCase):
    def test_auth_payload_wins_over_query(self) -> None:
        environ = {"QUERY_STRING": "token=from-query"}
        self.assertEqual(_extract_token(environ, {"token": " from-auth "}), "from-auth")

    def test_query_string_fallbacks(self) -> None:
        self.assertEqual(_extract_token({"QUERY_STRING": "EIO=4&token=abc"}, None), "abc")
        asgi_environ = {"asgi.scope": {"query_string": b"token=xyz&transport=polling"}}
        self.assertEqual(_extract_token(asgi_environ, {}), "xyz")

    def test_missing_token(self) -> None:
        self.assertIsNone(_extract_token({}, None))
        self.assertIsNone(_extract_token(None, {"token": "   "}))


class TestRooms(unittest.TestCase):
    def test_room_names(self) -> None:
        self.assertEqual(room_for_account(7), "user_7")
        self.assertEqual(room_for_role(Role.ADMIN), "ADMIN")
        self.assertEqual(room_for_role("MODERATOR"), "MODERATOR")


class TestGatewayConnections(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.settings = make_settings()
        self.session_factory = make_session_factory()
        db = self.session_factory()
        try:
            self.admin = add_user(db, make_service(self.settings), email="admin@bakery.com", role=Role.ADMIN)
        finally:
            db.close()
        self.sio = _mock_sio()
        self.gateway = RealtimeGateway(self.sio, self.settings, session_factory=self.session_factory)

    def _token(self, account_id: int, role: Role = Role.ADMIN) -> str:
        return create_access_token(account_id, role, self.settings)

    def test_handlers_are_registered(self) -> None:
        events = [c.args[0] for c in self.sio.on.call_args_list]
        self.assertEqual(events, ["connect", "disconnect", EVENT_GET_ONLINE])

    async def test_expired_token_is_refused_without_side_effects(self) -> None:
        with self.assertRaises(ConnectionRefusedError) as ctx:
            await self.gateway.on_connect("sid-1", {}, {"token": expired_access_token(self.admin.id, Role.ADMIN)})
        self.assertIn(REJECT_INVALID_TOKEN, str(ctx.exception))
        self.sio.enter_room.assert_not_awaited()
        self.sio.emit.assert_not_awaited()
        self.assertEqual(await self.gateway.list_online(), [])

    async def test_missing_token_is_refused(self) -> None:
        with self.assertRaises(ConnectionRefusedError) as ctx:
            await self.gateway.on_connect("sid-1", {}, None)
        self.assertIn(REJECT_NO_TOKEN, str(ctx.exception))

    async def test_deleted_account_is_refused(self) -> None:
        with self.assertRaises(ConnectionRefusedError) as ctx:
            await self.gateway.on_connect("sid-1", {}, {"token": self._token(9999)})
        self.assertIn(REJECT_INVALID_TOKEN, str(ctx.exception))

    async def test_connect_joins_rooms_and_announces(self) -> None:
        await self.gateway.on_connect("sid-1", {}, {"token": self._token(self.admin.id)})

        rooms = {c.args[1] for c in self.sio.enter_room.await_args_list}
        self.assertEqual(rooms, {"ADMIN", f"user_{self.admin.id}"})
        self.assertEqual(await self.gateway.list_online(), [self.admin.id])
        self.sio.emit.assert_awaited_once_with(
            "user:online", {"userId": self.admin.id, "role": "ADMIN"}, skip_sid="sid-1"
        )

    async def test_role_comes_from_database_not_token(self) -> None:
        # Token still claims USER; the row says ADMIN.
        await self.gateway.on_connect("sid-1", {}, {"token": self._token(self.admin.id, Role.USER)})
        rooms = {c.args[1] for c in self.sio.enter_room.await_args_list}
        self.assertIn("ADMIN", rooms)
        self.assertNotIn("USER", rooms)

    async def test_query_string_token_connects(self) -> None:
        environ = {"QUERY_STRING": f"token={self._token(self.admin.id)}"}
        await self.gateway.on_connect("sid-q", environ, None)
        self.assertEqual(await self.gateway.list_online(), [self.admin.id])

    async def test_disconnect_announces_offline(self) -> None:
        await self.gateway.on_connect("sid-1", {}, {"token": self._token(self.admin.id)})
        self.sio.emit.reset_mock()

        await self.gateway.on_disconnect("sid-1", "client disconnect")

        self.sio.emit.assert_awaited_once_with("user:offline", {"userId": self.admin.id})
        self.assertEqual(await self.gateway.list_online(), [])

    async def test_second_tab_keeps_account_online(self) -> None:
        token = self._token(self.admin.id)
        await self.gateway.on_connect("tab-1", {}, {"token": token})
        await self.gateway.on_connect("tab-2", {}, {"token": token})
        self.sio.emit.reset_mock()

        await self.gateway.on_disconnect("tab-1")
        self.sio.emit.assert_not_awaited()
        self.assertEqual(await self.gateway.list_online(), [self.admin.id])

        await self.gateway.on_disconnect("tab-2")
        self.sio.emit.assert_awaited_once_with("user:offline", {"userId": self.admin.id})

    async def test_unknown_sid_disconnect_is_ignored(self) -> None:
        await self.gateway.on_disconnect("never-connected")
        self.sio.emit.assert_not_awaited()

    async def test_get_online_ack(self) -> None:
        await self.gateway.on_connect("sid-1", {}, {"token": self._token(self.admin.id)})
        self.assertEqual(await self.gateway.on_get_online("sid-2"), [self.admin.id])


class TestGatewayWithoutDatabase(unittest.IsolatedAsyncioTestCase):
    async def test_token_role_is_used(self) -> None:
        settings = make_settings()
        sio = _mock_sio()
        gateway = RealtimeGateway(sio, settings)
        await gateway.on_connect("sid-1", {}, {"token": create_access_token(5, Role.MODERATOR, settings)})
        rooms = {c.args[1] for c in sio.enter_room.await_args_list}
        self.assertEqual(rooms, {"MODERATOR", "user_5"})

    async def test_missing_signing_secret_is_a_refusal(self) -> None:
        token = create_access_token(5, Role.USER, make_settings())
        sio = _mock_sio()
        gateway = RealtimeGateway(sio, make_settings(JWT_SECRET=None))
        with self.assertRaises(ConnectionRefusedError) as ctx:
            await gateway.on_connect("sid-1", {}, {"token": token})
        self.assertIn(REJECT_SERVER_ERROR, str(ctx.exception))
        sio.enter_room.assert_not_awaited()
        self.assertEqual(await gateway.list_online(), [])


class TestBroadcasts(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.sio = _mock_sio()
        self.gateway = RealtimeGateway(self.sio, make_settings())

    async def test_broadcast_to_roles_targets_role_rooms(self) -> None:
        await self.gateway.broadcast_to_roles([Role.MODERATOR, Role.ADMIN, "ADMIN"], "order:new", {"id": 1})
        self.sio.emit.assert_awaited_once_with("order:new", {"id": 1}, to=["ADMIN", "MODERATOR"])

    async def test_broadcast_to_no_roles_is_a_no_op(self) -> None:
        await self.gateway.broadcast_to_roles([], "order:new", {"id": 1})
        self.sio.emit.assert_not_awaited()

    async def test_broadcast_to_account_targets_identity_room(self) -> None:
        await self.gateway.broadcast_to_account(42, "notification:new", {"type": "x"})
        self.sio.emit.assert_awaited_once_with("notification:new", {"type": "x"}, to="user_42")

    async def test_broadcast_all(self) -> None:
        await self.gateway.broadcast_all("menu:updated", {})
        self.sio.emit.assert_awaited_once_with("menu:updated", {})

    async def test_emit_failure_is_logged_not_raised(self) -> None:
        self.sio.emit.side_effect = RuntimeError("redis down")
        with self.assertLogs("backoffice.realtime.gateway", level="ERROR"):
            await self.gateway.broadcast_to_account(1, "notification:new", {})


if __name__ == "__main__":
    unittest.main()
