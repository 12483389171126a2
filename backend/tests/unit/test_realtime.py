from cashora.core.realtime import ConnectionManager


class FakeSocket:
    def __init__(self, broken: bool = False) -> None:
        self.accepted = False
        self.closed = False
        self.sent: list[dict] = []
        self.broken = broken

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, payload: dict) -> None:
        if self.broken:
            raise RuntimeError("socket gone")
        self.sent.append(payload)

    async def close(self, code: int = 1000) -> None:
        self.closed = True


async def test_user_events_reach_every_session_of_that_user():
    manager = ConnectionManager()
    phone, laptop, stranger = FakeSocket(), FakeSocket(), FakeSocket()
    await manager.connect(phone, "u1")
    await manager.connect(laptop, "u1")
    await manager.connect(stranger, "u2")
    assert phone.accepted and manager.count() == 3

    await manager.send_to_user("u1", {"type": "NOTIFICATION"})
    assert phone.sent == laptop.sent == [{"type": "NOTIFICATION"}]
    assert stranger.sent == []


async def test_admin_broadcast_only_reaches_admins():
    manager = ConnectionManager()
    admin, user = FakeSocket(), FakeSocket()
    await manager.connect(admin, "a1", is_admin=True)
    await manager.connect(user, "u1")

    await manager.send_to_admins({"type": "NOTIFICATION"})
    assert admin.sent == [{"type": "NOTIFICATION"}]
    assert user.sent == []


async def test_dead_connections_are_purged():
    manager = ConnectionManager()
    await manager.connect(FakeSocket(broken=True), "u1")
    await manager.send_to_user("u1", {"type": "NOTIFICATION"})
    assert manager.count() == 0


async def test_close_all():
    manager = ConnectionManager()
    ws = FakeSocket()
    await manager.connect(ws, "u1", is_admin=True)
    await manager.close_all()
    assert ws.closed
    assert manager.count() == 0
    await manager.send_to_admins({"type": "NOTIFICATION"})
