from race.session.broadcast import broadcast_to_connections
from race.tests.mocks import MockConnection

MESSAGE = {"type": "countdown_tick", "value": 3}


class TestBroadcastToConnections:
    async def test_reaches_every_connection(self):
        conns = [MockConnection() for _ in range(3)]
        await broadcast_to_connections(conns, MESSAGE)
        assert all(conn.sent_messages == [MESSAGE] for conn in conns)

    async def test_excluded_connection_is_skipped(self):
        sender, other = MockConnection(), MockConnection()
        await broadcast_to_connections([sender, other], MESSAGE, exclude_connection_id=sender.connection_id)
        assert sender.sent_messages == []
        assert other.sent_messages == [MESSAGE]

    async def test_closed_socket_does_not_stop_delivery(self):
        dropped, first, last = MockConnection(), MockConnection(), MockConnection()
        await dropped.close()
        await broadcast_to_connections([first, dropped, last], MESSAGE)
        assert first.sent_messages == [MESSAGE]
        assert last.sent_messages == [MESSAGE]
        assert dropped.sent_messages == []
