import asyncio

import pytest

from semchat.domain.presence import Connection, ConnectionState, PresenceRegistry


@pytest.mark.asyncio
async def test_last_bind_wins_and_unbind_clears():
	registry = PresenceRegistry()
	first, second = Connection(id="c1"), Connection(id="c2")

	assert await registry.bind(7, first) is None
	assert await registry.bind(7, second) is first
	assert await registry.lookup(7) is second

	await registry.unbind(7)
	assert await registry.lookup(7) is None
	await registry.unbind(7)


@pytest.mark.asyncio
async def test_unbind_if_current_keeps_newer_session():
	registry = PresenceRegistry()
	old, new = Connection(id="old"), Connection(id="new")
	await registry.bind(7, old)
	await registry.bind(7, new)

	assert await registry.unbind_if_current(7, old) is False
	assert await registry.lookup(7) is new
	assert await registry.unbind_if_current(7, new) is True
	assert await registry.lookup(7) is None


@pytest.mark.asyncio
async def test_concurrent_binds_for_distinct_users_are_not_lost():
	registry = PresenceRegistry()
	connections = {user_id: Connection(id=f"c{user_id}") for user_id in range(50)}

	await asyncio.gather(*(registry.bind(user_id, conn) for user_id, conn in connections.items()))

	assert await registry.online_count() == 50
	assert sorted(await registry.online_user_ids()) == list(range(50))


@pytest.mark.asyncio
async def test_broadcast_reaches_attached_connections_except_excluded():
	registry = PresenceRegistry()
	conns = [Connection(id=f"c{n}") for n in range(3)]
	for conn in conns:
		await registry.attach(conn)

	delivered = await registry.broadcast("user_online", {"userId": 7}, exclude=conns[0])

	assert delivered == 2
	assert conns[0].drain() == []
	assert [event.name for event in conns[1].drain()] == ["user_online"]
	assert [event.payload for event in conns[2].drain()] == [{"userId": 7}]


@pytest.mark.asyncio
async def test_send_to_offline_user_is_a_silent_no_op():
	registry = PresenceRegistry()
	assert await registry.send_to(42, "user_typing", {"senderId": 1}) is False


def test_closed_connection_refuses_events():
	conn = Connection(id="c1", state=ConnectionState.CLOSED)
	assert conn.send("new_message", {}) is False
	assert conn.drain() == []


@pytest.mark.asyncio
async def test_events_iterator_stops_at_close_sentinel():
	conn = Connection(id="c1")
	conn.send("a", {})
	conn.send("b", {})
	conn.close_channel()

	names = [event.name async for event in conn.events()]

	assert names == ["a", "b"]
