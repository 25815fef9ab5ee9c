"""Presence registry: who is reachable right now, and over which connection.

Each live transport session is represented by a :class:`Connection` that owns
an outbound event channel. Delivery (point-to-point or broadcast) is a channel
send; the transport layer drains the channel and frames events on the wire.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional


class ConnectionClosed(Exception):
	"""The connection closed before it could be bound."""


class ConnectionState(str, enum.Enum):
	UNAUTHENTICATED = "unauthenticated"
	AUTHENTICATED = "authenticated"
	CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class Event:
	name: str
	payload: dict


@dataclass(eq=False)
class Connection:
	"""A transient transport session. Compared by identity."""

	id: str
	user_id: Optional[int] = None
	user_name: Optional[str] = None
	state: ConnectionState = ConnectionState.UNAUTHENTICATED
	created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
	outbox: "asyncio.Queue[Optional[Event]]" = field(default_factory=asyncio.Queue, repr=False)

	@property
	def is_authenticated(self) -> bool:
		return self.state is ConnectionState.AUTHENTICATED

	@property
	def is_closed(self) -> bool:
		return self.state is ConnectionState.CLOSED

	def send(self, name: str, payload: dict) -> bool:
		if self.is_closed:
			return False
		self.outbox.put_nowait(Event(name, payload))
		return True

	def close_channel(self) -> None:
		self.outbox.put_nowait(None)

	def drain(self) -> List[Event]:
		"""Pop every queued event without waiting."""
		events: List[Event] = []
		while True:
			try:
				item = self.outbox.get_nowait()
			except asyncio.QueueEmpty:
				return events
			if item is not None:
				events.append(item)

	async def events(self) -> AsyncIterator[Event]:
		"""Yield queued events until the channel is closed."""
		while True:
			item = await self.outbox.get()
			if item is None:
				return
			yield item


class PresenceRegistry:
	"""Mapping of user id to its single live connection; last bind wins.

	Also tracks every open connection (authenticated or not) so presence
	changes can be broadcast to all of them.
	"""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self._by_user: Dict[int, Connection] = {}
		self._connections: Dict[str, Connection] = {}

	async def attach(self, connection: Connection) -> None:
		async with self._lock:
			self._connections[connection.id] = connection

	async def detach(self, connection: Connection) -> None:
		async with self._lock:
			if self._connections.get(connection.id) is connection:
				del self._connections[connection.id]

	async def bind(self, user_id: int, connection: Connection) -> Optional[Connection]:
		"""Bind ``connection`` for ``user_id`` and return the entry it replaced.

		The connection becomes authenticated in the same step. Raises
		:class:`ConnectionClosed` if it was closed first; nothing is bound then.
		"""
		async with self._lock:
			if connection.is_closed:
				raise ConnectionClosed(connection.id)
			connection.user_id = user_id
			connection.state = ConnectionState.AUTHENTICATED
			previous = self._by_user.get(user_id)
			self._by_user[user_id] = connection
			return previous

	async def unbind(self, user_id: int) -> None:
		async with self._lock:
			self._by_user.pop(user_id, None)

	async def unbind_if_current(self, user_id: int, connection: Connection) -> bool:
		"""Remove the entry only while it still points at ``connection``."""
		async with self._lock:
			if self._by_user.get(user_id) is connection:
				del self._by_user[user_id]
				return True
			return False

	async def lookup(self, user_id: int) -> Optional[Connection]:
		async with self._lock:
			return self._by_user.get(user_id)

	async def online_count(self) -> int:
		async with self._lock:
			return len(self._by_user)

	async def online_user_ids(self) -> List[int]:
		async with self._lock:
			return list(self._by_user)

	async def send_to(self, user_id: int, name: str, payload: dict) -> bool:
		connection = await self.lookup(user_id)
		if connection is None:
			return False
		return connection.send(name, payload)

	async def broadcast(self, name: str, payload: dict, *, exclude: Optional[Connection] = None) -> int:
		async with self._lock:
			targets = [conn for conn in self._connections.values() if conn is not exclude]
		return sum(1 for conn in targets if conn.send(name, payload))
