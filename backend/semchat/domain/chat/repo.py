"""Message storage: pgvector-backed store and an in-memory store for tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import List, Optional, Protocol, Sequence

import asyncpg

from semchat.domain.errors import InputInvalid, StoreFailure
from semchat.infra.postgres import get_pool
from semchat.domain.identity.repo import InMemoryUserStore

from . import vectors
from .models import Message, PendingEmbedding, ScoredMessage


class MessageStore(Protocol):
	async def insert(self, sender_id: int, receiver_id: int, body: str, vector: Optional[Sequence[float]]) -> Message:
		...

	async def select_conversation(self, user_a: int, user_b: int, limit: int) -> List[Message]:
		...

	async def select_by_similarity(self, user_id: int, vector: Sequence[float], limit: int) -> List[ScoredMessage]:
		...

	async def count_missing_vectors(self) -> int:
		...

	async def select_missing_vector_batch(self, limit: int, *, after_id: int = 0) -> List[PendingEmbedding]:
		...

	async def update_vector(self, message_id: int, vector: Sequence[float]) -> bool:
		"""Set the vector only if it is still absent; return whether a row changed."""
		...


class InMemoryMessageStore:
	"""Store used in tests and local runs without Postgres."""

	def __init__(self, users: Optional[InMemoryUserStore] = None) -> None:
		self._lock = asyncio.Lock()
		self._users = users
		self._messages: List[Message] = []
		self._next_id = 1

	async def insert(self, sender_id: int, receiver_id: int, body: str, vector: Optional[Sequence[float]]) -> Message:
		sender_name = receiver_name = None
		if self._users is not None:
			sender = await self._users.find_by_id(sender_id)
			receiver = await self._users.find_by_id(receiver_id)
			if sender is None or receiver is None:
				raise InputInvalid("receiver_not_found")
			sender_name, receiver_name = sender.name, receiver.name
		async with self._lock:
			message = Message(
				id=self._next_id,
				sender_id=sender_id,
				receiver_id=receiver_id,
				body=body,
				created_at=datetime.now(timezone.utc),
				embedding=tuple(vector) if vector is not None else None,
				sender_name=sender_name,
				receiver_name=receiver_name,
			)
			self._next_id += 1
			self._messages.append(message)
			return message

	async def select_conversation(self, user_a: int, user_b: int, limit: int) -> List[Message]:
		async with self._lock:
			pair = {user_a, user_b}
			rows = [m for m in self._messages if {m.sender_id, m.receiver_id} == pair]
			rows.sort(key=lambda m: (m.created_at, m.id))
			return rows[:limit]

	async def select_by_similarity(self, user_id: int, vector: Sequence[float], limit: int) -> List[ScoredMessage]:
		async with self._lock:
			scored = [
				ScoredMessage(message=m, distance=vectors.cosine_distance(m.embedding, vector))
				for m in self._messages
				if m.is_participant(user_id) and m.embedding is not None and len(m.embedding) == len(vector)
			]
		scored.sort(key=lambda hit: (hit.distance, hit.message.id))
		return scored[:limit]

	async def count_missing_vectors(self) -> int:
		async with self._lock:
			return sum(1 for m in self._messages if m.embedding is None)

	async def select_missing_vector_batch(self, limit: int, *, after_id: int = 0) -> List[PendingEmbedding]:
		async with self._lock:
			pending = [
				PendingEmbedding(id=m.id, body=m.body)
				for m in self._messages
				if m.embedding is None and m.id > after_id
			]
			return pending[:limit]

	async def update_vector(self, message_id: int, vector: Sequence[float]) -> bool:
		async with self._lock:
			for message in self._messages:
				if message.id == message_id:
					if message.embedding is not None:
						return False
					message.embedding = tuple(vector)
					message.updated_at = datetime.now(timezone.utc)
					return True
			return False


_MESSAGE_COLUMNS = """
	m.id, m.sender_id, m.receiver_id, m.message, m.created_at, m.updated_at,
	s.name AS sender_name, r.name AS receiver_name
"""

_USER_JOINS = """
	JOIN users s ON m.sender_id = s.id
	JOIN users r ON m.receiver_id = r.id
"""


class PostgresMessageStore:
	"""Repository backed by asyncpg; vectors travel as pgvector text literals."""

	def __init__(self, pool: Optional[asyncpg.pool.Pool] = None) -> None:
		self._pool = pool

	async def _get_pool(self) -> asyncpg.pool.Pool:
		return self._pool if self._pool is not None else await get_pool()

	async def insert(self, sender_id: int, receiver_id: int, body: str, vector: Optional[Sequence[float]]) -> Message:
		try:
			pool = await self._get_pool()
			async with pool.acquire() as conn:
				row = await conn.fetchrow(
					"""
					INSERT INTO messages (sender_id, receiver_id, message, embedding)
					VALUES ($1, $2, $3, $4::text::vector)
					RETURNING id, sender_id, receiver_id, message, created_at, updated_at, embedding::text AS embedding
					""",
					sender_id,
					receiver_id,
					body,
					vectors.encode(vector),
				)
		except asyncpg.ForeignKeyViolationError:
			raise InputInvalid("receiver_not_found") from None
		except (asyncpg.PostgresError, OSError) as exc:
			raise StoreFailure("message_insert_failed") from exc
		return self._row_to_message(row)

	async def select_conversation(self, user_a: int, user_b: int, limit: int) -> List[Message]:
		rows = await self._fetch(
			f"""
			SELECT {_MESSAGE_COLUMNS}
			FROM messages m
			{_USER_JOINS}
			WHERE (m.sender_id = $1 AND m.receiver_id = $2)
				OR (m.sender_id = $2 AND m.receiver_id = $1)
			ORDER BY m.created_at ASC, m.id ASC
			LIMIT $3
			""",
			user_a,
			user_b,
			limit,
			error="conversation_read_failed",
		)
		return [self._row_to_message(row) for row in rows]

	async def select_by_similarity(self, user_id: int, vector: Sequence[float], limit: int) -> List[ScoredMessage]:
		rows = await self._fetch(
			f"""
			SELECT {_MESSAGE_COLUMNS}, m.embedding <=> $1::text::vector AS distance
			FROM messages m
			{_USER_JOINS}
			WHERE (m.sender_id = $2 OR m.receiver_id = $2)
				AND m.embedding IS NOT NULL
				AND vector_dims(m.embedding) = $4
			ORDER BY distance ASC, m.id ASC
			LIMIT $3
			""",
			vectors.encode(vector),
			user_id,
			limit,
			len(vector),
			error="similarity_read_failed",
		)
		return [ScoredMessage(message=self._row_to_message(row), distance=float(row["distance"])) for row in rows]

	async def count_missing_vectors(self) -> int:
		try:
			pool = await self._get_pool()
			async with pool.acquire() as conn:
				value = await conn.fetchval("SELECT COUNT(*) FROM messages WHERE embedding IS NULL")
		except (asyncpg.PostgresError, OSError) as exc:
			raise StoreFailure("pending_count_failed") from exc
		return int(value or 0)

	async def select_missing_vector_batch(self, limit: int, *, after_id: int = 0) -> List[PendingEmbedding]:
		rows = await self._fetch(
			"""
			SELECT id, message
			FROM messages
			WHERE embedding IS NULL AND id > $1
			ORDER BY id ASC
			LIMIT $2
			""",
			after_id,
			limit,
			error="pending_batch_failed",
		)
		return [PendingEmbedding(id=int(row["id"]), body=row["message"]) for row in rows]

	async def update_vector(self, message_id: int, vector: Sequence[float]) -> bool:
		try:
			pool = await self._get_pool()
			async with pool.acquire() as conn:
				status = await conn.execute(
					"""
					UPDATE messages
					SET embedding = $2::text::vector, updated_at = NOW()
					WHERE id = $1 AND embedding IS NULL
					""",
					message_id,
					vectors.encode(vector),
				)
		except (asyncpg.PostgresError, OSError) as exc:
			raise StoreFailure("vector_update_failed") from exc
		return status.endswith(" 1")

	async def _fetch(self, query: str, *args, error: str):
		try:
			pool = await self._get_pool()
			async with pool.acquire() as conn:
				return await conn.fetch(query, *args)
		except (asyncpg.PostgresError, OSError) as exc:
			raise StoreFailure(error) from exc

	@staticmethod
	def _row_to_message(row) -> Message:
		keys = row.keys()
		embedding = vectors.decode(row["embedding"]) if "embedding" in keys else None
		return Message(
			id=int(row["id"]),
			sender_id=int(row["sender_id"]),
			receiver_id=int(row["receiver_id"]),
			body=row["message"],
			created_at=row["created_at"],
			updated_at=row["updated_at"],
			sender_name=row["sender_name"] if "sender_name" in keys else None,
			receiver_name=row["receiver_name"] if "receiver_name" in keys else None,
			embedding=tuple(embedding) if embedding is not None else None,
		)
