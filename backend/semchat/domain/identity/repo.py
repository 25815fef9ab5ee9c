"""User storage: asyncpg-backed store and an in-memory store for tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import List, Optional, Protocol

import asyncpg

from semchat.domain.errors import InputInvalid, StoreFailure
from semchat.infra.postgres import get_pool
from semchat.infra import password as password_helper

from .models import User


class UserStore(Protocol):
	async def find_by_id(self, user_id: int) -> Optional[User]:
		...

	async def find_by_email(self, email: str) -> Optional[User]:
		...

	async def create(self, name: str, email: str, password_hash: str) -> User:
		...

	async def list_users(self) -> List[User]:
		...

	def verify_credential(self, plain: str, password_hash: str) -> bool:
		...


class InMemoryUserStore:
	"""Store used in tests and local runs without Postgres."""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self._users: dict[int, User] = {}
		self._next_id = 1

	async def find_by_id(self, user_id: int) -> Optional[User]:
		async with self._lock:
			return self._users.get(user_id)

	async def find_by_email(self, email: str) -> Optional[User]:
		async with self._lock:
			for user in self._users.values():
				if user.email == email:
					return user
			return None

	async def create(self, name: str, email: str, password_hash: str) -> User:
		async with self._lock:
			if any(user.email == email for user in self._users.values()):
				raise InputInvalid("email_taken")
			user = User(
				id=self._next_id,
				name=name,
				email=email,
				password_hash=password_hash,
				created_at=datetime.now(timezone.utc),
			)
			self._users[user.id] = user
			self._next_id += 1
			return user

	async def list_users(self) -> List[User]:
		async with self._lock:
			return sorted(self._users.values(), key=lambda u: (u.name, u.id))

	def verify_credential(self, plain: str, password_hash: str) -> bool:
		return password_helper.verify_password(password_hash, plain)


_USER_COLUMNS = "id, name, email, password_hash, created_at"


class PostgresUserStore:
	def __init__(self, pool: Optional[asyncpg.pool.Pool] = None) -> None:
		self._pool = pool

	async def _get_pool(self) -> asyncpg.pool.Pool:
		return self._pool if self._pool is not None else await get_pool()

	async def find_by_id(self, user_id: int) -> Optional[User]:
		row = await self._fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1", user_id)
		return self._row_to_user(row) if row else None

	async def find_by_email(self, email: str) -> Optional[User]:
		row = await self._fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE email = $1", email)
		return self._row_to_user(row) if row else None

	async def create(self, name: str, email: str, password_hash: str) -> User:
		try:
			pool = await self._get_pool()
			async with pool.acquire() as conn:
				row = await conn.fetchrow(
					f"""
					INSERT INTO users (name, email, password_hash)
					VALUES ($1, $2, $3)
					RETURNING {_USER_COLUMNS}
					""",
					name,
					email,
					password_hash,
				)
		except asyncpg.UniqueViolationError:
			raise InputInvalid("email_taken") from None
		except (asyncpg.PostgresError, OSError) as exc:
			raise StoreFailure("user_insert_failed") from exc
		return self._row_to_user(row)

	async def list_users(self) -> List[User]:
		try:
			pool = await self._get_pool()
			async with pool.acquire() as conn:
				rows = await conn.fetch(f"SELECT {_USER_COLUMNS} FROM users ORDER BY name, id")
		except (asyncpg.PostgresError, OSError) as exc:
			raise StoreFailure("user_list_failed") from exc
		return [self._row_to_user(row) for row in rows]

	def verify_credential(self, plain: str, password_hash: str) -> bool:
		return password_helper.verify_password(password_hash, plain)

	async def _fetchrow(self, query: str, *args):
		try:
			pool = await self._get_pool()
			async with pool.acquire() as conn:
				return await conn.fetchrow(query, *args)
		except (asyncpg.PostgresError, OSError) as exc:
			raise StoreFailure("user_lookup_failed") from exc

	@staticmethod
	def _row_to_user(row) -> User:
		return User(
			id=int(row["id"]),
			name=row["name"],
			email=row["email"],
			password_hash=row["password_hash"],
			created_at=row["created_at"],
		)
