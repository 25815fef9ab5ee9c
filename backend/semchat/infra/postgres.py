"""AsyncPG pool management for the backend."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import asyncpg

from semchat.settings import settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"

_pool: Optional[asyncpg.pool.Pool] = None


async def init_pool() -> asyncpg.pool.Pool:
	global _pool
	if _pool is None:
		# Force 127.0.0.1 instead of localhost to avoid IPv6 issues on Windows
		dsn = settings.postgres_url.replace("localhost", "127.0.0.1")
		_pool = await asyncpg.create_pool(
			dsn=dsn,
			min_size=settings.postgres_min_pool_size,
			max_size=settings.postgres_max_pool_size,
			ssl="require" if settings.postgres_ssl else "disable",
		)
	return _pool


async def get_pool() -> asyncpg.pool.Pool:
	if _pool is None:
		await init_pool()
	assert _pool is not None
	return _pool


async def close_pool() -> None:
	global _pool
	if _pool is not None:
		await _pool.close()
		_pool = None


async def apply_schema(pool: asyncpg.pool.Pool, filename: str = "0001_semchat_init.sql") -> None:
	"""Apply a migration file; the vector extension is created separately so a
	managed database without superuser rights can still run the rest."""
	sql = (MIGRATIONS_DIR / filename).read_text(encoding="utf-8")
	async with pool.acquire() as conn:
		try:
			await conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
		except asyncpg.PostgresError as exc:
			logger.warning("postgres.extension_skipped", extra={"error": str(exc)})
		async with conn.transaction():
			await conn.execute(sql)
	logger.info("postgres.schema_applied", extra={"migration": filename})
