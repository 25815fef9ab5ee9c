"""Health check helpers for liveness and readiness probes."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Dict, Optional, Tuple

import asyncpg

LOGGER = logging.getLogger(__name__)


async def liveness() -> Dict[str, Any]:
	return {"status": "OK"}


async def readiness(pool: Optional[asyncpg.pool.Pool], timeout: float = 0.5) -> Tuple[int, Dict[str, Any]]:
	"""Ping the database; an app running on in-memory stores has no pool."""
	if pool is None:
		return 200, {"status": "OK", "db": "memory"}
	start = perf_counter()
	try:
		async with pool.acquire() as conn:
			await asyncio.wait_for(conn.execute("SELECT 1"), timeout=timeout)
	except (asyncpg.PostgresError, OSError, asyncio.TimeoutError):
		LOGGER.warning("postgres readiness query failed", exc_info=True)
		return 503, {"status": "UNAVAILABLE", "db": "unreachable"}
	latency = perf_counter() - start
	return 200, {"status": "OK", "db": "connected", "latency_ms": round(latency * 1000, 2)}
