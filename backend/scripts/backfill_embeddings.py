"""Embed every stored message that is still missing a vector.

Usage: python backend/scripts/backfill_embeddings.py [--batch-size N] [--sleep-ms MS]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

# Ensure backend path is in sys.path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from semchat.domain.chat import BackfillJob, PostgresMessageStore
from semchat.domain.embeddings import EmbeddingClient
from semchat.domain.errors import StoreFailure
from semchat.infra import postgres
from semchat.obs import logging as obs_logging
from semchat.settings import settings

logger = logging.getLogger("semchat.backfill")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	parser = argparse.ArgumentParser(description="Backfill message embeddings")
	parser.add_argument("--batch-size", type=int, default=settings.backfill_batch_size, help="Rows fetched per batch")
	parser.add_argument("--sleep-ms", type=int, default=settings.backfill_sleep_ms, help="Pause between provider calls")
	return parser.parse_args(argv)


async def run_backfill(batch_size: int, sleep_ms: int) -> int:
	pool = await postgres.init_pool()
	embedder = EmbeddingClient.from_settings(settings)
	job = BackfillJob(
		PostgresMessageStore(pool),
		embedder,
		batch_size=batch_size,
		pause_seconds=sleep_ms / 1000.0,
	)
	try:
		report = await job.run()
	except StoreFailure as exc:
		logger.error("backfill.store_failure", extra={"error": exc.detail})
		return 1
	finally:
		await embedder.aclose()
		await postgres.close_pool()
	print(json.dumps(report.to_dict()))
	return 0


def main(argv: list[str] | None = None) -> int:
	args = _parse_args(argv)
	obs_logging.configure_logging()
	if sys.platform == "win32":
		asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
	return asyncio.run(run_backfill(args.batch_size, args.sleep_ms))


if __name__ == "__main__":
	sys.exit(main())
