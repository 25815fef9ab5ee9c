"""Embed stored messages that were persisted without a vector."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable, Optional

from semchat.domain.embeddings import EmbeddingClient
from semchat.obs import metrics as obs_metrics

from .repo import MessageStore

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class BackfillReport:
	pending: int = 0
	processed: int = 0
	embedded: int = 0
	failed: int = 0
	batches: int = 0
	passes: int = 0
	elapsed_ms: int = 0

	def to_dict(self) -> dict:
		return asdict(self)


class BackfillJob:
	"""Sequential, paced backfill.

	Each pass walks the pending rows oldest-id-first with keyset paging. The job
	stops once nothing is pending or a whole pass embedded nothing, so rows that
	always fail cannot keep it looping.
	"""

	def __init__(
		self,
		store: MessageStore,
		embedder: EmbeddingClient,
		*,
		batch_size: int = 100,
		pause_seconds: float = 0.1,
		sleep: Optional[Sleeper] = None,
	) -> None:
		if batch_size < 1:
			raise ValueError("batch_size must be >= 1")
		self._store = store
		self._embedder = embedder
		self.batch_size = batch_size
		self.pause_seconds = max(0.0, pause_seconds)
		self._sleep = sleep or asyncio.sleep

	async def run(self) -> BackfillReport:
		report = BackfillReport()
		started = time.perf_counter()
		report.pending = await self._store.count_missing_vectors()
		logger.info("backfill.start", extra={"pending": report.pending, "batch_size": self.batch_size})

		while True:
			remaining = await self._store.count_missing_vectors()
			if remaining == 0:
				break
			report.passes += 1
			progress = await self._run_pass(report)
			if progress == 0:
				logger.warning("backfill.stalled", extra={"remaining": remaining})
				break

		report.elapsed_ms = int((time.perf_counter() - started) * 1000)
		logger.info("backfill.done", extra=report.to_dict())
		return report

	async def _run_pass(self, report: BackfillReport) -> int:
		embedded = 0
		after_id = 0
		while True:
			batch = await self._store.select_missing_vector_batch(self.batch_size, after_id=after_id)
			if not batch:
				return embedded
			report.batches += 1
			for index, row in enumerate(batch):
				report.processed += 1
				vector = await self._embedder.try_embed(row.body)
				if vector is not None and await self._store.update_vector(row.id, vector):
					report.embedded += 1
					embedded += 1
					obs_metrics.backfill_row("embedded")
				else:
					report.failed += 1
					obs_metrics.backfill_row("failed")
				if self.pause_seconds and index < len(batch) - 1:
					await self._sleep(self.pause_seconds)
			after_id = batch[-1].id
			logger.info(
				"backfill.progress",
				extra={"batch": report.batches, "embedded": report.embedded, "failed": report.failed},
			)
			if len(batch) < self.batch_size:
				return embedded
