"""Message persistence with best-effort embedding enrichment."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from semchat.domain.embeddings import EmbeddingClient
from semchat.domain.errors import InputInvalid
from semchat.obs import metrics as obs_metrics

from .models import Message
from .repo import MessageStore

logger = logging.getLogger(__name__)

DeliveryHook = Callable[[Message], Awaitable[object]]


class MessageService:
	"""Persist direct messages; a failed embedding never blocks the write.

	With ``inline_embedding`` the vector is computed before the insert (bounded
	by the client's retry window). Otherwise the row is written with a null
	vector and an enrichment task fills it in afterwards.
	"""

	def __init__(
		self,
		store: MessageStore,
		embedder: EmbeddingClient,
		*,
		delivery: Optional[DeliveryHook] = None,
		inline_embedding: bool = True,
	) -> None:
		self._store = store
		self._embedder = embedder
		self._delivery = delivery
		self._inline = inline_embedding
		self._pending: Set[asyncio.Task] = set()

	async def send(self, sender_id: int, receiver_id: Optional[int], body: Optional[str]) -> Message:
		if receiver_id is None:
			raise InputInvalid("receiver_required")
		text = (body or "").strip()
		if not text:
			raise InputInvalid("message_required")

		vector = await self._embedder.try_embed(text) if self._inline else None
		message = await self._store.insert(sender_id, receiver_id, text, vector)
		obs_metrics.inc_chat_send(with_vector=vector is not None)
		logger.info(
			"chat.message_sent",
			extra={"message_id": message.id, "receiver_id": receiver_id, "with_vector": vector is not None},
		)
		if not self._inline:
			self._schedule_enrichment(message)
		await self._deliver(message)
		return message

	async def conversation(self, user_id: int, other_user_id: int, limit: int) -> List[Message]:
		if limit <= 0:
			raise InputInvalid("invalid_limit")
		return await self._store.select_conversation(user_id, other_user_id, limit)

	async def enrich(self, message_id: int, body: str) -> bool:
		"""Embed ``body`` and store it on a row whose vector is still null."""
		vector = await self._embedder.try_embed(body)
		if vector is None:
			return False
		updated = await self._store.update_vector(message_id, vector)
		if not updated:
			logger.debug("chat.enrich_skipped", extra={"message_id": message_id})
		return updated

	async def aclose(self) -> None:
		"""Wait for enrichment tasks still in flight."""
		if self._pending:
			await asyncio.gather(*self._pending, return_exceptions=True)

	def _schedule_enrichment(self, message: Message) -> None:
		task = asyncio.create_task(self._enrich_logged(message))
		self._pending.add(task)
		task.add_done_callback(self._pending.discard)

	async def _enrich_logged(self, message: Message) -> None:
		try:
			await self.enrich(message.id, message.body)
		except Exception:  # pragma: no cover - logged and dropped; backfill picks the row up later
			logger.exception("chat.enrich_failed", extra={"message_id": message.id})

	async def _deliver(self, message: Message) -> None:
		if self._delivery is None:
			return
		try:
			await self._delivery(message)
		except Exception:
			logger.exception("chat.delivery_failed", extra={"message_id": message.id})
