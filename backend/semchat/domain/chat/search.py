"""Semantic retrieval over a user's own conversations."""

from __future__ import annotations

import logging
from typing import List, Optional

from semchat.domain.embeddings import EmbeddingClient
from semchat.domain.errors import InputInvalid
from semchat.obs import metrics as obs_metrics

from .models import ScoredMessage
from .repo import MessageStore

logger = logging.getLogger(__name__)


class SearchService:
	def __init__(
		self,
		store: MessageStore,
		embedder: EmbeddingClient,
		*,
		default_limit: int = 10,
		max_limit: int = 50,
	) -> None:
		self._store = store
		self._embedder = embedder
		self.default_limit = default_limit
		self.max_limit = max_limit

	def resolve_limit(self, limit: Optional[int]) -> int:
		if limit is None:
			return self.default_limit
		if limit <= 0:
			raise InputInvalid("invalid_limit")
		return min(limit, self.max_limit)

	async def search(self, user_id: int, query: Optional[str], limit: Optional[int] = None) -> List[ScoredMessage]:
		"""Messages the user sent or received, most similar first.

		An embedding failure yields an empty list rather than an error.
		"""
		phrase = (query or "").strip()
		if not phrase:
			raise InputInvalid("query_required")
		size = self.resolve_limit(limit)

		vector = await self._embedder.try_embed(phrase)
		if vector is None:
			obs_metrics.search_query("degraded", 0)
			logger.warning("search.degraded", extra={"user_id": user_id})
			return []

		results = await self._store.select_by_similarity(user_id, vector, size)
		obs_metrics.search_query("ok", len(results))
		return results[:size]
