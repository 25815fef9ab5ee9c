"""Domain models for direct messages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple


@dataclass(slots=True)
class Message:
	id: int
	sender_id: int
	receiver_id: int
	body: str
	created_at: datetime
	embedding: Optional[Tuple[float, ...]] = None
	updated_at: Optional[datetime] = None
	sender_name: Optional[str] = None
	receiver_name: Optional[str] = None

	@property
	def has_embedding(self) -> bool:
		return self.embedding is not None

	def is_participant(self, user_id: int) -> bool:
		return user_id in (self.sender_id, self.receiver_id)

	def to_dict(self) -> dict:
		payload = {
			"id": self.id,
			"sender_id": self.sender_id,
			"receiver_id": self.receiver_id,
			"message": self.body,
			"created_at": self.created_at.isoformat(),
		}
		if self.updated_at is not None:
			payload["updated_at"] = self.updated_at.isoformat()
		if self.sender_name is not None:
			payload["sender_name"] = self.sender_name
		if self.receiver_name is not None:
			payload["receiver_name"] = self.receiver_name
		return payload


@dataclass(slots=True)
class ScoredMessage:
	"""A retrieval hit; ``distance`` is cosine distance (smaller is closer)."""

	message: Message
	distance: float

	@property
	def similarity(self) -> float:
		return 1.0 - self.distance


@dataclass(slots=True)
class PendingEmbedding:
	"""A stored message still lacking a vector."""

	id: int
	body: str
