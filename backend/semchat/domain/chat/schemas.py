"""Pydantic schemas for the messaging and search API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import Message, ScoredMessage


class SendMessageRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	receiver_id: Optional[int] = Field(default=None, alias="receiverId", description="Recipient user id")
	message: Optional[str] = Field(default=None, max_length=4000)


class MessageResponse(BaseModel):
	id: int
	sender_id: int
	receiver_id: int
	message: str
	created_at: datetime
	updated_at: Optional[datetime] = None
	sender_name: Optional[str] = None
	receiver_name: Optional[str] = None

	@classmethod
	def from_model(cls, message: Message) -> "MessageResponse":
		return cls(
			id=message.id,
			sender_id=message.sender_id,
			receiver_id=message.receiver_id,
			message=message.body,
			created_at=message.created_at,
			updated_at=message.updated_at,
			sender_name=message.sender_name,
			receiver_name=message.receiver_name,
		)


class SearchResultResponse(MessageResponse):
	similarity_score: float = Field(..., ge=0.0, le=1.0)

	@classmethod
	def from_scored(cls, scored: ScoredMessage) -> "SearchResultResponse":
		base = MessageResponse.from_model(scored.message)
		score = min(1.0, max(0.0, scored.similarity))
		return cls(**base.model_dump(), similarity_score=score)
