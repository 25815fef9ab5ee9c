"""Domain models for user identity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class User:
	id: int
	name: str
	email: str
	password_hash: str
	created_at: datetime
