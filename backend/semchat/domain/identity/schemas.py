"""Pydantic schemas for account endpoints."""

from __future__ import annotations

from pydantic import BaseModel

from .models import User


class RegisterRequest(BaseModel):
	name: str | None = None
	email: str | None = None
	password: str | None = None


class LoginRequest(BaseModel):
	email: str | None = None
	password: str | None = None


class UserResponse(BaseModel):
	id: int
	name: str
	email: str

	@classmethod
	def from_model(cls, user: User) -> "UserResponse":
		return cls(id=user.id, name=user.name, email=user.email)


class AuthResponse(BaseModel):
	user: UserResponse
	token: str
