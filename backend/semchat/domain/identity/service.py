"""Account registration and login."""

from __future__ import annotations

import logging
from typing import List

from semchat.domain.errors import InputInvalid, Unauthorized
from semchat.infra import jwt as jwt_helper
from semchat.infra import password as password_helper

from .models import User
from .repo import UserStore
from .schemas import AuthResponse, UserResponse

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class IdentityService:
	def __init__(self, users: UserStore) -> None:
		self._users = users

	async def register(self, name: str | None, email: str | None, password: str | None) -> AuthResponse:
		name = (name or "").strip()
		email = (email or "").strip().lower()
		if not name or not email or not password:
			raise InputInvalid("name_email_password_required")
		if len(password) < MIN_PASSWORD_LENGTH:
			raise InputInvalid("password_too_short")
		if await self._users.find_by_email(email):
			raise InputInvalid("email_taken")
		user = await self._users.create(name, email, password_helper.hash_password(password))
		logger.info("identity.registered", extra={"user_id": user.id})
		return self._issue(user)

	async def login(self, email: str | None, password: str | None) -> AuthResponse:
		email = (email or "").strip().lower()
		if not email or not password:
			raise InputInvalid("email_password_required")
		user = await self._users.find_by_email(email)
		if user is None or not self._users.verify_credential(password, user.password_hash):
			raise Unauthorized("invalid_credentials")
		return self._issue(user)

	async def list_users(self) -> List[UserResponse]:
		return [UserResponse.from_model(user) for user in await self._users.list_users()]

	@staticmethod
	def _issue(user: User) -> AuthResponse:
		token = jwt_helper.encode_access(user.id, name=user.name)
		return AuthResponse(user=UserResponse.from_model(user), token=token)
