"""Authentication helpers for FastAPI endpoints and socket connections."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from semchat.domain.errors import Unauthorized
from semchat.infra import jwt as jwt_helper


@dataclass(slots=True)
class AuthenticatedUser:
	id: int
	name: str
	email: str


class TokenVerifier(Protocol):
	def verify(self, token: str) -> int:
		"""Return the user id carried by ``token`` or raise Unauthorized."""
		...


class JwtTokenVerifier:
	"""Verifies HS256 access tokens issued by :mod:`semchat.infra.jwt`."""

	def verify(self, token: str) -> int:
		token = (token or "").strip()
		if not token:
			raise Unauthorized("missing_token")
		try:
			payload = jwt_helper.decode_access(token)
			return int(str(payload["sub"]))
		except (jwt_helper.InvalidTokenError, KeyError, ValueError):
			# Normalise all decode failures to invalid_token for callers
			raise Unauthorized("invalid_token") from None


_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
	request: Request,
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the bearer JWT to a stored user or fail with 401."""
	if not credentials or credentials.scheme.lower() != "bearer":
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	verifier: TokenVerifier = request.app.state.token_verifier
	try:
		user_id = verifier.verify(credentials.credentials)
	except Unauthorized as exc:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.detail) from None
	user = await request.app.state.users.find_by_id(user_id)
	if user is None:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="user_not_found")
	return AuthenticatedUser(id=user.id, name=user.name, email=user.email)
