"""Account endpoints: registration, login and user directory."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request, status

from semchat.domain.identity import IdentityService
from semchat.domain.identity.schemas import AuthResponse, LoginRequest, RegisterRequest, UserResponse
from semchat.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/api", tags=["identity"])


def get_identity_service(request: Request) -> IdentityService:
	return request.app.state.identity


@router.post("/users", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_endpoint(
	payload: RegisterRequest,
	service: IdentityService = Depends(get_identity_service),
) -> AuthResponse:
	return await service.register(payload.name, payload.email, payload.password)


@router.post("/login", response_model=AuthResponse)
async def login_endpoint(
	payload: LoginRequest,
	service: IdentityService = Depends(get_identity_service),
) -> AuthResponse:
	return await service.login(payload.email, payload.password)


@router.get("/me", response_model=UserResponse)
async def me_endpoint(auth_user: AuthenticatedUser = Depends(get_current_user)) -> UserResponse:
	return UserResponse(id=auth_user.id, name=auth_user.name, email=auth_user.email)


@router.get("/users", response_model=List[UserResponse])
async def list_users_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: IdentityService = Depends(get_identity_service),
) -> List[UserResponse]:
	return await service.list_users()
