"""Messaging and semantic search endpoints."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from semchat.domain.chat import MessageService, SearchService
from semchat.domain.chat.schemas import MessageResponse, SearchResultResponse, SendMessageRequest
from semchat.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/api", tags=["chat"])

MAX_CONVERSATION_LIMIT = 200


def get_message_service(request: Request) -> MessageService:
	return request.app.state.messages


def get_search_service(request: Request) -> SearchService:
	return request.app.state.search


@router.post("/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message_endpoint(
	payload: SendMessageRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: MessageService = Depends(get_message_service),
) -> MessageResponse:
	message = await service.send(auth_user.id, payload.receiver_id, payload.message)
	return MessageResponse.from_model(message)


async def _conversation(
	service: MessageService,
	auth_user: AuthenticatedUser,
	other_user_id: int,
	limit: Optional[int],
	request: Request,
) -> List[MessageResponse]:
	size = limit if limit is not None else request.app.state.settings.conversation_default_limit
	messages = await service.conversation(auth_user.id, other_user_id, size)
	return [MessageResponse.from_model(message) for message in messages]


@router.get("/conversation/{other_user_id}", response_model=List[MessageResponse])
async def conversation_endpoint(
	other_user_id: int,
	request: Request,
	limit: Optional[int] = Query(default=None, ge=1, le=MAX_CONVERSATION_LIMIT),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: MessageService = Depends(get_message_service),
) -> List[MessageResponse]:
	return await _conversation(service, auth_user, other_user_id, limit, request)


@router.get("/messages/conversation", response_model=List[MessageResponse])
async def conversation_query_endpoint(
	request: Request,
	other_user_id: int = Query(..., alias="otherUserId"),
	limit: Optional[int] = Query(default=None, ge=1, le=MAX_CONVERSATION_LIMIT),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: MessageService = Depends(get_message_service),
) -> List[MessageResponse]:
	return await _conversation(service, auth_user, other_user_id, limit, request)


async def _search(
	service: SearchService,
	auth_user: AuthenticatedUser,
	query: Optional[str],
	limit: Optional[int],
) -> List[SearchResultResponse]:
	results = await service.search(auth_user.id, query, limit)
	return [SearchResultResponse.from_scored(hit) for hit in results]


@router.get("/semantic-search", response_model=List[SearchResultResponse])
async def semantic_search_endpoint(
	q: Optional[str] = Query(default=None),
	limit: Optional[int] = Query(default=None),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: SearchService = Depends(get_search_service),
) -> List[SearchResultResponse]:
	return await _search(service, auth_user, q, limit)


@router.get("/messages/search", response_model=List[SearchResultResponse])
async def message_search_endpoint(
	q: Optional[str] = Query(default=None),
	limit: Optional[int] = Query(default=None),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: SearchService = Depends(get_search_service),
) -> List[SearchResultResponse]:
	return await _search(service, auth_user, q, limit)
