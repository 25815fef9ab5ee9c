"""Application assembly: FastAPI routers plus the Socket.IO realtime gateway."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from semchat.api import auth, messages, ops
from semchat.api.errors import install_error_handlers
from semchat.api.request_id import RequestIdMiddleware
from semchat.domain.chat import MessageService, MessageStore, PostgresMessageStore, SearchService
from semchat.domain.chat.sockets import ChatNamespace
from semchat.domain.embeddings import EmbeddingClient
from semchat.domain.identity import IdentityService, PostgresUserStore, UserStore
from semchat.domain.presence import PresenceRegistry, RealtimeGateway
from semchat.infra import postgres
from semchat.infra.auth import JwtTokenVerifier, TokenVerifier
from semchat.obs import init as obs_init
from semchat.settings import DEV_SECRET_KEY, Settings, settings

logger = logging.getLogger(__name__)


def _allowed_origins(config: Settings) -> list[str]:
	allow_origins = list(config.cors_allow_origins)
	if not allow_origins or "*" in allow_origins:
		# Starlette disallows wildcard '*' with allow_credentials=True.
		allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
	return allow_origins


def create_app(
	*,
	config: Settings = settings,
	users: Optional[UserStore] = None,
	message_store: Optional[MessageStore] = None,
	embedder: Optional[EmbeddingClient] = None,
	token_verifier: Optional[TokenVerifier] = None,
) -> FastAPI:
	"""Build the HTTP app and its Socket.IO server.

	Stores default to Postgres; passing in-memory stores runs without a
	database. Every stateful collaborator (registry, gateway, services) is
	created here and owned by the returned app.
	"""
	use_database = users is None or message_store is None
	users = users if users is not None else PostgresUserStore()
	message_store = message_store if message_store is not None else PostgresMessageStore()
	embedder = embedder if embedder is not None else EmbeddingClient.from_settings(config)
	verifier = token_verifier if token_verifier is not None else JwtTokenVerifier()

	registry = PresenceRegistry()
	gateway = RealtimeGateway(registry, verifier, users)
	message_service = MessageService(
		message_store,
		embedder,
		delivery=gateway.deliver_message,
		inline_embedding=config.embedding_inline,
	)
	search_service = SearchService(
		message_store,
		embedder,
		default_limit=config.search_default_limit,
		max_limit=config.search_max_limit,
	)
	allow_origins = _allowed_origins(config)
	sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
	chat_namespace = ChatNamespace(gateway)
	sio.register_namespace(chat_namespace)

	@asynccontextmanager
	async def lifespan(app: FastAPI):
		if config.secret_key == DEV_SECRET_KEY and not config.is_dev():
			logger.warning("settings.dev_secret_in_use", extra={"environment": config.environment})
		if use_database:
			pool = await postgres.init_pool()
			app.state.pool = pool
			if config.auto_migrate:
				await postgres.apply_schema(pool)
		try:
			yield
		finally:
			await chat_namespace.shutdown()
			await message_service.aclose()
			await embedder.aclose()
			if use_database:
				await postgres.close_pool()
				app.state.pool = None

	app = FastAPI(title="Semchat API", lifespan=lifespan)
	app.state.settings = config
	app.state.pool = None
	app.state.users = users
	app.state.message_store = message_store
	app.state.embedder = embedder
	app.state.token_verifier = verifier
	app.state.registry = registry
	app.state.gateway = gateway
	app.state.identity = IdentityService(users)
	app.state.messages = message_service
	app.state.search = search_service
	app.state.sio = sio
	app.state.chat_namespace = chat_namespace

	install_error_handlers(app)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=allow_origins,
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)
	obs_init(app)
	# Ensure every request carries an X-Request-Id and make it available on request.state
	app.add_middleware(RequestIdMiddleware)

	app.include_router(auth.router)
	app.include_router(messages.router)
	app.include_router(ops.router)

	app.state.socket_app = socketio.ASGIApp(sio, other_asgi_app=app)
	return app


app = create_app()
socket_app = app.state.socket_app
