"""Per-connection realtime state machine.

``Unauthenticated -> Authenticated -> Closed``. The gateway holds no state of
its own beyond the injected registry; typing debounce is left to clients and
events are relayed as they arrive.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from semchat.domain.chat.models import Message
from semchat.domain.errors import StoreFailure, Unauthorized
from semchat.domain.identity.repo import UserStore
from semchat.infra.auth import TokenVerifier
from semchat.obs import metrics as obs_metrics

from .registry import Connection, ConnectionClosed, ConnectionState, PresenceRegistry

logger = logging.getLogger(__name__)

AUTH_ERROR_MESSAGES = {
	"missing_token": "Authentication token not provided.",
	"invalid_token": "Authentication failed. Invalid token.",
	"user_not_found": "User not found.",
	"unavailable": "Authentication failed. Please retry.",
}


def _extract_token(data: Any) -> str:
	if isinstance(data, dict):
		data = data.get("token")
	if not isinstance(data, str):
		return ""
	token = data.strip()
	if token.lower().startswith("bearer "):
		token = token[7:].strip()
	return token


def _target_user_id(data: Any) -> Optional[int]:
	if isinstance(data, dict):
		data = data.get("userId", data.get("receiverId"))
	if isinstance(data, bool):
		return None
	try:
		return int(data)
	except (TypeError, ValueError):
		return None


class RealtimeGateway:
	def __init__(self, registry: PresenceRegistry, verifier: TokenVerifier, users: UserStore) -> None:
		self.registry = registry
		self._verifier = verifier
		self._users = users

	async def open(self, connection_id: str) -> Connection:
		connection = Connection(id=connection_id)
		await self.registry.attach(connection)
		logger.info("gateway.connected", extra={"connection_id": connection_id})
		return connection

	async def authenticate(self, connection: Connection, data: Any) -> bool:
		if connection.is_closed:
			return False
		token = _extract_token(data)
		if not token:
			return self._auth_error(connection, "missing_token")
		try:
			user_id = self._verifier.verify(token)
		except Unauthorized:
			return self._auth_error(connection, "invalid_token")
		try:
			user = await self._users.find_by_id(user_id)
		except StoreFailure:
			logger.exception("gateway.auth_lookup_failed", extra={"connection_id": connection.id})
			return self._auth_error(connection, "unavailable")
		if user is None:
			return self._auth_error(connection, "user_not_found")

		if connection.is_authenticated and connection.user_id != user.id:
			await self._release_identity(connection)
		try:
			replaced = await self.registry.bind(user.id, connection)
		except ConnectionClosed:
			logger.info("gateway.auth_abandoned", extra={"connection_id": connection.id, "user_id": user.id})
			return False
		connection.user_name = user.name
		if replaced is not None and replaced is not connection:
			# The older transport stays open; it simply stops receiving pushes.
			logger.info(
				"gateway.session_replaced",
				extra={"user_id": user.id, "connection_id": connection.id, "replaced_connection_id": replaced.id},
			)
		connection.send("authenticated", {"userId": user.id, "userName": user.name})
		await self.registry.broadcast(
			"user_online",
			{"userId": user.id, "userName": user.name},
			exclude=connection,
		)
		obs_metrics.set_presence_online(await self.registry.online_count())
		logger.info("gateway.authenticated", extra={"user_id": user.id, "connection_id": connection.id})
		return True

	async def typing(self, connection: Connection, data: Any) -> bool:
		return await self._relay(connection, data, "user_typing")

	async def stop_typing(self, connection: Connection, data: Any) -> bool:
		return await self._relay(connection, data, "user_stop_typing")

	async def close(self, connection: Connection) -> None:
		if connection.is_closed:
			return
		# Closed before the first await so an in-flight authenticate cannot bind it.
		connection.state = ConnectionState.CLOSED
		connection.close_channel()
		await self.registry.detach(connection)
		await self._release_identity(connection)
		logger.info(
			"gateway.disconnected",
			extra={"connection_id": connection.id, "user_id": connection.user_id},
		)

	async def deliver_message(self, message: Message) -> bool:
		"""Push ``new_message`` to the receiver's live connection, if any."""
		delivered = await self.registry.send_to(message.receiver_id, "new_message", message.to_dict())
		if delivered:
			obs_metrics.inc_chat_pushed()
		return delivered

	async def _relay(self, connection: Connection, data: Any, event: str) -> bool:
		if not connection.is_authenticated:
			logger.debug("gateway.relay_unauthenticated", extra={"connection_id": connection.id, "event": event})
			return False
		target_id = _target_user_id(data)
		if target_id is None:
			return False
		return await self.registry.send_to(target_id, event, {"senderId": connection.user_id})

	async def _release_identity(self, connection: Connection) -> None:
		user_id = connection.user_id
		if user_id is None:
			return
		# A newer session for the same user keeps the entry and stays online.
		if await self.registry.unbind_if_current(user_id, connection):
			await self.registry.broadcast(
				"user_offline",
				{"userId": user_id, "userName": connection.user_name},
				exclude=connection,
			)
		obs_metrics.set_presence_online(await self.registry.online_count())

	def _auth_error(self, connection: Connection, code: str) -> bool:
		logger.info("gateway.auth_failed", extra={"connection_id": connection.id, "reason": code})
		connection.send("auth_error", {"message": AUTH_ERROR_MESSAGES[code]})
		return False
