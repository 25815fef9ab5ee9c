"""Socket.IO binding for the realtime gateway on the default namespace."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import socketio

from semchat.domain.presence import Connection, RealtimeGateway
from semchat.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class ChatNamespace(socketio.AsyncNamespace):
	"""Adapts socket events to gateway calls.

	Each connection's outbound channel is drained by a pump task that emits the
	queued events to that sid only.
	"""

	def __init__(self, gateway: RealtimeGateway, namespace: str = "/") -> None:
		super().__init__(namespace)
		self.gateway = gateway
		self._connections: Dict[str, Connection] = {}
		self._pumps: Dict[str, asyncio.Task] = {}

	async def on_connect(self, sid: str, environ: dict, auth: Optional[Any] = None) -> None:
		obs_metrics.socket_connected(self.namespace)
		connection = await self.gateway.open(sid)
		self._connections[sid] = connection
		self._pumps[sid] = asyncio.create_task(self._pump(sid, connection))
		if auth:
			await self.gateway.authenticate(connection, auth)

	async def on_disconnect(self, sid: str, reason: Optional[str] = None) -> None:
		obs_metrics.socket_disconnected(self.namespace)
		connection = self._connections.pop(sid, None)
		if connection is not None:
			await self.gateway.close(connection)
		pump = self._pumps.pop(sid, None)
		if pump is not None:
			# The close sentinel ends the pump once queued events are flushed.
			try:
				await asyncio.wait_for(pump, timeout=1.0)
			except asyncio.TimeoutError:
				pump.cancel()
		logger.debug("socket.disconnected", extra={"sid": sid, "reason": reason})

	async def on_authenticate(self, sid: str, data: Any = None) -> None:
		obs_metrics.socket_event(self.namespace, "authenticate")
		connection = self._connections.get(sid)
		if connection is None:
			return
		await self.gateway.authenticate(connection, data)

	async def on_typing(self, sid: str, data: Any = None) -> None:
		obs_metrics.socket_event(self.namespace, "typing")
		connection = self._connections.get(sid)
		if connection is None:
			return
		await self.gateway.typing(connection, data)

	async def on_stop_typing(self, sid: str, data: Any = None) -> None:
		obs_metrics.socket_event(self.namespace, "stop_typing")
		connection = self._connections.get(sid)
		if connection is None:
			return
		await self.gateway.stop_typing(connection, data)

	def connection(self, sid: str) -> Optional[Connection]:
		return self._connections.get(sid)

	async def shutdown(self) -> None:
		for sid in list(self._connections):
			await self.on_disconnect(sid, "server_shutdown")

	async def _pump(self, sid: str, connection: Connection) -> None:
		async for event in connection.events():
			try:
				await self.emit(event.name, event.payload, room=sid)
			except Exception:
				logger.exception("socket.emit_failed", extra={"sid": sid, "event": event.name})
				continue
			obs_metrics.socket_event(self.namespace, event.name)
