"""Live-connection registry and realtime gateway."""

from .gateway import AUTH_ERROR_MESSAGES, RealtimeGateway
from .registry import Connection, ConnectionClosed, ConnectionState, Event, PresenceRegistry

__all__ = [
	"AUTH_ERROR_MESSAGES",
	"Connection",
	"ConnectionClosed",
	"ConnectionState",
	"Event",
	"PresenceRegistry",
	"RealtimeGateway",
]
