"""JSON structured logging with request-scoped context.

Every record becomes one JSON object carrying service metadata, whatever
request context is bound (request id, route, user, client ip) and the
``extra=`` fields of the call. Credentials and message content never reach the
log stream: matching fields are replaced with ``[redacted]``.
"""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from semchat.settings import settings

_LOGGER_NAME = "semchat"

# Payload key -> context variable; bind_context accepts the same names.
_CONTEXT: Dict[str, ContextVar[Optional[str]]] = {
	"request_id": ContextVar("semchat_request_id", default=None),
	"route": ContextVar("semchat_route", default=None),
	"user_id": ContextVar("semchat_user_id", default=None),
	"ip": ContextVar("semchat_client_ip", default=None),
}

# Substrings that mark a credential-like field name
_SECRET_MARKERS = ("token", "secret", "authorization", "password", "email", "vector", "embedding")
# Exact names of fields carrying user text; message_id and friends stay readable
_CONTENT_FIELDS = frozenset({"body", "message", "text", "query", "q"})

_MAX_STRING = 256
_MAX_ITEMS = 10

# Attributes every LogRecord has; anything else came in through ``extra=``.
_STANDARD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}


def bind_context(
	*,
	request_id: Optional[str] = None,
	route: Optional[str] = None,
	user_id: Optional[str] = None,
	client_ip: Optional[str] = None,
) -> Dict[str, Token]:
	"""Bind the given fields for the current task; pass the result to reset_context."""
	values = {"request_id": request_id, "route": route, "user_id": user_id, "ip": client_ip}
	return {key: _CONTEXT[key].set(value) for key, value in values.items() if value is not None}


def reset_context(tokens: Dict[str, Token]) -> None:
	for key, token in tokens.items():
		_CONTEXT[key].reset(token)


def current_request_id() -> Optional[str]:
	return _CONTEXT["request_id"].get()


def _is_sensitive(key: str) -> bool:
	lowered = key.lower()
	return lowered in _CONTENT_FIELDS or any(marker in lowered for marker in _SECRET_MARKERS)


def _scrub(key: str, value: Any) -> Any:
	if _is_sensitive(key):
		return "[redacted]"
	if isinstance(value, str):
		return value if len(value) <= _MAX_STRING else value[:_MAX_STRING] + "…"
	if isinstance(value, dict):
		items = list(value.items())
		scrubbed = {str(k): _scrub(str(k), v) for k, v in items[:_MAX_ITEMS]}
		if len(items) > _MAX_ITEMS:
			scrubbed["…"] = f"+{len(items) - _MAX_ITEMS} keys"
		return scrubbed
	if isinstance(value, (list, tuple, set)):
		values = list(value)
		scrubbed_list = [_scrub("", item) for item in values[:_MAX_ITEMS]]
		if len(values) > _MAX_ITEMS:
			scrubbed_list.append("…")
		return scrubbed_list
	return value


class JSONLogFormatter(logging.Formatter):
	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (match logging api)
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"msg": record.getMessage(),
			"logger": record.name,
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		for key, var in _CONTEXT.items():
			value = var.get()
			if value:
				payload[key] = value
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		for key, value in record.__dict__.items():
			if key not in _STANDARD_ATTRS and not key.startswith("_"):
				payload[key] = _scrub(key, value)
		return json.dumps(payload, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Keep a configured fraction of INFO records; other levels always pass."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO:
			return True
		rate = settings.obs_log_sampling_rate_info
		return rate >= 1.0 or random.random() < max(rate, 0.0)


def configure_logging() -> logging.Logger:
	"""Install the JSON handler on the root logger."""
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter())
	root = logging.getLogger()
	root.handlers = [handler]
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
