"""HTTP instrumentation: Prometheus request metrics and one access log line per request."""

from __future__ import annotations

import time
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from semchat.obs import logging as obs_logging
from semchat.obs import metrics

_access_log = obs_logging.get_logger("semchat.http")


def route_label(request: Request) -> str:
	"""Matched route template (``/api/conversation/{other_user_id}``) to keep label cardinality bounded."""
	route = request.scope.get("route")
	return getattr(route, "path", None) or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		request_id = getattr(request.state, "request_id", None) or request.headers.get("X-Request-Id") or str(uuid4())
		request.state.request_id = request_id
		tokens = obs_logging.bind_context(
			request_id=request_id,
			client_ip=request.client.host if request.client else None,
		)
		started = time.perf_counter()
		status_code = 500
		try:
			response = await call_next(request)
			status_code = response.status_code
		except Exception:
			_access_log.exception("http_request_error", extra={"method": request.method, "path": request.url.path})
			raise
		finally:
			elapsed = time.perf_counter() - started
			route = route_label(request)
			metrics.observe_request(route, request.method, status_code, elapsed)
			_access_log.info(
				"http_request",
				extra={
					"method": request.method,
					"route": route,
					"status": status_code,
					"latency_ms": round(elapsed * 1000, 3),
				},
			)
			obs_logging.reset_context(tokens)
		response.headers.setdefault("X-Request-Id", request_id)
		return response


def install(app) -> None:
	app.add_middleware(ObservabilityMiddleware)
