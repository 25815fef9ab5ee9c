"""Request ids for every HTTP exchange.

``RequestIdMiddleware`` accepts the caller's ``X-Request-Id`` or mints one,
stores it on ``request.state`` and echoes it on the response, independent of
whether observability is enabled. Error handlers read it back through
:func:`get_request_id`.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Request
from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from semchat.obs import logging as obs_logging

REQUEST_ID_ATTR = "request_id"
HEADER = "X-Request-Id"


def get_request_id(request: Optional[Request] = None, default: str = "unknown") -> str:
    if request is not None:
        rid = getattr(request.state, REQUEST_ID_ATTR, None)
        if rid:
            return rid
    return obs_logging.current_request_id() or default


class RequestIdMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        rid = Headers(scope=scope).get(HEADER) or str(uuid.uuid4())
        scope.setdefault("state", {})[REQUEST_ID_ATTR] = rid

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                if HEADER not in headers:
                    headers.append(HEADER, rid)
            await send(message)

        await self.app(scope, receive, send_with_request_id)
