"""Operations endpoints: health checks and Prometheus metrics."""

from __future__ import annotations

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from semchat.obs import health

router = APIRouter(prefix="", tags=["ops"])


@router.get("/health")
async def health_endpoint(request: Request) -> Response:
	status_code, payload = await health.readiness(request.app.state.pool)
	return JSONResponse(content=payload, status_code=status_code)


@router.get("/health/live")
async def health_live() -> dict[str, str]:
	return await health.liveness()


@router.get("/metrics")
async def metrics_endpoint() -> Response:
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
