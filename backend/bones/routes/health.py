"""
Bones Backend — Health and Greeting Routes
===========================================

What:  GET /health for probes and GET /api/hello for the frontend's
       "Test API Connection" button.
Why:   Container health checks and a trivial round-trip the UI can use to
       confirm the backend is reachable.

The store is in-memory, so there are no downstream dependencies to probe:
the process being able to answer is the whole health signal. The user
count is reported as a cheap sanity check.
"""

import logging
import time

from fastapi import APIRouter, Request

from bones import __version__
from bones.schemas.user import HealthResponse, HelloResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Initialized once when the module loads
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request) -> HealthResponse:
    return HealthResponse(
        status="ok",
        message="Greact-Bones API is running!",
        version=__version__,
        uptime_seconds=round(time.time() - _start_time, 2),
        users=len(request.app.state.user_store),
    )


@router.get(
    "/api/hello",
    response_model=HelloResponse,
    summary="Connectivity probe for the frontend",
)
async def hello() -> HelloResponse:
    return HelloResponse(
        message="Hello from Greact-Bones backend!",
        version=__version__,
    )
