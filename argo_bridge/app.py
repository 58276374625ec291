import gc
import os
import random
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from .bridge import ArgoBridge
from .version import ARGO_BRIDGE_VERSION

APP_NAME = "argo-bridge"

HTTP_NO_CONTENT = 204
HTTP_NOT_FOUND = 404
HTTP_INTERNAL_SERVER_ERROR = 500

# Excluded from the access log
UNLOGGED_PATHS = ("/version", "/metrics")

router = APIRouter()


def get_bridge(request: Request) -> ArgoBridge:
    return request.app.state.bridge


def check_status(check_fail: Optional[str], roll: Optional[float] = None) -> int:
    """Status for the rollout analysis check.

    ``CHECK_FAIL`` unset, empty or "0" always succeeds; "true" or "1" always
    fails; a number such as "0.5" fails with that probability.
    """
    if check_fail is None or check_fail.strip() in ("", "0"):
        return HTTP_NO_CONTENT
    if check_fail.strip().lower() in ("true", "1"):
        return HTTP_INTERNAL_SERVER_ERROR

    try:
        failure_rate = float(check_fail)
    except ValueError:
        failure_rate = 0.0
    if failure_rate <= 0:
        return HTTP_NO_CONTENT

    roll = random.random() if roll is None else roll
    return HTTP_INTERNAL_SERVER_ERROR if roll < failure_rate else HTTP_NO_CONTENT


@router.get("/check")
def analysis_check() -> Response:
    return Response(status_code=check_status(os.getenv("CHECK_FAIL")))


@router.get("/version", response_class=PlainTextResponse)
def version() -> str:
    return f"{ARGO_BRIDGE_VERSION}\n"


@router.get("/metrics")
def metrics() -> Dict[str, Any]:
    return {
        "count": list(gc.get_count()),
        "threshold": list(gc.get_threshold()),
        "generations": gc.get_stats(),
    }


@router.get("/")
def root(request: Request, bridge: ArgoBridge = Depends(get_bridge)) -> Response:
    client = request.client.host if request.client else "-"
    bridge.logger.debug(f"GET / from {client}")
    for k, v in request.headers.items():
        bridge.logger.debug(f"{k!r}: {v}")
    return Response(status_code=HTTP_NOT_FOUND)


@router.post("/")
@router.post("/{path:path}")
async def notification(request: Request, bridge: ArgoBridge = Depends(get_bridge)) -> Response:
    client = request.client.host if request.client else "-"
    bridge.logger.info(f"POST {request.url.path} from {client}")
    body = await request.body()
    # Starlette already lower-cases header names
    headers = dict(request.headers.items())
    status = await run_in_threadpool(bridge.handle, headers, body)
    return Response(status_code=status)


def create_app(bridge: Optional[ArgoBridge] = None) -> FastAPI:
    app = FastAPI(title=APP_NAME, version=ARGO_BRIDGE_VERSION)
    app.state.bridge = bridge or ArgoBridge.from_env()

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        started = time.monotonic()
        response = await call_next(request)
        if request.url.path not in UNLOGGED_PATHS:
            app.state.bridge.logger.info(
                f"{request.method} {request.url.path} {response.status_code}",
                client=request.client.host if request.client else "-",
                duration_ms=round((time.monotonic() - started) * 1000, 1),
            )
        return response

    app.include_router(router)
    return app
