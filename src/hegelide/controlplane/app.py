"""
FastAPI control-plane application. Loopback only, one endpoint.

    POST /review   {"files": ["/abs/path.md", ...]}

    200 {"success": true}          all files exist; review notification sent
    400 {"error": "<message>"}     malformed body (names the violation)
    404 {"missing": [...]}         some files do not exist (nothing sent)
    404 {"error": "Not found"}     any other path
    405 {"error": "Method not allowed"}  any method other than POST
    500 {"error": "<message>"}     unexpected failure

The method check runs before routing, so ``GET /anything`` is a 405.
A 200 means the request was valid and the notification was dispatched,
not that the UI has finished opening tabs.

Usage::

    from hegelide.controlplane.app import create_app
    app = create_app(sink)
"""

from __future__ import annotations

import logging
import time

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from hegelide.controlplane.review import check_files_exist, parse_review_request
from hegelide.core.constants import REVIEW_PATH
from hegelide.core.events import EventSink, ReviewRequested
from hegelide.core.exceptions import ReviewRequestError

logger = structlog.get_logger()
_access_log = logging.getLogger("hegelide.controlplane.access")


class _AccessLogMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status, and elapsed time."""

    async def dispatch(self, request, call_next):
        start = time.monotonic()
        response = await call_next(request)
        elapsed_ms = (time.monotonic() - start) * 1000
        _access_log.info(
            "control_plane_request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "elapsed_ms": round(elapsed_ms, 1),
            },
        )
        return response


class _MethodGuardMiddleware(BaseHTTPMiddleware):
    """Reject every non-POST request before routing."""

    async def dispatch(self, request, call_next):
        if request.method != "POST":
            return JSONResponse({"error": "Method not allowed"}, status_code=405)
        return await call_next(request)


def create_app(sink: EventSink) -> FastAPI:
    """Create the control-plane app. Accepted reviews are emitted to *sink*."""
    app = FastAPI(
        title="Hegel IDE Control Plane",
        description="Local review integration (loopback only)",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        redirect_slashes=False,
    )
    app.state.sink = sink

    @app.exception_handler(StarletteHTTPException)
    async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse({"error": "Not found"}, status_code=404)
        if exc.status_code == 405:
            return JSONResponse({"error": "Method not allowed"}, status_code=405)
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)

    # Last added runs outermost, so the access log also sees the guard's 405s
    app.add_middleware(_MethodGuardMiddleware)
    app.add_middleware(_AccessLogMiddleware)

    @app.post(REVIEW_PATH)
    async def review(request: Request) -> JSONResponse:
        try:
            body = await request.body()
            parsed = parse_review_request(body)

            check = await check_files_exist(parsed.files)
            if not check.valid:
                logger.info("review_rejected", missing=len(check.missing), files=len(parsed.files))
                return JSONResponse({"missing": check.missing}, status_code=404)

            app.state.sink.emit(ReviewRequested(files=parsed.files))
            logger.info("review_requested", files=len(parsed.files))
            return JSONResponse({"success": True}, status_code=200)
        except ReviewRequestError as exc:
            logger.info("review_invalid", error=str(exc))
            return JSONResponse({"error": str(exc)}, status_code=400)
        except Exception as exc:  # noqa: BLE001
            logger.exception("review_failed")
            return JSONResponse({"error": str(exc)}, status_code=500)

    return app
