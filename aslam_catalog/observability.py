from __future__ import annotations

import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("aslam_catalog.request")
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
logger.setLevel(logging.INFO)
logger.propagate = False


def current_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or "-"


class RequestLogAdapter(logging.LoggerAdapter):
    """Anexa request_id a cada linha; usado pelos services chamados por uma request."""

    def process(self, msg, kwargs):
        request_id = str(self.extra["request_id"]).replace("%", "%%")
        return f"{msg} request_id={request_id}", kwargs


def request_logger(request: Request, name: str) -> RequestLogAdapter:
    return RequestLogAdapter(logging.getLogger(name), {"request_id": current_request_id(request)})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(json.dumps(self._build_payload(request, start, status=500), ensure_ascii=True))
            raise

        payload = json.dumps(self._build_payload(request, start, status=response.status_code), ensure_ascii=True)
        if response.status_code >= 500:
            logger.error(payload)
        elif response.status_code >= 400:
            logger.warning(payload)
        else:
            logger.info(payload)

        response.headers["X-Request-Id"] = request_id
        return response

    @staticmethod
    def _build_payload(request: Request, start: float, status: int) -> dict:
        forwarded = request.headers.get("x-forwarded-for")
        client_ip = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
        return {
            "event": "http_request",
            "request_id": current_request_id(request),
            "method": request.method,
            "path": request.url.path,
            "status": status,
            "duration_ms": int((time.perf_counter() - start) * 1000),
            "client_ip": client_ip,
        }
