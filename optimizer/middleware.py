import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .config import LOG_EXCLUDE_PATHS
from .logging_config import request_id_var
from .services.prometheus_metrics import prometheus_metrics

logger = logging.getLogger("optimizer.http")


class TracingMiddleware(BaseHTTPMiddleware):
    """ASGI middleware for request tracing and structured logging"""

    def __init__(self, app: ASGIApp, exclude_paths=None):
        super().__init__(app)
        self.exclude_paths = set(exclude_paths if exclude_paths is not None else LOG_EXCLUDE_PATHS)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate or reuse request ID
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        client_ip = request.client.host if request.client else "unknown"
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            latency_ms = round((time.time() - start_time) * 1000, 2)
            logger.error(f"Request failed: {str(e)}", extra={
                "method": request.method,
                "path": request.url.path,
                "status": 500,
                "latency_ms": latency_ms,
                "client_ip": client_ip
            })
            prometheus_metrics.increment_requests(500)
            raise
        finally:
            request_id_var.reset(token)

        latency_ms = round((time.time() - start_time) * 1000, 2)
        prometheus_metrics.increment_requests(response.status_code)
        self._log_request(request.method, request.url.path, response.status_code, latency_ms, client_ip, request_id)
        response.headers["X-Request-ID"] = request_id
        return response

    def _log_request(self, method: str, path: str, status: int, latency_ms: float,
                     client_ip: str, request_id: str):
        if path in self.exclude_paths:
            return
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO
        logger.log(log_level, f"{method} {path} {status}", extra={
            "method": method,
            "path": path,
            "status": status,
            "latency_ms": latency_ms,
            "client_ip": client_ip,
            "request_id": request_id,
            "component": "http"
        })
