import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class HTTPLogMiddleware(BaseHTTPMiddleware):
    """Log one line per request and stamp the elapsed time on the response."""

    def __init__(self, app, logger_name: str = "datepoll.http"):
        super().__init__(app)
        self._logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        method = request.method
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"
        try:
            response: Response = await call_next(request)
        except Exception as e:
            dur_ms = int((time.perf_counter() - start) * 1000)
            self._logger.warning("http.request error method=%s target=%s dur_ms=%s err=%r",
                                 method, target, dur_ms, e)
            raise
        dur_ms = int((time.perf_counter() - start) * 1000)
        response.headers["X-Response-Time-Ms"] = str(dur_ms)
        self._logger.debug("http.request method=%s target=%s status=%s dur_ms=%s",
                           method, target, response.status_code, dur_ms)
        return response
