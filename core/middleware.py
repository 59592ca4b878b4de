import time
import uuid

import structlog

logger = structlog.get_logger(__name__)


class RequestLogMiddleware:
    """Bind a request id into the log context and log each API request."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request_id = request.headers.get('X-Request-ID') or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start = time.monotonic()
        logger.info('request_started', method=request.method, path=request.path,
                    ip=request.META.get('REMOTE_ADDR'))
        try:
            response = self.get_response(request)
        except Exception:
            logger.exception('request_failed', duration_ms=round((time.monotonic() - start) * 1000, 2))
            raise
        logger.info('request_finished', status_code=response.status_code,
                    duration_ms=round((time.monotonic() - start) * 1000, 2))
        response['X-Request-ID'] = request_id
        return response
