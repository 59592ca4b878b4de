import structlog
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response

logger = structlog.get_logger(__name__)


class InvalidTransition(ValueError):
    """Raised when an appointment cannot move from its current status."""

    def __init__(self, current: str, new: str):
        self.current = current
        self.new = new
        super().__init__(f'Cannot change appointment status from {current} to {new}')


class ImageUploadError(Exception):
    """Raised when the image CDN rejects or fails an upload."""


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        view = context.get('view')
        logger.exception('unhandled_api_error', view=getattr(view, '__name__', None) or type(view).__name__)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    return Response({'ok': False, 'error': {'code': 'api_error', 'message': detail}}, status=resp.status_code)
