import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from backend.utils.responses import error_response
from config.settings import MAX_BODY_BYTES

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Rejects requests whose declared Content-Length exceeds the JSON ceiling.
    Default: 50MB. Bodies without a Content-Length are checked by the route.
    """

    def __init__(self, app, max_body_bytes: int = MAX_BODY_BYTES):
        super().__init__(app)
        self.max_body_bytes = max_body_bytes

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                size = int(content_length)
            except ValueError:
                return error_response("Invalid Content-Length header", 400, details=content_length)

            if size > self.max_body_bytes:
                logger.warning(f"Rejected {request.method} {request.url.path}: body of {size} bytes")
                return error_response(
                    "Request body too large",
                    413,
                    details=f"Body of {size} bytes exceeds the {self.max_body_bytes} byte limit",
                )

        return await call_next(request)
