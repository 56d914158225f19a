import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import aiofiles
import anyio
from fastapi.responses import JSONResponse, StreamingResponse

from services.errors import StreamError

logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 64 * 1024


def error_response(error, status=500, details=None, request_id=None):
    content = {"error": error}
    if details is not None:
        content["details"] = details
    if request_id is not None:
        content["requestId"] = request_id
    return JSONResponse(status_code=status, content=content)


def invalid_input_response(error, received: Any, request_id: str):
    return JSONResponse(
        status_code=400,
        content={
            "error": error,
            "received": received,
            "requestId": request_id,
        }
    )


class ScratchFileResponse(StreamingResponse):
    """
    Streams a scratch file as an attachment and runs `cleanup` once the
    stream is over: fully sent, failed, or cancelled by a disconnect.
    """

    def __init__(
        self,
        path: Path,
        filename: str,
        cleanup: Callable[[], Awaitable[Any]],
        media_type: str = "audio/mpeg",
        request_id: Optional[str] = None,
    ):
        self.path = Path(path)
        self.cleanup = cleanup
        self.request_id = request_id
        self.stream_error: Optional[StreamError] = None
        super().__init__(
            self._iter_file(),
            media_type=media_type,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    async def _iter_file(self):
        async with aiofiles.open(self.path, "rb") as f:
            while True:
                chunk = await f.read(STREAM_CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk

    async def __call__(self, scope, receive, send):
        try:
            await super().__call__(scope, receive, send)
            logger.info(f"[{self.request_id}] Response finished, cleaning up...")
        except Exception as e:
            # Headers are already out, so there is no second response to send
            self.stream_error = StreamError(e)
            logger.error(f"[{self.request_id}] {self.stream_error}")
        finally:
            # Shielded so a cancelled request still removes its scratch files
            with anyio.CancelScope(shield=True):
                await self.cleanup()
