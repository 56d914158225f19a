"""
Stem Fetcher - downloads remote stems into the scratch directory
"""
import logging
import re
from pathlib import Path
from typing import Optional

import aiofiles
import httpx

from services.errors import DownloadError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "wav"
CHUNK_SIZE = 64 * 1024
_EXTENSION_RE = re.compile(r"[A-Za-z0-9]+")


def stem_extension(url: str) -> str:
    """
    File extension advertised by a stem URL.

    Only names the scratch file; ffmpeg sniffs the real format on its own.
    """
    try:
        path = httpx.URL(url).path
    except httpx.InvalidURL:
        return DEFAULT_EXTENSION
    segment = path.rsplit("/", 1)[-1]
    if "." not in segment:
        return DEFAULT_EXTENSION
    extension = segment.rsplit(".", 1)[-1]
    if not _EXTENSION_RE.fullmatch(extension):
        return DEFAULT_EXTENSION
    return extension


def stem_filename(request_id: str, index: int, url: str) -> str:
    return f"{request_id}_stem_{index}.{stem_extension(url)}"


class StemFetcher:
    """Downloads a single stem URL to a local path"""

    def __init__(self, timeout: float = 60.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        # Tests swap in httpx.MockTransport here
        self.transport = transport

    async def fetch(self, url: str, destination: Path) -> None:
        """
        GET `url` and write the full body to `destination`, overwriting it.

        Raises:
            DownloadError: on a non-2xx status, a transport failure or a write failure
        """
        try:
            async with httpx.AsyncClient(
                follow_redirects=True, timeout=self.timeout, transport=self.transport
            ) as client:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise DownloadError(
                            url,
                            f"Failed to download: {response.status_code} {response.reason_phrase}",
                            status_code=response.status_code,
                        )
                    size = 0
                    async with aiofiles.open(destination, "wb") as f:
                        async for chunk in response.aiter_bytes(CHUNK_SIZE):
                            await f.write(chunk)
                            size += len(chunk)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DownloadError(url, f"Failed to download: {e}") from e
        except OSError as e:
            raise DownloadError(url, f"Failed to write {Path(destination).name}: {e}") from e

        logger.info(f"Downloaded {size} bytes to {destination}")
