"""
Exceptions raised along the stem mixing pipeline
"""
from pathlib import Path
from typing import Any, Optional


class MixError(Exception):
    """Base class for every failure of a mix request"""


class InvalidInput(MixError):
    """Malformed or missing request shape (surfaced as 400)"""

    def __init__(self, message: str, received: Any = None, index: Optional[int] = None):
        super().__init__(message)
        self.received = received
        self.index = index


class DownloadError(MixError):
    """A stem URL could not be retrieved"""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class EncodeError(MixError):
    """ffmpeg failed or produced no output"""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class StreamError(MixError):
    """The mixed output could not be fully written to the client"""

    def __init__(self, cause: Exception):
        super().__init__(f"Failed to stream mixed file: {cause}")
        self.cause = cause


class CleanupError(MixError):
    def __init__(self, path: Path, cause: Exception):
        super().__init__(f"Failed to cleanup file: {path} ({cause})")
        self.path = path
        self.cause = cause
