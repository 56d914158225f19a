"""
ffmpeg-backed mixdown: per-stem gain, sum to the longest input, encode to MP3
"""
import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from models.mix import DEFAULT_VOLUME
from services.errors import EncodeError

logger = logging.getLogger(__name__)

STDERR_TAIL_CHARS = 2000


def build_filter_graph(input_count: int, volumes: Sequence[float], normalize: bool = False) -> str:
    """
    Filter graph that gains each input and mixes them into [out].

    duration=longest pads shorter inputs with silence instead of cutting the mix.
    """
    parts = []
    for index in range(input_count):
        volume = volumes[index] if index < len(volumes) else DEFAULT_VOLUME
        parts.append(f"[{index}:a]volume={float(volume)}[a{index}]")

    mix_inputs = "".join(f"[a{index}]" for index in range(input_count))
    parts.append(
        f"{mix_inputs}amix=inputs={input_count}:duration=longest:normalize={int(normalize)}[out]"
    )
    return ";".join(parts)


def build_ffmpeg_args(
    input_files: Sequence[Path],
    output_file: Path,
    volumes: Sequence[float],
    bitrate: str = "192k",
    normalize: bool = False,
) -> List[str]:
    args = ["-hide_banner", "-nostdin"]
    for input_file in input_files:
        args += ["-i", str(input_file)]

    args += [
        "-filter_complex", build_filter_graph(len(input_files), volumes, normalize),
        "-map", "[out]",
        "-c:a", "libmp3lame",
        "-b:a", bitrate,
        "-y",  # Overwrite output file
        str(output_file),
    ]
    return args


class FfmpegMixer:
    """Runs one ffmpeg process per mix and waits for it without blocking the event loop"""

    def __init__(self, binary: str = "ffmpeg", bitrate: str = "192k", normalize: bool = False):
        self.binary = binary
        self.bitrate = bitrate
        self.normalize = normalize

    async def mix(
        self,
        input_files: Sequence[Path],
        output_file: Path,
        volumes: Sequence[float],
        request_id: Optional[str] = None,
    ) -> None:
        """
        Mix `input_files` into `output_file`.

        Raises:
            EncodeError: if ffmpeg cannot start, exits non-zero, or leaves no output file
        """
        prefix = f"[{request_id}] " if request_id else ""
        cmd = [self.binary] + build_ffmpeg_args(
            input_files, output_file, volumes, bitrate=self.bitrate, normalize=self.normalize
        )
        logger.info(f"{prefix}Running ffmpeg with args: {cmd[1:]}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EncodeError(f"Could not start {self.binary}: {e}") from e

        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        stderr_tail = (stderr or b"").decode("utf-8", errors="replace")[-STDERR_TAIL_CHARS:]
        if process.returncode != 0:
            logger.error(f"{prefix}ffmpeg stderr: {stderr_tail}")
            raise EncodeError(
                f"ffmpeg process exited with code {process.returncode}",
                returncode=process.returncode,
                stderr=stderr_tail,
            )
        logger.debug(f"{prefix}ffmpeg stderr: {stderr_tail}")

        if not Path(output_file).exists():
            raise EncodeError("Mixed audio file was not created", returncode=0, stderr=stderr_tail)
