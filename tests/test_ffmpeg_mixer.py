"""
Tests for the ffmpeg mixdown command and process handling

The integration tests at the bottom run the real ffmpeg binary and are
skipped when ffmpeg/ffprobe (with an MP3 encoder) are not installed.
"""
import asyncio
import shutil
import subprocess
from pathlib import Path

import pytest

from services.errors import EncodeError
from services.ffmpeg_mixer import FfmpegMixer, build_ffmpeg_args, build_filter_graph


def test_filter_graph_gains_each_input_and_keeps_longest_duration():
    graph = build_filter_graph(2, [1.0, 0.5])

    assert graph == (
        "[0:a]volume=1.0[a0];"
        "[1:a]volume=0.5[a1];"
        "[a0][a1]amix=inputs=2:duration=longest:normalize=0[out]"
    )


def test_filter_graph_defaults_missing_volumes_to_unity():
    graph = build_filter_graph(3, [2])

    assert "[0:a]volume=2.0[a0]" in graph
    assert "[1:a]volume=1.0[a1]" in graph
    assert "[2:a]volume=1.0[a2]" in graph
    assert graph.endswith("[a0][a1][a2]amix=inputs=3:duration=longest:normalize=0[out]")


def test_filter_graph_normalize_flag():
    assert "normalize=1" in build_filter_graph(1, [], normalize=True)


def test_ffmpeg_args_preserve_input_order_and_encode_mp3():
    args = build_ffmpeg_args([Path("/s/a.wav"), Path("/s/b.flac")], Path("/s/out.mp3"), [1.0, 0.5])

    assert args[:6] == ["-hide_banner", "-nostdin", "-i", "/s/a.wav", "-i", "/s/b.flac"]
    assert args[args.index("-map") + 1] == "[out]"
    assert args[args.index("-c:a") + 1] == "libmp3lame"
    assert args[args.index("-b:a") + 1] == "192k"
    assert args[-2:] == ["-y", "/s/out.mp3"]


class FakeProcess:
    def __init__(self, returncode, stderr=b""):
        self.returncode = returncode
        self._stderr = stderr

    async def communicate(self):
        return b"", self._stderr


def fake_exec(returncode, stderr=b"", output=None, calls=None):
    async def create_subprocess_exec(*cmd, **kwargs):
        if calls is not None:
            calls.append(list(cmd))
        if output is not None:
            output.write_bytes(b"ID3")
        return FakeProcess(returncode, stderr)
    return create_subprocess_exec


@pytest.mark.asyncio
async def test_mix_runs_configured_binary(tmp_path, monkeypatch):
    output = tmp_path / "out.mp3"
    calls = []
    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec(0, output=output, calls=calls))

    await FfmpegMixer(binary="/opt/ffmpeg/bin/ffmpeg", bitrate="192k").mix([tmp_path / "a.wav"], output, [0.8])

    assert calls[0][0] == "/opt/ffmpeg/bin/ffmpeg"
    assert "[0:a]volume=0.8[a0];[a0]amix=inputs=1:duration=longest:normalize=0[out]" in calls[0]


@pytest.mark.asyncio
async def test_mix_nonzero_exit_raises(tmp_path, monkeypatch):
    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec(1, stderr=b"Invalid data found"))

    with pytest.raises(EncodeError) as exc_info:
        await FfmpegMixer().mix([tmp_path / "a.wav"], tmp_path / "out.mp3", [1.0])

    assert exc_info.value.returncode == 1
    assert "exited with code 1" in str(exc_info.value)
    assert "Invalid data found" in exc_info.value.stderr


@pytest.mark.asyncio
async def test_mix_missing_output_raises(tmp_path, monkeypatch):
    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec(0))

    with pytest.raises(EncodeError, match="was not created"):
        await FfmpegMixer().mix([tmp_path / "a.wav"], tmp_path / "out.mp3", [1.0])


@pytest.mark.asyncio
async def test_mix_missing_binary_raises(tmp_path):
    mixer = FfmpegMixer(binary=str(tmp_path / "no-such-ffmpeg"))

    with pytest.raises(EncodeError, match="Could not start"):
        await mixer.mix([tmp_path / "a.wav"], tmp_path / "out.mp3", [1.0])


# ============================================================================
# REAL FFMPEG
# ============================================================================

def _ffmpeg_with_mp3() -> bool:
    if not shutil.which("ffmpeg") or not shutil.which("ffprobe"):
        return False
    encoders = subprocess.run(["ffmpeg", "-hide_banner", "-encoders"], capture_output=True, text=True)
    return "libmp3lame" in encoders.stdout


requires_ffmpeg = pytest.mark.skipif(not _ffmpeg_with_mp3(), reason="ffmpeg with libmp3lame not installed")


def make_tone(path: Path, seconds: float, frequency: int = 440) -> Path:
    subprocess.run(
        ["ffmpeg", "-hide_banner", "-loglevel", "error", "-f", "lavfi",
         "-i", f"sine=frequency={frequency}:duration={seconds}", "-y", str(path)],
        check=True,
    )
    return path


def duration_of(path: Path) -> float:
    result = subprocess.run(
        ["ffprobe", "-v", "error", "-show_entries", "format=duration",
         "-of", "default=noprint_wrappers=1:nokey=1", str(path)],
        capture_output=True, text=True, check=True,
    )
    return float(result.stdout.strip())


@requires_ffmpeg
@pytest.mark.asyncio
async def test_mix_duration_follows_longest_stem(tmp_path):
    short = make_tone(tmp_path / "short.wav", 2)
    long = make_tone(tmp_path / "long.wav", 5, frequency=660)
    output = tmp_path / "mixed.mp3"

    await FfmpegMixer().mix([short, long], output, [1.0, 0.5])

    assert duration_of(output) == pytest.approx(5.0, abs=0.15)


@requires_ffmpeg
@pytest.mark.asyncio
async def test_mix_single_stem_keeps_its_duration(tmp_path):
    stem = make_tone(tmp_path / "stem.wav", 3)
    output = tmp_path / "mixed.mp3"

    await FfmpegMixer().mix([stem], output, [1.0])

    assert duration_of(output) == pytest.approx(duration_of(stem), abs=0.15)


@requires_ffmpeg
@pytest.mark.asyncio
async def test_mix_undecodable_input_raises(tmp_path):
    garbage = tmp_path / "garbage.wav"
    garbage.write_bytes(b"definitely not audio")

    with pytest.raises(EncodeError):
        await FfmpegMixer().mix([garbage], tmp_path / "mixed.mp3", [1.0])
