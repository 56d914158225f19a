"""
Pytest configuration and fixtures for testing
"""
import httpx
import pytest
from fastapi.testclient import TestClient

from main import app
from routers.mix_router import get_mix_service
from services.errors import EncodeError
from services.mix_service import MixService
from services.stem_fetcher import StemFetcher

FAKE_STEM = b"RIFF\x24\x00\x00\x00WAVEfmt "
FAKE_MP3 = b"ID3\x04\x00\x00\x00\x00\x00\x00" + b"\xff\xfb\x90\x00" * 64


class StemServer:
    """
    httpx.MockTransport handler standing in for the remote stem host.

    Records every requested URL; URLs in `failing` answer 404.
    """

    def __init__(self):
        self.requests = []
        self.failing = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url in self.failing:
            return httpx.Response(404)
        return httpx.Response(200, content=FAKE_STEM)


class FakeMixer:
    """Records mix calls and writes a fake MP3 instead of running ffmpeg"""

    def __init__(self):
        self.calls = []
        self.fail = False

    async def mix(self, input_files, output_file, volumes, request_id=None):
        self.calls.append({
            "input_files": list(input_files),
            "inputs_present": [path.exists() for path in input_files],
            "output_file": output_file,
            "volumes": list(volumes),
        })
        if self.fail:
            output_file.write_bytes(b"partial")
            raise EncodeError("ffmpeg process exited with code 1", returncode=1)
        output_file.write_bytes(FAKE_MP3)


@pytest.fixture
def scratch_dir(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def stem_server():
    return StemServer()


@pytest.fixture
def fake_mixer():
    return FakeMixer()


@pytest.fixture
def mix_service(scratch_dir, stem_server, fake_mixer):
    fetcher = StemFetcher(timeout=5.0, transport=httpx.MockTransport(stem_server))
    return MixService(scratch_dir=scratch_dir, fetcher=fetcher, mixer=fake_mixer)


@pytest.fixture
def client(mix_service):
    """FastAPI TestClient with the mix service wired to fake stems and a fake mixer"""
    app.dependency_overrides[get_mix_service] = lambda: mix_service

    test_client = TestClient(app)

    yield test_client

    # Cleanup: remove dependency overrides
    app.dependency_overrides.clear()
