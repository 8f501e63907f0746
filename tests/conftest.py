import httpx
import pytest
from PIL import Image

from mcp_asset_gen.connections.http_transport import HttpTransport
from mcp_asset_gen.domain.models import ImageProvider
from mcp_asset_gen.services.image_service import ImageService
from fakes import FileWritingGenerator, RecordingHandler


@pytest.fixture
def fake_credentials(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("GEMINI_API_KEY", "gm-test")
    monkeypatch.setenv("FAL_AI_API_KEY", "fal-test")


@pytest.fixture
def make_image(tmp_path):
    def _make(name: str = "input.png", size=(4, 4), color=(255, 255, 255)):
        p = tmp_path / name
        Image.new("RGB", size, color=color).save(p)
        return p

    return _make


@pytest.fixture
def recording_handler():
    return RecordingHandler()


@pytest.fixture
def http_transport(recording_handler):
    return HttpTransport(timeout=None, transport=httpx.MockTransport(recording_handler))


@pytest.fixture
def stub_generators():
    return {provider: FileWritingGenerator(provider.value) for provider in ImageProvider}


@pytest.fixture
def image_service(stub_generators):
    return ImageService(stub_generators)
