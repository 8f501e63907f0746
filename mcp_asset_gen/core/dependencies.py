from functools import lru_cache

from mcp_asset_gen.connections.fal_image_provider import FalImageGenerator
from mcp_asset_gen.connections.fal_model3d_provider import FalModel3DGenerator
from mcp_asset_gen.connections.gemini_image_provider import GeminiImageGenerator
from mcp_asset_gen.connections.http_transport import HttpTransport
from mcp_asset_gen.connections.openai_image_provider import OpenAIImageGenerator
from mcp_asset_gen.core.config import settings
from mcp_asset_gen.domain.models import ImageProvider
from mcp_asset_gen.services.image_service import ImageService
from mcp_asset_gen.services.model3d_service import Model3DService


@lru_cache()
def get_http_transport() -> HttpTransport:
    """
    Dependency Factory: the shared HTTP capability.
    Holds no connection, every call opens its own client.
    """
    return HttpTransport(timeout=settings.HTTP_TIMEOUT)


@lru_cache()
def get_image_service() -> ImageService:
    """
    Dependency Factory: one generator per image provider.
    Credentials are read per request, so this is safe to build at startup.
    """
    transport = get_http_transport()
    return ImageService(
        {
            ImageProvider.OPENAI: OpenAIImageGenerator(transport, settings.OPENAI_BASE_URL),
            ImageProvider.GEMINI: GeminiImageGenerator(transport, settings.GEMINI_BASE_URL),
            ImageProvider.FALAI: FalImageGenerator(transport, settings.FAL_BASE_URL),
        }
    )


@lru_cache()
def get_model3d_service() -> Model3DService:
    transport = get_http_transport()
    return Model3DService(
        image_service=get_image_service(),
        generator=FalModel3DGenerator(transport, settings.FAL_BASE_URL),
        transport=transport,
    )
