from typing import Any, Mapping, Union

import structlog

from mcp_asset_gen.core.exceptions import ValidationException
from mcp_asset_gen.domain.interfaces import ImageGenerator
from mcp_asset_gen.domain.models import ImageGenerationResult, ImageProvider
from mcp_asset_gen.services.options import compact, merge_image_options, validate_image_options

logger = structlog.get_logger()


class ImageService:
    """
    Single entry point for 2D generation: normalizes the option bag for the
    chosen provider, then hands it to that provider's generator.
    """

    def __init__(self, generators: Mapping[ImageProvider, ImageGenerator]):
        self.generators = dict(generators)

    async def generate_image(
        self,
        provider: Union[str, ImageProvider],
        prompt: str,
        output_path: str,
        **options: Any,
    ) -> ImageGenerationResult:
        provider_value = provider.value if isinstance(provider, ImageProvider) else provider
        user_options = compact({"provider": provider_value, "prompt": prompt, "output_path": output_path, **options})

        # Raw bag first so errors name what the caller sent, then the resolved bag
        validate_image_options(user_options)
        resolved = merge_image_options(user_options)
        validate_image_options(resolved)

        selected = ImageProvider(provider_value)
        generator = self.generators.get(selected)
        if generator is None:
            raise ValidationException(f"Image provider {selected.value} is not configured")

        logger.info("image_generation_started", provider=selected.value, output_path=output_path)
        result = await generator.generate(resolved)
        logger.info("image_generation_finished", provider=selected.value, saved_paths=result.saved_paths)
        return result
