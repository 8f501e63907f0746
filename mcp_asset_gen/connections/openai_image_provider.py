from pathlib import Path
from typing import Any, Dict

import structlog

from mcp_asset_gen.connections.http_transport import HttpTransport, provider_error
from mcp_asset_gen.core.config import settings
from mcp_asset_gen.core.credentials import get_openai_key
from mcp_asset_gen.core.exceptions import GenerationError, StorageError
from mcp_asset_gen.domain.interfaces import ImageGenerator
from mcp_asset_gen.domain.models import ImageGenerationResult
from mcp_asset_gen.services.files import numbered_output_paths, save_base64_image

logger = structlog.get_logger()

GENERATION_MODEL = "dall-e-3"
EDIT_MODEL = "gpt-image-1"


class OpenAIImageGenerator(ImageGenerator):
    name = "openai"

    def __init__(self, transport: HttpTransport, base_url: str = settings.OPENAI_BASE_URL):
        self.transport = transport
        self.base_url = base_url.rstrip("/")

    async def generate(self, options: Dict[str, Any]) -> ImageGenerationResult:
        headers = {"Authorization": f"Bearer {get_openai_key()}"}

        if options.get("input_image_path"):
            model, parameters, response = await self._edit(options, headers)
        else:
            model = GENERATION_MODEL
            parameters = {
                "model": model,
                "prompt": options["prompt"],
                "size": options.get("size"),
                "quality": options.get("quality"),
                "style": options.get("style"),
                "n": options.get("n"),
                "response_format": "b64_json",
            }
            parameters = {k: v for k, v in parameters.items() if v is not None}
            logger.info("openai_image_request", model=model, size=parameters.get("size"))
            response = await self.transport.request_json(
                f"{self.base_url}/images/generations", "POST", {**headers, "Content-Type": "application/json"}, parameters
            )

        error = provider_error(response)
        if error:
            raise GenerationError(f"OpenAI API error: {error}")

        images = response.get("data") or []
        if not images:
            raise GenerationError("No images in OpenAI response")

        saved_paths = []
        for item, path in zip(images, numbered_output_paths(options["output_path"], len(images))):
            if item.get("b64_json"):
                saved_paths.append(await save_base64_image(item["b64_json"], path))
            elif item.get("url"):
                saved_paths.append(await self.transport.download(item["url"], path))

        return ImageGenerationResult(
            provider="OpenAI",
            model=model,
            saved_paths=saved_paths,
            prompt_used=options["prompt"],
            revised_prompt=images[0].get("revised_prompt"),
            parameters=parameters,
        )

    async def _edit(self, options: Dict[str, Any], headers: Dict[str, str]):
        source = Path(options["input_image_path"])
        try:
            image_bytes = source.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read image file {source}: {e}", original_error=e)

        parameters = {"model": EDIT_MODEL, "prompt": options["prompt"], "n": str(options.get("n") or 1)}
        if options.get("size"):
            parameters["size"] = options["size"]

        logger.info("openai_image_edit_request", model=EDIT_MODEL, input_image=str(source))
        response = await self.transport.request_json(
            f"{self.base_url}/images/edits",
            "POST",
            headers,
            data=parameters,
            files=[("image", (source.name, image_bytes, "image/png"))],
        )
        return EDIT_MODEL, {**parameters, "input_image_path": str(source)}, response
