from typing import Any, Dict

import structlog

from mcp_asset_gen.connections.http_transport import HttpTransport, provider_error
from mcp_asset_gen.core.config import settings
from mcp_asset_gen.core.credentials import get_fal_key
from mcp_asset_gen.core.exceptions import GenerationError
from mcp_asset_gen.domain.interfaces import ImageGenerator
from mcp_asset_gen.domain.models import ImageGenerationResult
from mcp_asset_gen.services.files import numbered_output_paths, to_data_uri

logger = structlog.get_logger()

GENERATE_APP = "fal-ai/qwen-image"
EDIT_APP = "fal-ai/qwen-image-edit"


class FalImageGenerator(ImageGenerator):
    """FAL.ai Qwen image generation, or editing when an input image is given."""

    name = "falai"

    def __init__(self, transport: HttpTransport, base_url: str = settings.FAL_BASE_URL):
        self.transport = transport
        self.base_url = base_url.rstrip("/")

    async def generate(self, options: Dict[str, Any]) -> ImageGenerationResult:
        headers = {"Authorization": f"Key {get_fal_key()}", "Content-Type": "application/json"}

        body: Dict[str, Any] = {
            "prompt": options["prompt"],
            "image_size": options.get("image_size"),
            "num_inference_steps": options.get("num_inference_steps"),
            "guidance_scale": options.get("guidance_scale"),
            "num_images": 1,
        }
        app = GENERATE_APP
        if options.get("input_image_path"):
            app = EDIT_APP
            body["image_url"] = to_data_uri(options["input_image_path"])
        body = {k: v for k, v in body.items() if v is not None}

        logger.info("fal_image_request", app=app, image_size=body.get("image_size"))
        response = await self.transport.request_json(f"{self.base_url}/{app}", "POST", headers, body)

        error = provider_error(response)
        if error:
            raise GenerationError(f"FAL.ai API error: {error}")

        urls = [image["url"] for image in response.get("images") or [] if image.get("url")]
        if not urls:
            raise GenerationError("No images in FAL.ai response")

        saved_paths = [
            await self.transport.download(url, path)
            for url, path in zip(urls, numbered_output_paths(options["output_path"], len(urls)))
        ]

        parameters = dict(body)
        if "image_url" in parameters:
            # keep the path, not the encoded payload
            parameters["image_url"] = options["input_image_path"]

        return ImageGenerationResult(
            provider="FAL.ai",
            model=app,
            saved_paths=saved_paths,
            prompt_used=options["prompt"],
            parameters=parameters,
        )
