from pathlib import Path
from typing import Any, Dict, List

import structlog

from mcp_asset_gen.connections.http_transport import HttpTransport, provider_error
from mcp_asset_gen.core.config import settings
from mcp_asset_gen.core.credentials import get_gemini_key
from mcp_asset_gen.core.exceptions import GenerationError
from mcp_asset_gen.domain.interfaces import ImageGenerator
from mcp_asset_gen.domain.models import ImageGenerationResult
from mcp_asset_gen.services.files import encode_image_to_base64, numbered_output_paths, save_base64_image

logger = structlog.get_logger()

_MIME_TYPES = {".jpg": "image/jpeg", ".jpeg": "image/jpeg", ".webp": "image/webp"}


class GeminiImageGenerator(ImageGenerator):
    """Gemini native image generation (generateContent with IMAGE modality)."""

    name = "gemini"

    def __init__(self, transport: HttpTransport, base_url: str = settings.GEMINI_BASE_URL):
        self.transport = transport
        self.base_url = base_url.rstrip("/")

    async def generate(self, options: Dict[str, Any]) -> ImageGenerationResult:
        model = options["model"]
        headers = {"x-goog-api-key": get_gemini_key(), "Content-Type": "application/json"}

        parts: List[Dict[str, Any]] = [{"text": options["prompt"]}]
        input_paths = options.get("input_image_paths") or []
        for path in input_paths:
            parts.append(
                {
                    "inline_data": {
                        "mime_type": _MIME_TYPES.get(Path(path).suffix.lower(), "image/png"),
                        "data": encode_image_to_base64(path),
                    }
                }
            )

        body = {
            "contents": [{"parts": parts}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }

        logger.info("gemini_image_request", model=model, input_images=len(input_paths))
        response = await self.transport.request_json(
            f"{self.base_url}/models/{model}:generateContent", "POST", headers, body
        )

        error = provider_error(response)
        if error:
            raise GenerationError(f"Gemini API error: {error}")

        images = [
            part.get("inlineData") or part.get("inline_data")
            for candidate in response.get("candidates") or []
            for part in (candidate.get("content") or {}).get("parts") or []
            if part.get("inlineData") or part.get("inline_data")
        ]
        if not images:
            raise GenerationError("No image data in Gemini response")

        saved_paths = [
            await save_base64_image(image["data"], path)
            for image, path in zip(images, numbered_output_paths(options["output_path"], len(images)))
        ]

        return ImageGenerationResult(
            provider="Gemini",
            model=model,
            saved_paths=saved_paths,
            prompt_used=options["prompt"],
            parameters={"model": model, "input_image_paths": input_paths},
        )
