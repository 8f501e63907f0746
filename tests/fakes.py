import json
from pathlib import Path
from typing import Any, Callable, Dict, List

import httpx
from PIL import Image

from mcp_asset_gen.domain.interfaces import ImageGenerator
from mcp_asset_gen.domain.models import ImageGenerationResult


class RecordingHandler:
    """
    httpx.MockTransport handler that remembers every request.
    `respond` maps a request to a response; defaults to an empty JSON object.
    """

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response] = None):
        self.respond = respond or (lambda request: httpx.Response(200, json={}))
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def json_bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.method == "POST"]


class FileWritingGenerator(ImageGenerator):
    """Stands in for a provider: writes a small PNG to the requested path."""

    def __init__(self, name: str = "gemini", fail_on: tuple = ()):
        self.name = name
        self.fail_on = fail_on
        self.prompts: List[str] = []
        self.options: List[Dict[str, Any]] = []

    async def generate(self, options: Dict[str, Any]) -> ImageGenerationResult:
        self.prompts.append(options["prompt"])
        self.options.append(options)
        if any(marker in options["prompt"] for marker in self.fail_on):
            raise RuntimeError("provider exploded")

        path = Path(options["output_path"])
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", (8, 8), color="white").save(path, "PNG")
        return ImageGenerationResult(
            provider=self.name, model="stub", saved_paths=[str(path)], prompt_used=options["prompt"]
        )


