from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog

from mcp_asset_gen.connections.http_transport import HttpTransport, provider_error
from mcp_asset_gen.core.config import settings
from mcp_asset_gen.core.credentials import get_fal_key
from mcp_asset_gen.core.exceptions import GenerationError, IncompatibleVariantError, InsufficientViewsError
from mcp_asset_gen.domain.interfaces import Model3DGenerator
from mcp_asset_gen.domain.models import MeshArtifact, ModelFamily, Variant
from mcp_asset_gen.services.files import convert_paths_to_base64_uris

logger = structlog.get_logger()


@dataclass(frozen=True)
class Endpoint:
    app: str
    label: str
    # Response field holding the mesh: {"model_mesh": {"url": ...}} or {"model_url": ...}
    mesh_field: str


ENDPOINTS: Mapping[Tuple[ModelFamily, Variant], Endpoint] = MappingProxyType(
    {
        (ModelFamily.TRELLIS, Variant.SINGLE): Endpoint("fal-ai/trellis", "Trellis", "model_mesh"),
        (ModelFamily.TRELLIS, Variant.MULTI): Endpoint("fal-ai/trellis/multi", "Trellis Multi", "model_mesh"),
        (ModelFamily.HUNYUAN3D, Variant.SINGLE): Endpoint("fal-ai/hunyuan3d/v2", "Hunyuan3D", "model_mesh"),
        (ModelFamily.HUNYUAN3D, Variant.MULTI): Endpoint(
            "fal-ai/hunyuan3d/v2/multi-view", "Hunyuan3D Multi", "model_url"
        ),
        (ModelFamily.HUNYUAN3D, Variant.SINGLE_TURBO): Endpoint(
            "fal-ai/hunyuan3d/v2/turbo", "Hunyuan3D Turbo", "model_url"
        ),
        (ModelFamily.HUNYUAN3D, Variant.MULTI_TURBO): Endpoint(
            "fal-ai/hunyuan3d/v2/multi-view/turbo", "Hunyuan3D Multi Turbo", "model_url"
        ),
        (ModelFamily.HUNYUAN_WORLD, Variant.SINGLE): Endpoint(
            "fal-ai/hunyuan_world/image-to-world", "Hunyuan World", "model_url"
        ),
    }
)

MODEL_NAMES: Mapping[ModelFamily, str] = MappingProxyType(
    {
        ModelFamily.TRELLIS: "trellis",
        ModelFamily.HUNYUAN3D: "hunyuan3d-2.0",
        ModelFamily.HUNYUAN_WORLD: "hunyuan-world",
    }
)

# Hunyuan3D multi-view maps images by position, first three are mandatory
VIEW_SLOTS = ("front_image_url", "back_image_url", "left_image_url")

TRELLIS_SAMPLING = MappingProxyType(
    {
        "ss_guidance_strength": 7.5,
        "ss_sampling_steps": 12,
        "slat_guidance_strength": 3,
        "slat_sampling_steps": 12,
        "mesh_simplify": 0.95,
    }
)


def _is_positional(family: ModelFamily, variant: Variant) -> bool:
    return family == ModelFamily.HUNYUAN3D and variant.is_multi


class FalModel3DGenerator(Model3DGenerator):
    provider = "FAL.ai"

    def __init__(self, transport: HttpTransport, base_url: str = settings.FAL_BASE_URL):
        self.transport = transport
        self.base_url = base_url.rstrip("/")

    def endpoint(self, family: ModelFamily, variant: Variant) -> Endpoint:
        try:
            return ENDPOINTS[(ModelFamily(family), Variant(variant))]
        except KeyError:
            raise IncompatibleVariantError(f"No {family} endpoint for the {variant} variant")

    def model_name(self, family: ModelFamily) -> str:
        return MODEL_NAMES[ModelFamily(family)]

    def consumed_references(self, family: ModelFamily, variant: Variant, image_references: List[str]) -> List[str]:
        if _is_positional(family, variant):
            return list(image_references[: len(VIEW_SLOTS)])
        if Variant(variant).is_multi:
            return list(image_references)
        return list(image_references[:1])

    def build_request_body(
        self, family: ModelFamily, variant: Variant, image_references: List[str], options: Dict[str, Any]
    ) -> Dict[str, Any]:
        family, variant = ModelFamily(family), Variant(variant)
        endpoint = self.endpoint(family, variant)

        # Count check comes first: nothing is read or sent for a request that cannot work
        if _is_positional(family, variant) and len(image_references) < len(VIEW_SLOTS):
            raise InsufficientViewsError(
                f"{endpoint.label} requires at least 3 images (front, back, left views). "
                f"Only {len(image_references)} images provided."
            )

        uris = convert_paths_to_base64_uris(self.consumed_references(family, variant, image_references))
        fmt = options.get("format") or "glb"

        if family == ModelFamily.TRELLIS:
            body: Dict[str, Any] = {"image_urls": uris} if variant.is_multi else {"image_url": uris[0]}
            body["texture_size"] = options.get("texture_size") or 1024
            body.update(TRELLIS_SAMPLING)
            if variant.is_multi:
                body["multiimage_algo"] = options.get("multiimage_algo") or "stochastic"
            return body

        if family == ModelFamily.HUNYUAN3D:
            if variant.is_multi:
                body = dict(zip(VIEW_SLOTS, uris))
                body["format"] = fmt
                return body
            if variant.is_turbo:
                return {"image_url": uris[0], "format": fmt}
            textured = options.get("textured_mesh")
            return {
                "input_image_url": uris[0],
                "num_inference_steps": 50,
                "guidance_scale": 7.5,
                "octree_resolution": 256,
                "textured_mesh": True if textured is None else textured,
            }

        body = {
            "image_url": uris[0],
            "camera_distance": options.get("camera_distance") or 2.5,
            "fov": options.get("fov") or 40,
            "num_inference_steps": options.get("num_inference_steps") or 50,
            "guidance_scale": options.get("guidance_scale") or 7.5,
        }
        if options.get("seed") is not None:
            body["seed"] = options["seed"]
        return body

    async def generate_mesh(self, family: ModelFamily, variant: Variant, body: Dict[str, Any]) -> MeshArtifact:
        endpoint = self.endpoint(family, variant)
        headers = {"Authorization": f"Key {get_fal_key()}", "Content-Type": "application/json"}

        logger.info("model3d_request", app=endpoint.app, family=ModelFamily(family).value, variant=Variant(variant).value)
        response = await self.transport.request_json(f"{self.base_url}/{endpoint.app}", "POST", headers, body)

        error = provider_error(response)
        if error:
            raise GenerationError(f"{endpoint.label} API error: {error}")

        mesh_url = self._mesh_url(response, endpoint)
        if not mesh_url:
            raise GenerationError(f"No model mesh in {endpoint.label} response")

        timings = response.get("timings") or {}
        return MeshArtifact(url=mesh_url, generation_time=timings.get("inference"))

    @staticmethod
    def _mesh_url(response: Dict[str, Any], endpoint: Endpoint) -> Optional[str]:
        fallback = "model_url" if endpoint.mesh_field == "model_mesh" else "model_mesh"
        for key in (endpoint.mesh_field, fallback):
            value = response.get(key)
            if isinstance(value, dict) and value.get("url"):
                return value["url"]
            if isinstance(value, str) and value:
                return value
        return None
