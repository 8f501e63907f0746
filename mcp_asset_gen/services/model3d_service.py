from typing import Any, List, Mapping, Optional, Sequence, Union

import structlog

from mcp_asset_gen.connections.http_transport import HttpTransport
from mcp_asset_gen.core.exceptions import NoInputImagesError, NoReferenceImagesError
from mcp_asset_gen.core.telemetry import tracer
from mcp_asset_gen.domain.interfaces import Model3DGenerator
from mcp_asset_gen.domain.models import Model3DGenerationResult, ModelFamily, Variant, Viewpoint
from mcp_asset_gen.services.files import get_model3d_info
from mcp_asset_gen.services.image_service import ImageService
from mcp_asset_gen.services.options import compact, merge_model3d_options, validate_model3d_options
from mcp_asset_gen.services.reference_images import generate_view_references, reference_image_scope
from mcp_asset_gen.services.variants import ensure_variant_supported, select_variant, supports_multi_image

logger = structlog.get_logger()


def plan_reference_views(
    family: ModelFamily, variant: Optional[Variant], views: Sequence[Viewpoint]
) -> List[Viewpoint]:
    """
    Which views to synthesize when the caller sent a prompt but no images.
    A single image variant (explicit, or implied by a family without multi
    image input) only ever consumes the front view.
    """
    if variant is not None:
        multi = Variant(variant).is_multi
    else:
        multi = supports_multi_image(family)

    if multi:
        return list(views)
    return [Viewpoint.FRONT]


class Model3DService:
    """
    Turns a 3D option bag into a mesh on disk: optional reference synthesis,
    variant resolution, dispatch to the provider, download.
    """

    def __init__(self, image_service: ImageService, generator: Model3DGenerator, transport: HttpTransport):
        self.image_service = image_service
        self.generator = generator
        self.transport = transport

    async def generate(self, options: Mapping[str, Any]) -> Model3DGenerationResult:
        # 1. Validate what the caller sent, then the bag with defaults filled in
        user_options = compact(options)
        validate_model3d_options(user_options)
        opts = validate_model3d_options(merge_model3d_options(user_options))

        family = ModelFamily(opts.model)
        explicit_variant = opts.variant
        shape_options = opts.model_dump(mode="json", exclude_none=True)

        with tracer.start_as_current_span("generate_3d_model") as span:
            span.set_attribute("model3d.family", family.value)
            logger.info(
                "model3d_dispatch_started",
                family=family.value,
                variant=explicit_variant.value if explicit_variant else None,
                output_path=opts.output_path,
            )

            images = list(opts.input_image_paths or [])
            requested_views: List[Viewpoint] = []

            with reference_image_scope(cleanup=bool(opts.cleanup_references)) as reference_set:
                # 2. Synthesize references when only a prompt was given
                if not images and opts.prompt and opts.auto_generate_references:
                    requested_views = plan_reference_views(family, explicit_variant, opts.reference_views or [])
                    reference_set.add(
                        await generate_view_references(
                            opts.prompt,
                            opts.output_path,
                            requested_views,
                            opts.reference_model,
                            image_service=self.image_service,
                        )
                    )
                    if not reference_set.references:
                        raise NoReferenceImagesError("Failed to generate any reference images from the prompt")
                    images = reference_set.paths

                if not images:
                    raise NoInputImagesError("No input images available for 3D model generation")

                # 3. Resolve the variant
                variant = explicit_variant or select_variant(family, len(images), bool(opts.prefer_fast))
                ensure_variant_supported(family, variant)
                span.set_attribute("model3d.variant", variant.value)

                # 4. Shape the request, dispatch, download
                body = self.generator.build_request_body(family, variant, images, shape_options)
                artifact = await self.generator.generate_mesh(family, variant, body)
                saved_path = await self.transport.download(artifact.url, opts.output_path)
                model_info = get_model3d_info(saved_path)

                # 5. Assemble the result
                provenance = {}
                if reference_set.references:
                    provenance = {
                        "auto_generated_references": reference_set.paths,
                        "reference_model_used": opts.reference_model.value,
                        "reference_views_generated": [view.value for view in requested_views],
                    }

                result = Model3DGenerationResult(
                    provider=self.generator.provider,
                    model=self.generator.model_name(family),
                    variant=variant.value,
                    saved_paths=[saved_path],
                    prompt_used=opts.prompt,
                    input_images=self.generator.consumed_references(family, variant, images),
                    generation_time=artifact.generation_time,
                    model_info=model_info,
                    parameters=body,
                    **provenance,
                )

            if reference_set.diagnostics:
                logger.warning("reference_cleanup_incomplete", problems=reference_set.diagnostics)

            logger.info(
                "model3d_dispatch_finished",
                family=family.value,
                variant=variant.value,
                saved_path=saved_path,
                file_size=model_info.file_size,
            )
            return result


async def generate_3d_model_smart(
    service: Model3DService,
    prompt: Optional[str],
    output_path: str,
    model: Union[str, ModelFamily],
    **options: Any,
) -> Model3DGenerationResult:
    """Prompt first entry point: references are synthesized unless images are passed in options."""
    model_value = model.value if isinstance(model, ModelFamily) else model
    return await service.generate({**options, "prompt": prompt, "output_path": output_path, "model": model_value})
