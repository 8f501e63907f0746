from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, List, Sequence, Union

import structlog

from mcp_asset_gen.core.telemetry import tracer
from mcp_asset_gen.domain.models import ImageProvider, ReferenceImage, Viewpoint
from mcp_asset_gen.services.files import remove_file, sibling_path

if TYPE_CHECKING:
    from mcp_asset_gen.services.image_service import ImageService

logger = structlog.get_logger()

DEFAULT_VIEWS = (Viewpoint.FRONT, Viewpoint.BACK, Viewpoint.TOP)

REFERENCE_STYLE = (
    "technical reference image, clean white background, "
    "professional 3D modeling reference, consistent lighting, "
    "detailed but clear, suitable for 3D reconstruction"
)

VIEW_CLAUSES = MappingProxyType(
    {
        Viewpoint.FRONT: "front-facing view showing main features and proportions",
        Viewpoint.BACK: "rear view showing back details and construction",
        Viewpoint.TOP: "overhead view showing top layout and proportions",
        Viewpoint.LEFT: "left side profile showing side details and proportions",
        Viewpoint.RIGHT: "right side profile showing opposite side details",
    }
)

# Square output keeps every view at the same framing
SQUARE_IMAGE_OPTIONS = MappingProxyType(
    {
        ImageProvider.OPENAI: MappingProxyType({"size": "1024x1024"}),
        ImageProvider.FALAI: MappingProxyType({"image_size": "square_hd"}),
        ImageProvider.GEMINI: MappingProxyType({}),
    }
)


def build_reference_prompt(prompt: str, view: Union[str, Viewpoint]) -> str:
    view = Viewpoint(view)
    return f"{prompt}, {view.value} view, {REFERENCE_STYLE}, {VIEW_CLAUSES[view]}"


def reference_output_path(output_base_path: str, view: Union[str, Viewpoint]) -> str:
    return sibling_path(output_base_path, f"_ref_{Viewpoint(view).value}.png")


async def generate_view_references(
    prompt: str,
    output_base_path: str,
    views: Sequence[Union[str, Viewpoint]] = DEFAULT_VIEWS,
    model: Union[str, ImageProvider] = ImageProvider.GEMINI,
    *,
    image_service: "ImageService",
) -> List[ReferenceImage]:
    """
    Generates one reference image per view, strictly one after another and in
    the given order. A failed view is logged and skipped; an empty result is
    for the caller to judge.
    """
    provider = ImageProvider(model)
    extra: Dict[str, Any] = dict(SQUARE_IMAGE_OPTIONS[provider])
    references: List[ReferenceImage] = []

    with tracer.start_as_current_span("generate_reference_images") as span:
        span.set_attribute("reference.model", provider.value)
        span.set_attribute("reference.views", [Viewpoint(v).value for v in views])

        for view in views:
            view = Viewpoint(view)
            output_path = reference_output_path(output_base_path, view)
            try:
                result = await image_service.generate_image(
                    provider, build_reference_prompt(prompt, view), output_path, **extra
                )
            except Exception as e:
                logger.warning("reference_image_failed", view=view.value, provider=provider.value, error=str(e))
                continue

            references.extend(ReferenceImage(view=view, path=path) for path in result.saved_paths)
            logger.info("reference_image_generated", view=view.value, paths=result.saved_paths)

        span.set_attribute("reference.generated", len(references))

    return references


async def generate_reference_images(
    prompt: str,
    output_base_path: str,
    views: Sequence[Union[str, Viewpoint]] = DEFAULT_VIEWS,
    model: Union[str, ImageProvider] = ImageProvider.GEMINI,
    *,
    image_service: "ImageService",
) -> List[str]:
    references = await generate_view_references(
        prompt, output_base_path, views, model, image_service=image_service
    )
    return [ref.path for ref in references]


@dataclass
class ReferenceImageSet:
    """Synthesized references owned by one generation call."""

    references: List[ReferenceImage] = field(default_factory=list)
    diagnostics: List[str] = field(default_factory=list)

    @property
    def paths(self) -> List[str]:
        return [ref.path for ref in self.references]

    def add(self, references: Sequence[ReferenceImage]) -> None:
        self.references.extend(references)

    def discard(self) -> None:
        for ref in self.references:
            problem = remove_file(ref.path)
            if problem:
                self.diagnostics.append(problem)


@contextmanager
def reference_image_scope(cleanup: bool = True) -> Iterator[ReferenceImageSet]:
    """
    Yields an empty ReferenceImageSet and deletes whatever was added to it on
    exit, success or failure. Deletion problems end up in `diagnostics`.
    """
    reference_set = ReferenceImageSet()
    try:
        yield reference_set
    finally:
        if cleanup and reference_set.references:
            reference_set.discard()
            logger.info(
                "reference_images_cleaned_up",
                count=len(reference_set.references),
                failures=len(reference_set.diagnostics),
            )
