"""
Prompt building wrappers for game asset work. Each helper turns a few high
level knobs into a single provider prompt and delegates to the ImageService.
"""

from typing import Any, Dict, List, Optional, Sequence, Union

import structlog

from mcp_asset_gen.core.exceptions import ValidationException
from mcp_asset_gen.domain.models import BackgroundColor, ImageGenerationResult, ImageProvider
from mcp_asset_gen.services.files import sibling_path
from mcp_asset_gen.services.image_service import ImageService
from mcp_asset_gen.services.reference_images import SQUARE_IMAGE_OPTIONS
from mcp_asset_gen.services.transparency import generate_transparent_result

logger = structlog.get_logger()

PIXEL_DIMENSIONS = ("8x8", "16x16", "32x32", "48x48", "64x64", "96x96")
TEXTURE_SIZES = ("512x512", "1024x1024", "2048x2048")
MATERIAL_TYPES = ("diffuse", "normal", "roughness", "displacement")
OBJECT_VIEWPOINTS = ("front", "back", "left", "right", "top", "bottom", "perspective")
DEFAULT_OBJECT_VIEWPOINTS = ("front", "back", "left", "right")

_MATERIAL_CLAUSES = {
    "diffuse": "diffuse color map with natural albedo colors",
    "normal": "tangent space normal map in blue-purple tones",
    "roughness": "grayscale roughness map",
    "displacement": "grayscale height displacement map",
}


def _check_choice(label: str, value: str, choices: Sequence[str]) -> None:
    if value not in choices:
        raise ValidationException(f"{label} must be one of: {', '.join(choices)}")


def _reference_options(provider: ImageProvider, reference_paths: Optional[List[str]]) -> Dict[str, Any]:
    """Gemini takes every reference, the edit endpoints of the others take the first one."""
    if not reference_paths:
        return {}
    if provider == ImageProvider.GEMINI:
        return {"input_image_paths": list(reference_paths)}
    return {"input_image_path": reference_paths[0]}


async def _generate(
    image_service: ImageService,
    provider: ImageProvider,
    prompt: str,
    output_path: str,
    transparent_background: bool = False,
    background_color: Union[str, BackgroundColor] = BackgroundColor.WHITE,
    tolerance: float = 30,
    **options: Any,
) -> ImageGenerationResult:
    if not transparent_background:
        return await image_service.generate_image(provider, prompt, output_path, **options)

    solid = await generate_transparent_result(
        image_service, prompt, output_path, provider, background_color, tolerance, **options
    )
    return ImageGenerationResult(
        provider=solid.provider,
        model=solid.model,
        saved_paths=solid.saved_paths,
        prompt_used=prompt,
        parameters={
            "transparent_background": True,
            "background_color": BackgroundColor(background_color).value,
            "tolerance": tolerance,
            **options,
        },
    )


async def generate_character_sheet(
    image_service: ImageService,
    character_description: str,
    output_path: str,
    reference_image_paths: Optional[List[str]] = None,
    model: Union[str, ImageProvider] = ImageProvider.GEMINI,
    style: Optional[str] = None,
    include_expressions: bool = False,
    include_poses: bool = False,
) -> ImageGenerationResult:
    provider = ImageProvider(model)

    parts = [f"Character sheet of {character_description}"]
    if style:
        parts.append(f"{style} art style")
    parts.append("full body turnaround with front, side and back views")
    if include_expressions:
        parts.append("multiple facial expressions (happy, sad, angry, surprised)")
    if include_poses:
        parts.append("several dynamic action poses")
    if reference_image_paths:
        parts.append("consistent with the provided reference images")
    parts.append("clean white background, consistent proportions, labeled layout")

    return await image_service.generate_image(
        provider, ", ".join(parts), output_path, **_reference_options(provider, reference_image_paths)
    )


async def generate_character_variation(
    image_service: ImageService,
    prompt: str,
    output_path: str,
    reference_image_paths: List[str],
    model: Union[str, ImageProvider] = ImageProvider.GEMINI,
) -> ImageGenerationResult:
    if not reference_image_paths:
        raise ValidationException("At least one reference image is required for character variations")

    provider = ImageProvider(model)
    full_prompt = f"{prompt}, combine the elements of the provided reference images into one coherent character"
    return await image_service.generate_image(
        provider, full_prompt, output_path, **_reference_options(provider, reference_image_paths)
    )


async def generate_pixel_art_character(
    image_service: ImageService,
    character_description: str,
    output_path: str,
    pixel_dimensions: str,
    sprite_sheet: bool = False,
    model: Union[str, ImageProvider] = ImageProvider.FALAI,
    colors: Optional[int] = None,
    transparent_background: bool = False,
    background_color: Union[str, BackgroundColor] = BackgroundColor.WHITE,
) -> ImageGenerationResult:
    _check_choice("Pixel dimensions", pixel_dimensions, PIXEL_DIMENSIONS)
    if colors is not None and not 4 <= colors <= 256:
        raise ValidationException("Color palette size must be between 4 and 256")

    provider = ImageProvider(model)
    parts = [
        f"{pixel_dimensions} pixel art character, {character_description}",
        "retro game sprite, crisp pixels, no anti-aliasing",
    ]
    if colors is not None:
        parts.append(f"limited palette of {colors} colors")
    if sprite_sheet:
        parts.append("sprite sheet with idle, walk and attack animation frames in a grid")

    return await _generate(
        image_service,
        provider,
        ", ".join(parts),
        output_path,
        transparent_background=transparent_background,
        background_color=background_color,
        **SQUARE_IMAGE_OPTIONS[provider],
    )


async def generate_texture(
    image_service: ImageService,
    texture_description: str,
    output_path: str,
    texture_size: str = "1024x1024",
    seamless: bool = False,
    model: Union[str, ImageProvider] = ImageProvider.FALAI,
    material_type: Optional[str] = None,
    transparent_background: bool = False,
    background_color: Union[str, BackgroundColor] = BackgroundColor.WHITE,
    transparency_tolerance: float = 30,
) -> ImageGenerationResult:
    _check_choice("Texture size", texture_size, TEXTURE_SIZES)
    if material_type is not None:
        _check_choice("Material type", material_type, MATERIAL_TYPES)

    provider = ImageProvider(model)
    parts = [f"{texture_description} texture", f"{texture_size} resolution"]
    if seamless:
        parts.append("seamless tileable pattern, edges wrap without visible seams")
    if material_type:
        parts.append(_MATERIAL_CLAUSES[material_type])
    parts.append("flat even lighting, top-down orthographic view, high detail")

    return await _generate(
        image_service,
        provider,
        ", ".join(parts),
        output_path,
        transparent_background=transparent_background,
        background_color=background_color,
        tolerance=transparency_tolerance,
        **SQUARE_IMAGE_OPTIONS[provider],
    )


def object_sheet_output_path(output_base_path: str, viewpoint: str) -> str:
    return sibling_path(output_base_path, f"_{viewpoint}.png")


async def generate_object_sheet(
    image_service: ImageService,
    object_description: str,
    output_base_path: str,
    viewpoints: Optional[Sequence[str]] = None,
    model: Union[str, ImageProvider] = ImageProvider.GEMINI,
    style: Optional[str] = None,
) -> List[ImageGenerationResult]:
    """One image per viewpoint, saved as <base>_<viewpoint>.png."""
    views = list(viewpoints or DEFAULT_OBJECT_VIEWPOINTS)
    for view in views:
        _check_choice("Viewpoint", view, OBJECT_VIEWPOINTS)

    provider = ImageProvider(model)
    style_clause = f", {style} style" if style else ""
    results: List[ImageGenerationResult] = []

    for view in views:
        prompt = (
            f"{object_description}, {view} view{style_clause}, "
            "3D modeling reference sheet, orthographic projection, clean white background, consistent scale"
        )
        result = await image_service.generate_image(
            provider, prompt, object_sheet_output_path(output_base_path, view), **SQUARE_IMAGE_OPTIONS[provider]
        )
        logger.info("object_sheet_view_generated", view=view, paths=result.saved_paths)
        results.append(result)

    return results
