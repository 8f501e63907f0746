import asyncio
import io
from pathlib import Path
from typing import TYPE_CHECKING, Tuple, Union

import numpy as np
import structlog
from PIL import Image, UnidentifiedImageError

from mcp_asset_gen.core.exceptions import ImageProcessingError, StorageError, ValidationException
from mcp_asset_gen.domain.models import BackgroundColor, ImageGenerationResult, ImageProvider
from mcp_asset_gen.services.files import remove_file, sibling_path

if TYPE_CHECKING:
    from mcp_asset_gen.services.image_service import ImageService

logger = structlog.get_logger()

WHITE = (255, 255, 255)
BLACK = (0, 0, 0)


def _parse_background(background_color: Union[str, BackgroundColor]) -> BackgroundColor:
    try:
        return BackgroundColor(background_color)
    except ValueError:
        raise ValidationException("Background color must be one of: white, black, auto")


def _check_tolerance(tolerance: float) -> None:
    if not 0 <= tolerance <= 255:
        raise ValidationException("Transparency tolerance must be between 0 and 255")


def resolve_target_color(rgba: np.ndarray, background_color: BackgroundColor) -> Tuple[int, int, int]:
    """
    Fixed color for white/black. For auto, the per channel average of the
    four corner pixels, rounded half up. A 1x1 image samples one pixel four times.
    """
    if background_color == BackgroundColor.WHITE:
        return WHITE
    if background_color == BackgroundColor.BLACK:
        return BLACK

    corners = rgba[[0, 0, -1, -1], [0, -1, 0, -1], :3].astype(np.int64)
    totals = corners.sum(axis=0)
    r, g, b = ((int(total) + 2) // 4 for total in totals)
    return r, g, b


def make_background_transparent(
    image: Image.Image,
    background_color: Union[str, BackgroundColor] = BackgroundColor.AUTO,
    tolerance: float = 30,
) -> Image.Image:
    """
    Returns an RGBA copy of image where every pixel within `tolerance`
    (Euclidean RGB distance) of the background color has alpha 0.
    Size and every other channel value are untouched.
    """
    color = _parse_background(background_color)
    _check_tolerance(tolerance)

    rgba = np.array(image.convert("RGBA"))
    target = np.array(resolve_target_color(rgba, color), dtype=np.int64)

    diff = rgba[..., :3].astype(np.int64) - target
    # Squared distance avoids sqrt rounding at the tolerance boundary
    within = (diff * diff).sum(axis=-1) <= tolerance * tolerance
    rgba[within, 3] = 0

    return Image.fromarray(rgba)


def convert_to_transparent_background(
    input_path: str,
    output_path: str,
    background_color: Union[str, BackgroundColor] = BackgroundColor.AUTO,
    tolerance: float = 30,
) -> str:
    """
    Reads input_path, clears the background and writes a PNG to output_path.
    The PNG is fully encoded in memory before anything touches output_path.
    """
    color = _parse_background(background_color)
    _check_tolerance(tolerance)

    try:
        with Image.open(input_path) as img:
            converted = make_background_transparent(img, color, tolerance)
        buffer = io.BytesIO()
        converted.save(buffer, "PNG")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageProcessingError(
            f"Failed to convert image to transparent background: {e}", original_error=e
        )

    path = Path(output_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(buffer.getvalue())
    except OSError as e:
        raise StorageError(f"Failed to write transparent image to {output_path}: {e}", original_error=e)

    logger.info(
        "transparency_applied",
        input_path=input_path,
        output_path=output_path,
        background_color=color.value,
        tolerance=tolerance,
    )
    return output_path


async def generate_transparent_result(
    image_service: "ImageService",
    prompt: str,
    output_path: str,
    provider: Union[str, ImageProvider],
    background_color: Union[str, BackgroundColor] = BackgroundColor.WHITE,
    tolerance: float = 30,
    **generation_options,
) -> ImageGenerationResult:
    """
    Two stage transparency: no provider is trusted to render alpha, so the
    image is generated on a solid background first and the background is
    then cleared locally. The solid intermediate is always deleted.
    """
    color = _parse_background(background_color)
    _check_tolerance(tolerance)

    backdrop = "solid uniform" if color == BackgroundColor.AUTO else color.value
    solid_prompt = (
        f"{prompt}, plain {backdrop} background, no shadows, isolated subject, "
        "professional product photography style"
    )
    temp_path = sibling_path(output_path, "_temp_solid.png")
    intermediates = [temp_path]

    try:
        result = await image_service.generate_image(provider, solid_prompt, temp_path, **generation_options)
        intermediates = list(result.saved_paths) or intermediates

        # Pixel pass is CPU bound; keep it off the event loop
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None,
            convert_to_transparent_background,
            intermediates[0],
            output_path,
            color,
            tolerance,
        )
    finally:
        for path in intermediates:
            if path != output_path and Path(path).exists():
                remove_file(path)

    return result.model_copy(update={"saved_paths": [output_path]})


async def generate_transparent_image(
    image_service: "ImageService",
    prompt: str,
    output_path: str,
    provider: Union[str, ImageProvider],
    background_color: Union[str, BackgroundColor] = BackgroundColor.WHITE,
    tolerance: float = 30,
    **generation_options,
) -> str:
    result = await generate_transparent_result(
        image_service, prompt, output_path, provider, background_color, tolerance, **generation_options
    )
    return result.saved_paths[0]


def check_transparency_support_available() -> bool:
    # Pure Pillow/numpy, nothing external to check
    return True
