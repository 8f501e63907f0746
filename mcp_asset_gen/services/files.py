import base64
import binascii
import re
from pathlib import Path
from typing import List, Optional

import aiofiles
import structlog

from mcp_asset_gen.core.exceptions import StorageError
from mcp_asset_gen.domain.models import ModelInfo

logger = structlog.get_logger()

BASE64_IMAGE_URI = re.compile(r"^data:image/(png|jpg|jpeg|webp);base64,([A-Za-z0-9+/]+={0,2})$")
DATA_URI_PREFIX = re.compile(r"^data:image/[a-z]+;base64,")

_MIME_SUBTYPES = {".png": "png", ".jpg": "jpeg", ".jpeg": "jpeg", ".webp": "webp"}


def is_data_uri(reference: str) -> bool:
    return reference.startswith("data:")


def validate_base64_image_uri(uri: str) -> bool:
    return BASE64_IMAGE_URI.match(uri) is not None


def encode_image_to_base64(image_path: str) -> str:
    try:
        return base64.b64encode(Path(image_path).read_bytes()).decode("ascii")
    except OSError as e:
        raise StorageError(f"Failed to read image file {image_path}: {e}", original_error=e)


def to_data_uri(reference: str) -> str:
    """Paths become base64 data URIs, data URIs pass through untouched."""
    if is_data_uri(reference):
        return reference
    subtype = _MIME_SUBTYPES.get(Path(reference).suffix.lower(), "png")
    try:
        return f"data:image/{subtype};base64,{encode_image_to_base64(reference)}"
    except StorageError as e:
        raise StorageError(f"Failed to convert image {reference} to base64 URI: {e}", original_error=e)


def convert_paths_to_base64_uris(references: List[str]) -> List[str]:
    return [to_data_uri(ref) for ref in references]


async def save_base64_image(data: str, output_path: str) -> str:
    """Decodes raw base64 (or a data URI) and writes it to output_path."""
    path = Path(output_path)
    try:
        payload = base64.b64decode(DATA_URI_PREFIX.sub("", data), validate=True)
    except (binascii.Error, ValueError) as e:
        raise StorageError(f"Failed to save base64 image to {output_path}: invalid base64 data", original_error=e)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(payload)
    except OSError as e:
        raise StorageError(f"Failed to save base64 image to {output_path}: {e}", original_error=e)
    return output_path


def numbered_output_paths(output_path: str, count: int) -> List[str]:
    """
    "out/cat.png", 1 -> ["out/cat.png"]
    "out/cat.png", 3 -> ["out/cat_1.png", "out/cat_2.png", "out/cat_3.png"]
    """
    if count <= 1:
        return [output_path]
    path = Path(output_path)
    suffix = path.suffix or ".png"
    return [str(path.with_name(f"{path.stem}_{i}{suffix}")) for i in range(1, count + 1)]


def sibling_path(output_path: str, suffix: str) -> str:
    """Replaces the extension: ("out/sword.glb", "_ref_front.png") -> "out/sword_ref_front.png"."""
    path = Path(output_path)
    return str(path.with_name(path.stem + suffix))


def get_model3d_info(model_path: str) -> ModelInfo:
    try:
        file_size = Path(model_path).stat().st_size
    except OSError as e:
        raise StorageError(f"Failed to get 3D model info for {model_path}: {e}", original_error=e)

    return ModelInfo(file_size=file_size, format=Path(model_path).suffix.lstrip(".").upper())


def remove_file(path: str) -> Optional[str]:
    """
    Best-effort delete. Never raises: returns the failure message (also logged)
    so callers can keep it as a diagnostic.
    """
    try:
        Path(path).unlink()
    except OSError as e:
        logger.warning("file_cleanup_failed", path=path, error=str(e))
        return f"{path}: {e}"
    return None
