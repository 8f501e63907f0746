"""
Option normalization for image and 3D tools.

Each provider (or 3D family) owns one pydantic option shape with
``extra="forbid"``, so unknown keys and out of range values are rejected
against that provider's shape only. Defaults live in read-only tables and are
merged under the caller's option bag: caller keys win, keys missing from both
stay missing.
"""

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Literal, Mapping, Type, Union, get_args, get_origin

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from mcp_asset_gen.core.exceptions import ValidationException
from mcp_asset_gen.domain.models import (
    FalImageOptions,
    GeminiImageOptions,
    Hunyuan3DOptions,
    HunyuanWorldOptions,
    ImageProvider,
    Model3DFormat,
    ModelFamily,
    OpenAIImageOptions,
    TrellisOptions,
    Variant,
)
from mcp_asset_gen.services.files import is_data_uri, validate_base64_image_uri
from mcp_asset_gen.services.variants import ensure_variant_supported

PROVIDER_LABELS = MappingProxyType(
    {
        ImageProvider.OPENAI: "OpenAI",
        ImageProvider.GEMINI: "Gemini",
        ImageProvider.FALAI: "FAL.ai",
        ModelFamily.TRELLIS: "Trellis",
        ModelFamily.HUNYUAN3D: "Hunyuan3D",
        ModelFamily.HUNYUAN_WORLD: "Hunyuan World",
    }
)

IMAGE_OPTION_SHAPES: Mapping[ImageProvider, Type[BaseModel]] = MappingProxyType(
    {
        ImageProvider.OPENAI: OpenAIImageOptions,
        ImageProvider.GEMINI: GeminiImageOptions,
        ImageProvider.FALAI: FalImageOptions,
    }
)

MODEL3D_OPTION_SHAPES: Mapping[ModelFamily, Type[BaseModel]] = MappingProxyType(
    {
        ModelFamily.TRELLIS: TrellisOptions,
        ModelFamily.HUNYUAN3D: Hunyuan3DOptions,
        ModelFamily.HUNYUAN_WORLD: HunyuanWorldOptions,
    }
)

IMAGE_DEFAULTS: Mapping[ImageProvider, Mapping[str, Any]] = MappingProxyType(
    {
        ImageProvider.OPENAI: MappingProxyType({"size": "1024x1024", "quality": "standard", "style": "vivid", "n": 1}),
        ImageProvider.GEMINI: MappingProxyType({"model": "gemini-2.5-flash-image"}),
        ImageProvider.FALAI: MappingProxyType(
            {"image_size": "square_hd", "num_inference_steps": 20, "guidance_scale": 7.5}
        ),
    }
)

MODEL3D_BASE_DEFAULTS: Mapping[str, Any] = MappingProxyType(
    {
        "format": "glb",
        "auto_generate_references": True,
        "reference_model": "gemini",
        "reference_views": ("front", "back", "top"),
        "cleanup_references": True,
        "prefer_fast": False,
    }
)

MODEL3D_FAMILY_DEFAULTS: Mapping[ModelFamily, Mapping[str, Any]] = MappingProxyType(
    {
        ModelFamily.TRELLIS: MappingProxyType({"texture_size": 1024, "multiimage_algo": "stochastic"}),
        ModelFamily.HUNYUAN3D: MappingProxyType({"textured_mesh": True}),
        ModelFamily.HUNYUAN_WORLD: MappingProxyType(
            {"camera_distance": 2.5, "fov": 40, "num_inference_steps": 50, "guidance_scale": 7.5}
        ),
    }
)


def _choices_of(annotation: Any) -> List[Any]:
    choices: List[Any] = []
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return [member.value for member in annotation]
    if get_origin(annotation) is Literal:
        return list(get_args(annotation))
    for arg in get_args(annotation):
        if arg is not type(None):
            choices.extend(_choices_of(arg))
    return choices


def _bounds_of(shape: Type[BaseModel], field: str):
    low = high = None
    for constraint in shape.model_fields[field].metadata:
        low = getattr(constraint, "ge", getattr(constraint, "gt", low))
        high = getattr(constraint, "le", getattr(constraint, "lt", high))
    return low, high


def _describe(label: str, shape: Type[BaseModel], error: PydanticValidationError) -> str:
    """Turns the first pydantic error into a single readable sentence."""
    first = error.errors()[0]
    field = str(first["loc"][0]) if first["loc"] else "options"
    kind = first["type"]

    if kind == "extra_forbidden":
        return f"Unknown {label} option: {field}"
    if field in shape.model_fields:
        if kind in ("literal_error", "enum"):
            choices = ", ".join(str(c) for c in _choices_of(shape.model_fields[field].annotation))
            return f"{label} {field} must be one of: {choices}"
        if kind in ("greater_than_equal", "less_than_equal", "greater_than", "less_than"):
            low, high = _bounds_of(shape, field)
            if low is not None and high is not None:
                return f"{label} {field} must be between {low} and {high}"
    return f"{label} {field}: {first['msg']}"


def _validate_shape(label: str, shape: Type[BaseModel], options: Mapping[str, Any]) -> BaseModel:
    try:
        return shape.model_validate(dict(options))
    except PydanticValidationError as e:
        raise ValidationException(_describe(label, shape, e), original_error=e)


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def _image_provider(provider: Union[str, ImageProvider, None]) -> ImageProvider:
    try:
        return ImageProvider(provider)
    except ValueError:
        raise ValidationException("Provider must be one of: openai, gemini, falai")


def _model_family(model: Union[str, ModelFamily, None]) -> ModelFamily:
    try:
        return ModelFamily(model)
    except ValueError:
        raise ValidationException(f"Model must be one of: {', '.join(f.value for f in ModelFamily)}")


def compact(options: Mapping[str, Any]) -> Dict[str, Any]:
    """Drops None values: an argument the caller left unset is not an option."""
    return {key: value for key, value in options.items() if value is not None}


def merge_options(user: Mapping[str, Any], defaults: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(defaults)
    merged.update(user)
    return merged


# --- 2D images ---


def default_image_options(provider: Union[str, ImageProvider]) -> Dict[str, Any]:
    try:
        return dict(IMAGE_DEFAULTS[ImageProvider(provider)])
    except ValueError:
        raise ValidationException(f"No default options available for provider: {provider}")


def merge_image_options(options: Mapping[str, Any]) -> Dict[str, Any]:
    return merge_options(options, default_image_options(options.get("provider")))


def validate_image_options(options: Mapping[str, Any]) -> BaseModel:
    """Checks run in order, the first violation is raised."""
    if _is_blank(options.get("prompt")):
        raise ValidationException("Prompt is required and cannot be empty")
    if _is_blank(options.get("output_path")):
        raise ValidationException("Output path is required and cannot be empty")

    provider = _image_provider(options.get("provider"))
    return _validate_shape(
        PROVIDER_LABELS[provider], IMAGE_OPTION_SHAPES[provider], {**options, "provider": provider.value}
    )


# --- 3D models ---


def default_model3d_options(model: Union[str, ModelFamily]) -> Dict[str, Any]:
    try:
        family = ModelFamily(model)
    except ValueError:
        raise ValidationException(f"No default options available for model: {model}")

    defaults = dict(MODEL3D_BASE_DEFAULTS)
    defaults["reference_views"] = list(defaults["reference_views"])
    defaults.update(MODEL3D_FAMILY_DEFAULTS[family])
    defaults["model"] = family.value
    return defaults


def merge_model3d_options(options: Mapping[str, Any]) -> Dict[str, Any]:
    return merge_options(options, default_model3d_options(options.get("model")))


def validate_model3d_options(options: Mapping[str, Any]) -> BaseModel:
    if _is_blank(options.get("output_path")):
        raise ValidationException("Output path is required and cannot be empty")

    family = _model_family(options.get("model"))

    variant = options.get("variant")
    if variant is not None:
        try:
            variant = Variant(variant)
        except ValueError:
            raise ValidationException(f"Variant must be one of: {', '.join(v.value for v in Variant)}")

    if options.get("format") is not None:
        try:
            Model3DFormat(options["format"])
        except ValueError:
            raise ValidationException(f"Format must be one of: {', '.join(f.value for f in Model3DFormat)}")

    if variant is not None:
        ensure_variant_supported(family, variant)

    images = options.get("input_image_paths") or []
    if not images and _is_blank(options.get("prompt")):
        raise ValidationException("Either input images or a prompt is required for 3D model generation")

    for reference in images:
        if is_data_uri(reference) and not validate_base64_image_uri(reference):
            raise ValidationException(
                "Input image data URIs must look like data:image/<png|jpg|jpeg|webp>;base64,<payload>"
            )

    return _validate_shape(PROVIDER_LABELS[family], MODEL3D_OPTION_SHAPES[family], {**options, "model": family.value})
