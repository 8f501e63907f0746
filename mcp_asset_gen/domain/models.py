from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageProvider(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"
    FALAI = "falai"


class ModelFamily(str, Enum):
    TRELLIS = "trellis"
    HUNYUAN3D = "hunyuan3d"
    HUNYUAN_WORLD = "hunyuan-world"


class Variant(str, Enum):
    SINGLE = "single"
    MULTI = "multi"
    SINGLE_TURBO = "single-turbo"
    MULTI_TURBO = "multi-turbo"

    @property
    def is_multi(self) -> bool:
        return self in (Variant.MULTI, Variant.MULTI_TURBO)

    @property
    def is_turbo(self) -> bool:
        return self in (Variant.SINGLE_TURBO, Variant.MULTI_TURBO)


class Model3DFormat(str, Enum):
    GLB = "glb"
    GLTF = "gltf"


class Viewpoint(str, Enum):
    FRONT = "front"
    BACK = "back"
    TOP = "top"
    LEFT = "left"
    RIGHT = "right"


class BackgroundColor(str, Enum):
    WHITE = "white"
    BLACK = "black"
    AUTO = "auto"


# --- Image option shapes (one per provider, unknown keys rejected) ---

OpenAISize = Literal["1024x1024", "1792x1024", "1024x1792"]
FalImageSize = Literal["square_hd", "square", "portrait_4_3", "portrait_16_9", "landscape_4_3", "landscape_16_9"]


class _ImageOptionsBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    prompt: str
    output_path: str


class OpenAIImageOptions(_ImageOptionsBase):
    provider: Literal["openai"] = "openai"
    size: Optional[OpenAISize] = None
    quality: Optional[Literal["standard", "hd"]] = None
    style: Optional[Literal["vivid", "natural"]] = None
    n: Optional[int] = Field(default=None, ge=1, le=10)
    input_image_path: Optional[str] = None


class GeminiImageOptions(_ImageOptionsBase):
    provider: Literal["gemini"] = "gemini"
    model: Optional[str] = None
    input_image_paths: Optional[List[str]] = None


class FalImageOptions(_ImageOptionsBase):
    provider: Literal["falai"] = "falai"
    image_size: Optional[FalImageSize] = None
    num_inference_steps: Optional[int] = Field(default=None, ge=1, le=50)
    guidance_scale: Optional[float] = Field(default=None, ge=1, le=20)
    input_image_path: Optional[str] = None


# --- 3D option shapes (one per family) ---


class _Model3DOptionsBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    prompt: Optional[str] = None
    input_image_paths: Optional[List[str]] = None
    output_path: str
    variant: Optional[Variant] = None
    format: Optional[Model3DFormat] = None
    # Accepted and validated, never forwarded to a provider
    quality: Optional[Literal["standard", "high"]] = None
    prefer_fast: Optional[bool] = None
    auto_generate_references: Optional[bool] = None
    reference_model: Optional[ImageProvider] = None
    reference_views: Optional[List[Viewpoint]] = None
    cleanup_references: Optional[bool] = None


class TrellisOptions(_Model3DOptionsBase):
    model: Literal["trellis"] = "trellis"
    texture_size: Optional[Literal[512, 1024, 2048]] = None
    multiimage_algo: Optional[Literal["stochastic", "multidiffusion"]] = None


class Hunyuan3DOptions(_Model3DOptionsBase):
    model: Literal["hunyuan3d"] = "hunyuan3d"
    textured_mesh: Optional[bool] = None


class HunyuanWorldOptions(_Model3DOptionsBase):
    model: Literal["hunyuan-world"] = "hunyuan-world"
    camera_distance: Optional[float] = Field(default=None, gt=0)
    fov: Optional[float] = Field(default=None, gt=0, lt=180)
    num_inference_steps: Optional[int] = Field(default=None, ge=1, le=50)
    guidance_scale: Optional[float] = Field(default=None, ge=1, le=20)
    seed: Optional[int] = None


# --- Results ---


class ImageGenerationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str
    model: str
    saved_paths: List[str]
    prompt_used: str
    revised_prompt: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ModelInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_size: int
    format: str
    # Reserved, never populated
    vertices: Optional[int] = None
    faces: Optional[int] = None


class Model3DGenerationResult(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    provider: str
    model: str
    variant: str
    saved_paths: List[str]
    prompt_used: Optional[str] = None
    input_images: List[str]
    generation_time: Optional[float] = None
    model_info: Optional[ModelInfo] = None
    parameters: Dict[str, Any]
    auto_generated_references: Optional[List[str]] = None
    reference_model_used: Optional[str] = None
    reference_views_generated: Optional[List[str]] = None


class ReferenceImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    view: Viewpoint
    path: str


class MeshArtifact(BaseModel):
    """Where the provider put the generated mesh."""

    model_config = ConfigDict(frozen=True)

    url: str
    generation_time: Optional[float] = None
