import asyncio
import json
from contextlib import contextmanager
from typing import Annotated, Awaitable, Callable, Dict, List, Literal, Optional

import structlog
from dotenv import load_dotenv
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

# Internal Imports
from mcp_asset_gen.core.config import settings
from mcp_asset_gen.core.dependencies import get_image_service, get_model3d_service
from mcp_asset_gen.core.logging import configure_logging
from mcp_asset_gen.core.telemetry import setup_telemetry
from mcp_asset_gen.services import asset_tools
from mcp_asset_gen.services.model3d_service import generate_3d_model_smart
from mcp_asset_gen.services.transparency import convert_to_transparent_background

# 1. Configure Logging & Tracing
# Credentials are read from os.environ per call, so .env has to land there
load_dotenv()
configure_logging(json_logs=settings.JSON_LOGS, log_level=settings.LOG_LEVEL)
setup_telemetry()
logger = structlog.get_logger()

ImageModel = Literal["openai", "gemini", "falai"]
ReferenceView = Literal["front", "back", "top", "left", "right"]
Background = Literal["white", "black", "auto"]

PromptText = Annotated[str, Field(description="Detailed description of the image to generate")]
OutputPath = Annotated[str, Field(description="Path where the generated file should be saved")]
InputImages = Annotated[
    Optional[List[str]],
    Field(description="Paths or base64 data URIs. When omitted, reference images are generated from the prompt"),
]

# name -> tool coroutine, registered on the server after ALLOWED_TOOLS filtering
TOOLS: Dict[str, Callable[..., Awaitable[str]]] = {}


@contextmanager
def _tool_errors(tool: str):
    """Every failure reaches the client as a tool error whose text is "Error: <message>"."""
    try:
        yield
    except ToolError:
        raise
    except Exception as e:
        logger.error("tool_failed", tool=tool, error=str(e), error_type=type(e).__name__)
        raise ToolError(f"Error: {e}") from e


def asset_tool(name: str):
    def decorator(fn):
        TOOLS[name] = fn
        return fn

    return decorator


def _dump(result) -> str:
    if isinstance(result, list):
        return json.dumps([item.model_dump(mode="json", exclude_none=True) for item in result])
    return result.model_dump_json(exclude_none=True)


# 2. Image generation tools


@asset_tool("openai_generate_image")
async def openai_generate_image(
    prompt: PromptText,
    output_path: OutputPath,
    input_image_path: Annotated[Optional[str], Field(description="Image to edit (optional)")] = None,
    size: Optional[Literal["1024x1024", "1792x1024", "1024x1792"]] = None,
    quality: Optional[Literal["standard", "hd"]] = None,
    style: Optional[Literal["vivid", "natural"]] = None,
    n: Annotated[Optional[int], Field(ge=1, le=10, description="Number of images (1-10)")] = None,
) -> str:
    """Generate images using OpenAI's image generation API."""
    with _tool_errors("openai_generate_image"):
        logger.info("mcp_tool_called", tool="openai_generate_image", prompt=prompt)
        result = await get_image_service().generate_image(
            "openai",
            prompt,
            output_path,
            input_image_path=input_image_path,
            size=size,
            quality=quality,
            style=style,
            n=n,
        )
        return _dump(result)


@asset_tool("gemini_generate_image")
async def gemini_generate_image(
    prompt: PromptText,
    output_path: OutputPath,
    input_image_paths: Annotated[
        Optional[List[str]], Field(description="Input images for variation or combination")
    ] = None,
    model: Annotated[Optional[str], Field(description="Gemini model (default: gemini-2.5-flash-image)")] = None,
) -> str:
    """Generate images with Gemini native image generation. Accepts several input images."""
    with _tool_errors("gemini_generate_image"):
        logger.info("mcp_tool_called", tool="gemini_generate_image", prompt=prompt)
        result = await get_image_service().generate_image(
            "gemini", prompt, output_path, input_image_paths=input_image_paths, model=model
        )
        return _dump(result)


FalSize = Literal["square_hd", "square", "portrait_4_3", "portrait_16_9", "landscape_4_3", "landscape_16_9"]


@asset_tool("falai_generate_image")
async def falai_generate_image(
    prompt: PromptText,
    output_path: OutputPath,
    image_size: Optional[FalSize] = None,
    num_inference_steps: Annotated[Optional[int], Field(ge=1, le=50)] = None,
    guidance_scale: Annotated[Optional[float], Field(ge=1, le=20)] = None,
) -> str:
    """Generate images using FAL.ai's Qwen image model."""
    with _tool_errors("falai_generate_image"):
        logger.info("mcp_tool_called", tool="falai_generate_image", prompt=prompt)
        result = await get_image_service().generate_image(
            "falai",
            prompt,
            output_path,
            image_size=image_size,
            num_inference_steps=num_inference_steps,
            guidance_scale=guidance_scale,
        )
        return _dump(result)


@asset_tool("falai_edit_image")
async def falai_edit_image(
    prompt: Annotated[str, Field(description="Description of the desired edits")],
    input_image_path: Annotated[str, Field(description="Image to edit")],
    output_path: OutputPath,
    image_size: Optional[FalSize] = None,
    num_inference_steps: Annotated[Optional[int], Field(ge=1, le=50)] = None,
    guidance_scale: Annotated[Optional[float], Field(ge=1, le=20)] = None,
) -> str:
    """Edit an image using FAL.ai's Qwen image editing model."""
    with _tool_errors("falai_edit_image"):
        logger.info("mcp_tool_called", tool="falai_edit_image", prompt=prompt)
        result = await get_image_service().generate_image(
            "falai",
            prompt,
            output_path,
            input_image_path=input_image_path,
            image_size=image_size,
            num_inference_steps=num_inference_steps,
            guidance_scale=guidance_scale,
        )
        return _dump(result)


# 3. Game asset helpers


@asset_tool("generate_character_sheet")
async def generate_character_sheet(
    character_description: str,
    output_path: OutputPath,
    reference_image_paths: Optional[List[str]] = None,
    model: ImageModel = "gemini",
    style: Annotated[Optional[str], Field(description="Art style, e.g. anime, realistic, cartoon")] = None,
    include_expressions: bool = False,
    include_poses: bool = False,
) -> str:
    """Generate a character sheet from a description and optional reference images."""
    with _tool_errors("generate_character_sheet"):
        result = await asset_tools.generate_character_sheet(
            get_image_service(),
            character_description,
            output_path,
            reference_image_paths=reference_image_paths,
            model=model,
            style=style,
            include_expressions=include_expressions,
            include_poses=include_poses,
        )
        return _dump(result)


@asset_tool("generate_character_variation")
async def generate_character_variation(
    prompt: PromptText,
    output_path: OutputPath,
    reference_image_paths: Annotated[List[str], Field(description="Reference images to combine")],
    model: ImageModel = "gemini",
) -> str:
    """Generate a character variation by combining reference images (e.g. character + outfit)."""
    with _tool_errors("generate_character_variation"):
        result = await asset_tools.generate_character_variation(
            get_image_service(), prompt, output_path, reference_image_paths, model=model
        )
        return _dump(result)


@asset_tool("generate_pixel_art_character")
async def generate_pixel_art_character(
    character_description: str,
    output_path: OutputPath,
    pixel_dimensions: Literal["8x8", "16x16", "32x32", "48x48", "64x64", "96x96"],
    sprite_sheet: bool = False,
    model: ImageModel = "falai",
    colors: Annotated[Optional[int], Field(ge=4, le=256, description="Palette size")] = None,
    transparent_background: bool = False,
    background_color: Background = "white",
) -> str:
    """Generate a pixel art character for retro games, optionally on a transparent background."""
    with _tool_errors("generate_pixel_art_character"):
        result = await asset_tools.generate_pixel_art_character(
            get_image_service(),
            character_description,
            output_path,
            pixel_dimensions,
            sprite_sheet=sprite_sheet,
            model=model,
            colors=colors,
            transparent_background=transparent_background,
            background_color=background_color,
        )
        return _dump(result)


@asset_tool("generate_texture")
async def generate_texture(
    texture_description: str,
    output_path: OutputPath,
    texture_size: Literal["512x512", "1024x1024", "2048x2048"] = "1024x1024",
    seamless: bool = False,
    model: ImageModel = "falai",
    material_type: Optional[Literal["diffuse", "normal", "roughness", "displacement"]] = None,
    transparent_background: bool = False,
    background_color: Background = "white",
    transparency_tolerance: Annotated[float, Field(ge=0, le=255)] = 30,
) -> str:
    """Generate a (optionally seamless) texture, or a sprite/decal on a transparent background."""
    with _tool_errors("generate_texture"):
        result = await asset_tools.generate_texture(
            get_image_service(),
            texture_description,
            output_path,
            texture_size=texture_size,
            seamless=seamless,
            model=model,
            material_type=material_type,
            transparent_background=transparent_background,
            background_color=background_color,
            transparency_tolerance=transparency_tolerance,
        )
        return _dump(result)


@asset_tool("generate_object_sheet")
async def generate_object_sheet(
    object_description: str,
    output_base_path: Annotated[str, Field(description="Base path, each view is saved as <base>_<view>.png")],
    viewpoints: Optional[List[Literal["front", "back", "left", "right", "top", "bottom", "perspective"]]] = None,
    model: ImageModel = "gemini",
    style: Annotated[Optional[str], Field(description="e.g. technical drawing, concept art")] = None,
) -> str:
    """Generate multi viewpoint reference images of an object for 3D modeling."""
    with _tool_errors("generate_object_sheet"):
        results = await asset_tools.generate_object_sheet(
            get_image_service(), object_description, output_base_path, viewpoints=viewpoints, model=model, style=style
        )
        return _dump(results)


@asset_tool("convert_to_transparent")
async def convert_to_transparent(
    input_path: str,
    output_path: OutputPath,
    background_color: Background = "auto",
    tolerance: Annotated[float, Field(ge=0, le=255)] = 30,
) -> str:
    """Make the solid background of an existing image transparent and save it as PNG."""
    with _tool_errors("convert_to_transparent"):
        loop = asyncio.get_running_loop()
        saved = await loop.run_in_executor(
            None, convert_to_transparent_background, input_path, output_path, background_color, tolerance
        )
        return json.dumps(
            {"saved_paths": [saved], "input_path": input_path, "background_color": background_color, "tolerance": tolerance}
        )


# 4. 3D model tools


@asset_tool("trellis_generate_3d_model")
async def trellis_generate_3d_model(
    output_path: Annotated[str, Field(description="Where the model is saved (.glb or .gltf)")],
    prompt: Optional[str] = None,
    input_image_paths: InputImages = None,
    variant: Optional[Literal["single", "multi"]] = None,
    format: Optional[Literal["glb", "gltf"]] = None,
    auto_generate_references: Optional[bool] = None,
    reference_model: Optional[ImageModel] = None,
    reference_views: Optional[List[ReferenceView]] = None,
    cleanup_references: Optional[bool] = None,
    texture_size: Optional[Literal[512, 1024, 2048]] = None,
    multiimage_algo: Optional[Literal["stochastic", "multidiffusion"]] = None,
) -> str:
    """Generate a 3D model with FAL.ai Trellis. Reference images are generated from the prompt when none are given."""
    with _tool_errors("trellis_generate_3d_model"):
        logger.info("mcp_tool_called", tool="trellis_generate_3d_model", prompt=prompt)
        result = await generate_3d_model_smart(
            get_model3d_service(),
            prompt,
            output_path,
            "trellis",
            input_image_paths=input_image_paths,
            variant=variant,
            format=format,
            auto_generate_references=auto_generate_references,
            reference_model=reference_model,
            reference_views=reference_views,
            cleanup_references=cleanup_references,
            texture_size=texture_size,
            multiimage_algo=multiimage_algo,
        )
        return _dump(result)


@asset_tool("hunyuan3d_generate_3d_model")
async def hunyuan3d_generate_3d_model(
    output_path: Annotated[str, Field(description="Where the model is saved (.glb or .gltf)")],
    prompt: Optional[str] = None,
    input_image_paths: InputImages = None,
    variant: Optional[Literal["single", "multi", "single-turbo", "multi-turbo"]] = None,
    format: Optional[Literal["glb", "gltf"]] = None,
    prefer_fast: Annotated[Optional[bool], Field(description="Pick a turbo variant when none is given")] = None,
    auto_generate_references: Optional[bool] = None,
    reference_model: Optional[ImageModel] = None,
    reference_views: Optional[List[ReferenceView]] = None,
    cleanup_references: Optional[bool] = None,
    textured_mesh: Optional[bool] = None,
) -> str:
    """Generate a 3D model with FAL.ai Hunyuan3D 2.0, including turbo variants."""
    with _tool_errors("hunyuan3d_generate_3d_model"):
        logger.info("mcp_tool_called", tool="hunyuan3d_generate_3d_model", prompt=prompt)
        result = await generate_3d_model_smart(
            get_model3d_service(),
            prompt,
            output_path,
            "hunyuan3d",
            input_image_paths=input_image_paths,
            variant=variant,
            format=format,
            prefer_fast=prefer_fast,
            auto_generate_references=auto_generate_references,
            reference_model=reference_model,
            reference_views=reference_views,
            cleanup_references=cleanup_references,
            textured_mesh=textured_mesh,
        )
        return _dump(result)


@asset_tool("hunyuan_world_generate_3d_model")
async def hunyuan_world_generate_3d_model(
    output_path: Annotated[str, Field(description="Where the model is saved (.glb or .gltf)")],
    prompt: Optional[str] = None,
    input_image_paths: InputImages = None,
    format: Optional[Literal["glb", "gltf"]] = None,
    auto_generate_references: Optional[bool] = None,
    reference_model: Optional[ImageModel] = None,
    cleanup_references: Optional[bool] = None,
    camera_distance: Optional[float] = None,
    fov: Optional[float] = None,
    num_inference_steps: Optional[int] = None,
    guidance_scale: Optional[float] = None,
    seed: Optional[int] = None,
) -> str:
    """Generate a 3D world mesh from a single image with FAL.ai Hunyuan World."""
    with _tool_errors("hunyuan_world_generate_3d_model"):
        logger.info("mcp_tool_called", tool="hunyuan_world_generate_3d_model", prompt=prompt)
        result = await generate_3d_model_smart(
            get_model3d_service(),
            prompt,
            output_path,
            "hunyuan-world",
            input_image_paths=input_image_paths,
            format=format,
            auto_generate_references=auto_generate_references,
            reference_model=reference_model,
            cleanup_references=cleanup_references,
            camera_distance=camera_distance,
            fov=fov,
            num_inference_steps=num_inference_steps,
            guidance_scale=guidance_scale,
            seed=seed,
        )
        return _dump(result)


# 5. MCP Server Setup


def create_server(allowed_tools: Optional[List[str]] = None) -> FastMCP:
    server = FastMCP(settings.APP_NAME)

    for name, fn in TOOLS.items():
        if allowed_tools is None or name in allowed_tools:
            server.tool(name=name)(fn)

    @server.prompt(name="asset_generation", description="Generate various types of assets for game development")
    def asset_generation(asset_type: str, style: Optional[str] = None) -> str:
        style_text = f" in {style} style" if style else ""
        return (
            f"Create a {asset_type} asset{style_text} suitable for game development. "
            "Please provide detailed specifications and requirements."
        )

    return server


mcp = create_server(settings.allowed_tools)


def main():
    logger.info("startup_initiated", app=settings.APP_NAME, tools=settings.allowed_tools or "all")
    mcp.run()


if __name__ == "__main__":
    main()
