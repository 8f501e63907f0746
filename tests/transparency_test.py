from pathlib import Path
from unittest.mock import AsyncMock

import numpy as np
import pytest
from PIL import Image

from mcp_asset_gen.core.exceptions import ImageProcessingError, ValidationException
from mcp_asset_gen.domain.models import ImageGenerationResult
from mcp_asset_gen.services.transparency import (
    check_transparency_support_available,
    convert_to_transparent_background,
    generate_transparent_image,
    generate_transparent_result,
    make_background_transparent,
    resolve_target_color,
)


@pytest.fixture
def framed_image():
    """White 6x6 canvas with a red 2x2 square in the middle."""
    img = Image.new("RGB", (6, 6), color=(255, 255, 255))
    for x in (2, 3):
        for y in (2, 3):
            img.putpixel((x, y), (200, 0, 0))
    return img


def test_background_pixels_become_transparent(framed_image):
    result = make_background_transparent(framed_image, "white", tolerance=0)
    alpha = np.array(result)[..., 3]

    assert result.size == (6, 6)
    assert alpha[0, 0] == 0
    assert alpha[2, 2] == 255
    assert (alpha == 0).sum() == 32


def test_rgb_channels_are_untouched(framed_image):
    result = np.array(make_background_transparent(framed_image, "white", tolerance=30))
    source = np.array(framed_image.convert("RGBA"))

    assert (result[..., :3] == source[..., :3]).all()


def test_every_pixel_within_tolerance_gives_full_transparency():
    img = Image.new("RGB", (5, 3), color=(250, 250, 250))
    alpha = np.array(make_background_transparent(img, "white", tolerance=10))[..., 3]
    assert (alpha == 0).all()


def test_zero_tolerance_without_exact_match_is_identity():
    img = Image.new("RGB", (4, 4), color=(254, 255, 255))
    result = make_background_transparent(img, "white", tolerance=0)
    assert (np.array(result)[..., 3] == 255).all()


def test_tolerance_boundary_is_inclusive():
    # Distance from white to (255, 252, 251) is exactly 5
    img = Image.new("RGB", (2, 2), color=(255, 252, 251))
    assert (np.array(make_background_transparent(img, "white", tolerance=5))[..., 3] == 0).all()
    assert (np.array(make_background_transparent(img, "white", tolerance=4))[..., 3] == 255).all()


def test_auto_samples_the_four_corners():
    rgba = np.zeros((3, 3, 4), dtype=np.uint8)
    rgba[0, 0, :3] = (10, 10, 10)
    rgba[0, -1, :3] = (11, 10, 10)
    rgba[-1, 0, :3] = (10, 10, 10)
    rgba[-1, -1, :3] = (11, 10, 10)

    # 42 / 4 = 10.5 rounds half up
    assert resolve_target_color(rgba, "auto") == (11, 10, 10)


def test_auto_on_single_pixel_image():
    img = Image.new("RGB", (1, 1), color=(12, 34, 56))
    result = make_background_transparent(img, "auto", tolerance=0)
    assert np.array(result)[0, 0, 3] == 0


def test_invalid_background_color_is_rejected(framed_image):
    with pytest.raises(ValidationException, match="Background color must be one of: white, black, auto"):
        make_background_transparent(framed_image, "purple")


def test_out_of_range_tolerance_is_rejected(framed_image):
    with pytest.raises(ValidationException):
        make_background_transparent(framed_image, "white", tolerance=300)


def test_convert_writes_png_with_alpha(make_image, tmp_path):
    source = make_image("solid.jpg", size=(10, 8), color=(0, 0, 0))
    output = tmp_path / "out" / "clear.png"

    saved = convert_to_transparent_background(str(source), str(output), "black", tolerance=10)

    assert saved == str(output)
    with Image.open(output) as img:
        assert img.mode == "RGBA"
        assert img.size == (10, 8)
        assert (np.array(img)[..., 3] == 0).all()


def test_convert_undecodable_input_leaves_no_output(tmp_path):
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not an image")
    output = tmp_path / "clear.png"

    with pytest.raises(ImageProcessingError):
        convert_to_transparent_background(str(broken), str(output))

    assert not output.exists()


@pytest.mark.asyncio
async def test_generate_transparent_image_two_stage(tmp_path):
    output = tmp_path / "sprite.png"
    temp = tmp_path / "sprite_temp_solid.png"

    async def fake_generate(provider, prompt, output_path, **options):
        Image.new("RGB", (4, 4), color=(255, 255, 255)).save(output_path, "PNG")
        return ImageGenerationResult(provider="FAL.ai", model="qwen", saved_paths=[output_path], prompt_used=prompt)

    service = AsyncMock()
    service.generate_image.side_effect = fake_generate

    saved = await generate_transparent_image(service, "a slime", str(output), "falai", "white", 20)

    assert saved == str(output)
    args = service.generate_image.call_args.args
    assert args[0] == "falai"
    assert args[1] == (
        "a slime, plain white background, no shadows, isolated subject, professional product photography style"
    )
    assert args[2] == str(temp)
    assert not temp.exists()
    with Image.open(output) as img:
        assert (np.array(img)[..., 3] == 0).all()


@pytest.mark.asyncio
async def test_generate_transparent_image_cleans_up_on_failure(tmp_path):
    temp = tmp_path / "sprite_temp_solid.png"

    async def failing_generate(provider, prompt, output_path, **options):
        Path(output_path).write_bytes(b"garbage")
        return ImageGenerationResult(provider="FAL.ai", model="qwen", saved_paths=[output_path], prompt_used=prompt)

    service = AsyncMock()
    service.generate_image.side_effect = failing_generate

    with pytest.raises(ImageProcessingError):
        await generate_transparent_image(service, "a slime", str(tmp_path / "sprite.png"), "falai", "auto")

    assert "solid uniform background" in service.generate_image.call_args.args[1]
    assert not temp.exists()


@pytest.mark.asyncio
async def test_transparent_result_reports_the_generating_model(tmp_path):
    output = tmp_path / "icon.png"

    async def fake_generate(provider, prompt, output_path, **options):
        Image.new("RGB", (4, 4), color=(0, 0, 0)).save(output_path, "PNG")
        return ImageGenerationResult(provider="FAL.ai", model="qwen", saved_paths=[output_path], prompt_used=prompt)

    service = AsyncMock()
    service.generate_image.side_effect = fake_generate

    result = await generate_transparent_result(service, "a coin", str(output), "falai", "black")

    assert result.model == "qwen"
    assert result.provider == "FAL.ai"
    assert result.saved_paths == [str(output)]
    assert not (tmp_path / "icon_temp_solid.png").exists()


def test_transparency_support_is_always_available():
    assert check_transparency_support_available() is True
