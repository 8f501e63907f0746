from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from mcp_asset_gen.core.exceptions import ValidationException
from mcp_asset_gen.domain.models import ImageProvider
from mcp_asset_gen.services import asset_tools


@pytest.mark.asyncio
async def test_character_sheet_prompt_and_references(image_service, stub_generators, make_image, tmp_path):
    refs = [str(make_image("hero.png")), str(make_image("outfit.png"))]

    result = await asset_tools.generate_character_sheet(
        image_service,
        "a goblin tinkerer",
        str(tmp_path / "sheet.png"),
        reference_image_paths=refs,
        style="cartoon",
        include_expressions=True,
    )

    gemini = stub_generators[ImageProvider.GEMINI]
    prompt = gemini.prompts[0]
    assert prompt.startswith("Character sheet of a goblin tinkerer, cartoon art style")
    assert "facial expressions" in prompt
    assert "action poses" not in prompt
    assert gemini.options[0]["input_image_paths"] == refs
    assert result.saved_paths == [str(tmp_path / "sheet.png")]


@pytest.mark.asyncio
async def test_character_sheet_single_reference_for_edit_providers(image_service, stub_generators, make_image, tmp_path):
    refs = [str(make_image("a.png")), str(make_image("b.png"))]

    await asset_tools.generate_character_sheet(
        image_service, "a knight", str(tmp_path / "knight.png"), reference_image_paths=refs, model="falai"
    )

    assert stub_generators[ImageProvider.FALAI].options[0]["input_image_path"] == refs[0]


@pytest.mark.asyncio
async def test_character_variation_requires_references(image_service, tmp_path):
    with pytest.raises(ValidationException, match="At least one reference image"):
        await asset_tools.generate_character_variation(image_service, "swap outfit", str(tmp_path / "v.png"), [])


@pytest.mark.asyncio
async def test_pixel_art_prompt(image_service, stub_generators, tmp_path):
    await asset_tools.generate_pixel_art_character(
        image_service, "a slime", str(tmp_path / "slime.png"), "32x32", sprite_sheet=True, colors=16
    )

    falai = stub_generators[ImageProvider.FALAI]
    assert falai.prompts[0].startswith("32x32 pixel art character, a slime")
    assert "limited palette of 16 colors" in falai.prompts[0]
    assert "sprite sheet" in falai.prompts[0]
    assert falai.options[0]["image_size"] == "square_hd"


@pytest.mark.asyncio
async def test_pixel_art_rejects_unknown_dimensions(image_service, tmp_path):
    with pytest.raises(ValidationException, match="Pixel dimensions must be one of"):
        await asset_tools.generate_pixel_art_character(image_service, "a slime", str(tmp_path / "s.png"), "12x12")


@pytest.mark.asyncio
async def test_pixel_art_palette_range(image_service, tmp_path):
    with pytest.raises(ValidationException, match="between 4 and 256"):
        await asset_tools.generate_pixel_art_character(image_service, "a slime", str(tmp_path / "s.png"), "16x16", colors=2)


@pytest.mark.asyncio
async def test_transparent_pixel_art(image_service, stub_generators, tmp_path):
    output = tmp_path / "sprite.png"

    result = await asset_tools.generate_pixel_art_character(
        image_service, "a bat", str(output), "16x16", transparent_background=True
    )

    # The stub paints solid white, so everything is cleared
    with Image.open(output) as img:
        assert (np.array(img)[..., 3] == 0).all()
    assert result.saved_paths == [str(output)]
    assert result.provider == "falai"
    assert result.model == "stub"
    assert result.parameters["transparent_background"] is True
    assert "plain white background" in stub_generators[ImageProvider.FALAI].prompts[0]
    assert not (tmp_path / "sprite_temp_solid.png").exists()


@pytest.mark.asyncio
async def test_texture_prompt(image_service, stub_generators, tmp_path):
    await asset_tools.generate_texture(
        image_service, "cobblestone", str(tmp_path / "stone.png"), seamless=True, material_type="normal", model="openai"
    )

    openai = stub_generators[ImageProvider.OPENAI]
    assert openai.prompts[0].startswith("cobblestone texture, 1024x1024 resolution, seamless tileable pattern")
    assert "normal map" in openai.prompts[0]
    assert openai.options[0]["size"] == "1024x1024"


@pytest.mark.asyncio
async def test_texture_rejects_unknown_material(image_service, tmp_path):
    with pytest.raises(ValidationException, match="Material type must be one of"):
        await asset_tools.generate_texture(image_service, "grass", str(tmp_path / "g.png"), material_type="specular")


@pytest.mark.asyncio
async def test_object_sheet_one_file_per_view(image_service, stub_generators, tmp_path):
    base = tmp_path / "barrel.png"

    results = await asset_tools.generate_object_sheet(
        image_service, "a wooden barrel", str(base), viewpoints=["front", "perspective"], style="concept art"
    )

    assert [r.saved_paths[0] for r in results] == [
        str(tmp_path / "barrel_front.png"),
        str(tmp_path / "barrel_perspective.png"),
    ]
    assert all(Path(r.saved_paths[0]).exists() for r in results)
    assert "perspective view, concept art style" in stub_generators[ImageProvider.GEMINI].prompts[1]


@pytest.mark.asyncio
async def test_object_sheet_rejects_unknown_view(image_service, stub_generators, tmp_path):
    with pytest.raises(ValidationException, match="Viewpoint must be one of"):
        await asset_tools.generate_object_sheet(image_service, "a barrel", str(tmp_path / "b.png"), viewpoints=["front", "inside"])

    assert not stub_generators[ImageProvider.GEMINI].prompts
