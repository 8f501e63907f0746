import json

import pytest
from fastmcp import Client
from fastmcp.exceptions import ToolError

from mcp_asset_gen import main

ALL_TOOLS = {
    "openai_generate_image",
    "gemini_generate_image",
    "falai_generate_image",
    "falai_edit_image",
    "generate_character_sheet",
    "generate_character_variation",
    "generate_pixel_art_character",
    "generate_texture",
    "generate_object_sheet",
    "convert_to_transparent",
    "trellis_generate_3d_model",
    "hunyuan3d_generate_3d_model",
    "hunyuan_world_generate_3d_model",
}


def test_every_tool_is_registered():
    assert set(main.TOOLS) == ALL_TOOLS


@pytest.mark.asyncio
async def test_allowed_tools_filter():
    server = main.create_server(["falai_generate_image", "trellis_generate_3d_model", "not_a_tool"])

    async with Client(server) as client:
        tools = await client.list_tools()

    assert {tool.name for tool in tools} == {"falai_generate_image", "trellis_generate_3d_model"}


@pytest.mark.asyncio
async def test_no_filter_exposes_everything():
    async with Client(main.create_server()) as client:
        tools = await client.list_tools()

    assert {tool.name for tool in tools} == ALL_TOOLS


@pytest.mark.asyncio
async def test_validation_error_becomes_tool_error(tmp_path):
    with pytest.raises(ToolError) as exc:
        await main.TOOLS["trellis_generate_3d_model"](
            output_path=str(tmp_path / "x.glb"), prompt="a shield", variant="single-turbo"
        )

    assert str(exc.value) == "Error: Trellis model does not support turbo variants"


@pytest.mark.asyncio
async def test_missing_credential_becomes_tool_error(monkeypatch, tmp_path):
    monkeypatch.delenv("FAL_AI_API_KEY", raising=False)

    with pytest.raises(ToolError, match="Error: FAL_AI_API_KEY environment variable is required"):
        await main.TOOLS["falai_generate_image"](prompt="a rock", output_path=str(tmp_path / "rock.png"))


@pytest.mark.asyncio
async def test_tool_error_reaches_the_client(tmp_path):
    async with Client(main.create_server()) as client:
        with pytest.raises(ToolError, match="Error: Prompt is required and cannot be empty"):
            await client.call_tool("gemini_generate_image", {"prompt": "", "output_path": str(tmp_path / "x.png")})


@pytest.mark.asyncio
async def test_image_tool_returns_result_json(monkeypatch, image_service, tmp_path):
    monkeypatch.setattr(main, "get_image_service", lambda: image_service)

    text = await main.TOOLS["falai_generate_image"](prompt="a rock", output_path=str(tmp_path / "rock.png"))

    payload = json.loads(text)
    assert payload["saved_paths"] == [str(tmp_path / "rock.png")]
    assert payload["prompt_used"] == "a rock"
    assert "revised_prompt" not in payload


@pytest.mark.asyncio
async def test_convert_to_transparent_tool(make_image, tmp_path):
    source = make_image("white.png", color=(255, 255, 255))
    output = tmp_path / "clear.png"

    text = await main.TOOLS["convert_to_transparent"](input_path=str(source), output_path=str(output))

    assert json.loads(text)["saved_paths"] == [str(output)]
    assert output.exists()


@pytest.mark.asyncio
async def test_asset_generation_prompt():
    async with Client(main.create_server()) as client:
        result = await client.get_prompt("asset_generation", {"asset_type": "3d", "style": "low poly"})

    assert result.messages[0].content.text == (
        "Create a 3d asset in low poly style suitable for game development. "
        "Please provide detailed specifications and requirements."
    )
