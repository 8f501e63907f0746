from abc import ABC, abstractmethod
from typing import Any, Dict, List

from mcp_asset_gen.domain.models import ImageGenerationResult, MeshArtifact, ModelFamily, Variant


class ImageGenerator(ABC):
    """One 2D image provider (OpenAI, Gemini, FAL.ai)."""

    name: str

    @abstractmethod
    async def generate(self, options: Dict[str, Any]) -> ImageGenerationResult:
        """Generates (or edits) images described by a resolved option bag and saves them to disk"""
        pass


class Model3DGenerator(ABC):
    provider: str

    @abstractmethod
    def build_request_body(
        self, family: ModelFamily, variant: Variant, image_references: List[str], options: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Shapes the (family, variant) specific request body. Never touches the network."""
        pass

    @abstractmethod
    def consumed_references(self, family: ModelFamily, variant: Variant, image_references: List[str]) -> List[str]:
        """The subset of references the (family, variant) request actually uses"""
        pass

    @abstractmethod
    def model_name(self, family: ModelFamily) -> str:
        pass

    @abstractmethod
    async def generate_mesh(self, family: ModelFamily, variant: Variant, body: Dict[str, Any]) -> MeshArtifact:
        """Calls the endpoint for (family, variant) and returns where the mesh can be downloaded"""
        pass
