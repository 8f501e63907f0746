import os
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "mcp-asset-gen"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = False

    # Comma separated tool names. Unset exposes every tool.
    ALLOWED_TOOLS: Optional[str] = None

    # None disables the timeout: a hung provider hangs the tool call
    HTTP_TIMEOUT: Optional[float] = None

    # Provider endpoints
    FAL_BASE_URL: str = "https://fal.run"
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def allowed_tools(self) -> Optional[List[str]]:
        if not self.ALLOWED_TOOLS:
            return None
        return [name.strip() for name in self.ALLOWED_TOOLS.split(",") if name.strip()]


class LocalSettings(Settings):
    ENV: str = "dev"


class ProductionSettings(Settings):
    ENV: str = "production"
    JSON_LOGS: bool = True


# Factory to choose the right config
def get_settings() -> Settings:
    env = os.getenv("ENV", "local")
    if env == "production":
        return ProductionSettings()
    return LocalSettings()


settings = get_settings()
