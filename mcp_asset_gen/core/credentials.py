import os

from mcp_asset_gen.core.exceptions import MissingCredentialError

OPENAI_KEY_ENV = "OPENAI_API_KEY"
GEMINI_KEY_ENV = "GEMINI_API_KEY"
FAL_KEY_ENV = "FAL_AI_API_KEY"


def get_credential(name: str) -> str:
    """
    Reads an API key from the process environment.
    Not cached: every call sees the current environment.
    """
    value = os.environ.get(name)
    if not value:
        raise MissingCredentialError(name)
    return value


def get_openai_key() -> str:
    return get_credential(OPENAI_KEY_ENV)


def get_gemini_key() -> str:
    return get_credential(GEMINI_KEY_ENV)


def get_fal_key() -> str:
    return get_credential(FAL_KEY_ENV)
