from typing import Optional


class AssetGenError(Exception):
    """
    Root of every error this server raises.
    Keeps the underlying exception, when there is one, on `original_error`.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


# --- Configuration Exceptions ---


class ConfigurationError(AssetGenError):
    """
    Raised when the process environment is missing something the tool needs.
    """

    pass


class MissingCredentialError(ConfigurationError):
    """
    Raised when an API key environment variable is unset or empty.
    """

    def __init__(self, env_var: str):
        super().__init__(f"{env_var} environment variable is required")
        self.env_var = env_var


# --- Validation Exceptions (raised before any network call) ---


class ValidationException(AssetGenError):
    """
    Raised when input parameters are invalid (e.g., inference steps out of range).
    """

    pass


class IncompatibleVariantError(ValidationException):
    """
    Raised when a variant is requested for a model family that does not define it.
    """

    pass


class InsufficientViewsError(ValidationException):
    """
    Raised when a positional multi-view variant receives fewer images than view slots.
    """

    pass


# --- Remote / Transport Exceptions ---


class GenerationError(AssetGenError):
    """
    Raised when the AI Model Provider (FAL.ai/OpenAI/Gemini) returns an error payload
    or a response without a usable artifact.
    """

    pass


class TransportError(AssetGenError):
    """
    Raised when the HTTP call itself fails (connection error, non JSON body, failed download).
    """

    pass


# --- Local IO Exceptions ---


class StorageError(AssetGenError):
    """
    Raised when Local Disk operations fail (read, write, mkdir).
    """

    pass


class ImageProcessingError(StorageError):
    """
    Raised when an image cannot be decoded or re-encoded.
    """

    pass


# --- Pipeline Exceptions ---


class PipelineError(AssetGenError):
    """
    Raised when a multi stage generation cannot produce the inputs of its next stage.
    """

    pass


class NoReferenceImagesError(PipelineError):
    """
    Raised when automatic reference synthesis produced zero images.
    """

    pass


class NoInputImagesError(PipelineError):
    """
    Raised when a 3D generation reaches dispatch with no input images at all.
    """

    pass
