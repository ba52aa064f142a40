"""
Error taxonomy for the image-to-event extraction pipeline.

Errors flagged ``network_shaped`` are transient: the degradation policy
absorbs them and returns a placeholder event. Everything else is a
deployment or input defect and is raised to the caller.
"""

from typing import Optional


class PicScheduleError(Exception):
    """Base class for all pipeline errors."""

    network_shaped = False
    default_message = "Image processing failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.status_code = status_code

    def user_message(self) -> str:
        """Operator-facing explanation, safe to show instead of a traceback."""
        return self.message


# Network-shaped: absorbed by the degradation policy

class ConnectivityUnavailable(PicScheduleError):
    """The one-time reachability probe failed."""

    network_shaped = True
    default_message = "Network connectivity test failed"

    def user_message(self) -> str:
        return (
            f"{self.message}. Check your internet connection and that outgoing "
            "HTTPS connections to the AI service are allowed."
        )


class NetworkExhausted(PicScheduleError):
    """Every retry of a call ended in a transport failure."""

    network_shaped = True
    default_message = "Network connection failed after all retry attempts"

    def __init__(self, message: Optional[str] = None, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class RequestTimeout(PicScheduleError):
    """Every retry of a call exceeded its deadline."""

    network_shaped = True
    default_message = "Request timed out"

    def __init__(self, message: Optional[str] = None, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts

    def user_message(self) -> str:
        return f"{self.message}. The AI service may be under high load, please try again."


class ModelUnavailable(PicScheduleError):
    """All candidate models failed with model-level errors."""

    network_shaped = True
    default_message = "No candidate model is currently available"

    def __init__(self, message: Optional[str] = None, last_error: Optional[PicScheduleError] = None):
        super().__init__(message)
        self.last_error = last_error
        if last_error is not None:
            self.status_code = last_error.status_code


# Model-level: advance the fallback chain, never reach the caller directly

class ModelLevelError(PicScheduleError):
    """A failure specific to one model; another model may succeed."""

    def __init__(self, model: str, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message or f"{self.default_message}: {model}", status_code)
        self.model = model


class ModelLoading(ModelLevelError):
    default_message = "Model is currently loading"


class ModelNotFound(ModelLevelError):
    default_message = "Model not available"


class ModelServerError(ModelLevelError):
    default_message = "Inference service internal error"


# Developer-actionable: always propagated

class ConfigurationError(PicScheduleError):
    """Credential missing or malformed."""

    default_message = "Server configuration error - OpenRouter API key not found"

    def user_message(self) -> str:
        return (
            f"{self.message}. Set OPENROUTER_API_KEY in the environment "
            "and restart the service."
        )


class Unauthorized(PicScheduleError):
    """The inference service rejected the credential."""

    default_message = "Invalid OpenRouter API key"

    def user_message(self) -> str:
        return (
            f"{self.message}. Verify the API key is correct, has sufficient "
            "credits and is set in the environment."
        )


class MalformedResponse(PicScheduleError):
    """The inference service answered with an unexpected shape."""

    default_message = "Invalid response format"

    def __init__(self, message: Optional[str] = None, raw_response: str = ""):
        super().__init__(message)
        self.raw_response = raw_response


class RequestRejected(PicScheduleError):
    """The inference service refused the request itself (non-auth 4xx)."""

    default_message = "Inference service rejected the request"


class InvalidImageError(PicScheduleError):
    default_message = "Invalid or malformed image data"


class EmptyResponseError(PicScheduleError):
    default_message = "Empty response from LLM"
