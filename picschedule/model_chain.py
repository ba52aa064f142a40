"""
Model fallback chain.

Tries candidate models in priority order. A model-level failure (model
loading, model not found, internal server error) moves on to the next
model; any other failure ends the chain at once because a different model
cannot fix it.
"""

from dataclasses import dataclass
from typing import List, Sequence, Union

from picschedule.errors import (
    MalformedResponse,
    ModelLevelError,
    ModelLoading,
    ModelNotFound,
    ModelServerError,
    ModelUnavailable,
    NetworkExhausted,
    PicScheduleError,
    RequestRejected,
    RequestTimeout,
    Unauthorized,
)
from picschedule.event_models import (
    CallResult,
    CandidateModel,
    ExtractionRequest,
    HttpError,
    NetworkError,
    Success,
    Timeout,
)
from picschedule.image_llm_client import ImageLLMClient, extract_content
from picschedule.logging_helper import Log

MODEL_LOADING_STATUSES = {503}
MODEL_NOT_FOUND_STATUSES = {404}
# Any other 5xx is a server-side fault; 501 means the request itself is unsupported
NOT_IMPLEMENTED_STATUS = 501
UNAUTHORIZED_STATUSES = {401, 403}


@dataclass
class ChainSuccess:
    text: str
    model_used: str
    attempts: int = 1


@dataclass
class TerminalFailure:
    error: PicScheduleError
    attempts: int = 0


ChainOutcome = Union[ChainSuccess, TerminalFailure]


def classify_failure(result: CallResult, model: CandidateModel) -> PicScheduleError:
    """
    Map a failed CallResult to the error taxonomy.

    Args:
        result: Terminal result of one model attempt (not a Success)
        model: The model that was tried

    Returns:
        A ModelLevelError subclass when another model may succeed,
        any other PicScheduleError when the chain must stop
    """
    if isinstance(result, Timeout):
        return RequestTimeout(
            f"Request timed out after {result.attempts} attempt(s). "
            "The AI service may be experiencing high load",
            attempts=result.attempts,
        )
    if isinstance(result, NetworkError):
        return NetworkExhausted(
            f"Network connection failed after {result.attempts} attempt(s): {result.message}",
            attempts=result.attempts,
        )
    if isinstance(result, HttpError):
        status = result.status_code
        if status in MODEL_LOADING_STATUSES:
            return ModelLoading(model.name, status_code=status)
        if status in MODEL_NOT_FOUND_STATUSES:
            return ModelNotFound(model.name, status_code=status)
        if status >= 500 and status != NOT_IMPLEMENTED_STATUS:
            return ModelServerError(model.name, status_code=status)
        if status in UNAUTHORIZED_STATUSES:
            return Unauthorized(status_code=status)
        return RequestRejected(f"OpenRouter API error: {status} - {result.body[:200]}", status_code=status)
    return PicScheduleError(f"Unexpected call result: {result!r}")


class ModelFallbackChain:
    """Runs one extraction request across an ordered list of models."""

    def __init__(self, client: ImageLLMClient):
        self.client = client

    def run(self, request: ExtractionRequest, models: Sequence[CandidateModel], prompt: str) -> ChainOutcome:
        """
        Try each model once, in priority order.

        Args:
            request: The image to analyze
            models: Candidate models; sorted by priority, ties keep list order
            prompt: Extraction instructions

        Returns:
            ChainSuccess with the model text, or TerminalFailure with the
            classified error (ModelUnavailable when every model failed at
            the model level)
        """
        ordered: List[CandidateModel] = sorted(models, key=lambda m: m.priority)
        if not ordered:
            return TerminalFailure(ModelUnavailable("No candidate models configured"))

        last_error: PicScheduleError = ModelUnavailable()
        for index, model in enumerate(ordered):
            Log.info(f"Trying model {index + 1}/{len(ordered)}: {model.name}")
            result = self.client.call_model(request, model, prompt)

            if isinstance(result, Success):
                try:
                    text = extract_content(result.payload)
                except MalformedResponse as error:
                    Log.kv({"stage": "chain", "model": model.name, "state": "aborted", "reason": "malformed_response"})
                    return TerminalFailure(error, attempts=index + 1)
                Log.kv({"stage": "chain", "model": model.name, "state": "done", "attempt": index + 1})
                return ChainSuccess(text=text, model_used=model.name, attempts=index + 1)

            error = classify_failure(result, model)
            if not isinstance(error, ModelLevelError):
                Log.warn(f"Model chain aborted on {model.name}: {error.message}")
                Log.kv({
                    "stage": "chain",
                    "model": model.name,
                    "state": "aborted",
                    "reason": type(error).__name__,
                })
                return TerminalFailure(error, attempts=index + 1)

            last_error = error
            Log.warn(f"{error.message} - advancing to next model")
            Log.kv({
                "stage": "chain",
                "model": model.name,
                "state": "advancing" if index + 1 < len(ordered) else "exhausted",
                "reason": type(error).__name__,
                "status": error.status_code,
            })

        Log.error(f"All {len(ordered)} candidate models failed")
        return TerminalFailure(
            ModelUnavailable(f"All {len(ordered)} candidate models failed; last error: {last_error.message}", last_error=last_error),
            attempts=len(ordered),
        )
