"""
Image LLM Client interface for extracting event text from images.
Supports StubImageLLMClient (offline) and OpenRouterImageLLMClient (real provider).

A client performs one model attempt per call (retries on transport failures
happen inside the executor); choosing between models is the fallback
chain's job.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from picschedule.errors import MalformedResponse
from picschedule.event_models import CallResult, CandidateModel, ExtractionRequest, Success
from picschedule.logging_helper import Log
from picschedule.request_executor import ExecutorConfig, execute
from picschedule.settings_manager import get_base_url, use_stub_client


def extract_content(payload) -> str:
    """
    Pull choices[0].message.content out of a chat-completions response.

    Raises:
        MalformedResponse: the response does not have that shape
    """
    if isinstance(payload, dict):
        choices = payload.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
            if isinstance(message, dict) and isinstance(message.get("content"), str):
                return message["content"]

    raw = payload if isinstance(payload, str) else json.dumps(payload)
    Log.error(f"Invalid response format from inference service: {str(raw)[:200]}")
    Log.kv({"stage": "llm", "result": "failed", "reason": "invalid_response_format"})
    raise MalformedResponse("Invalid response format", raw_response=str(raw))


class ImageLLMClient(ABC):
    """Abstract base class for image LLM clients."""

    @abstractmethod
    def call_model(self, request: ExtractionRequest, model: CandidateModel, prompt: str) -> CallResult:
        """
        Ask one model to describe the events in the image.

        Args:
            request: The image to analyze
            model: Model to ask
            prompt: Extraction instructions

        Returns:
            CallResult; a Success payload is a chat-completions response
        """


class StubImageLLMClient(ImageLLMClient):
    """
    Stub LLM client for offline testing.
    Returns a hardcoded completion in the real API response format.
    """

    def __init__(self, content: Optional[str] = None):
        self.content = content if content is not None else json.dumps([
            {
                "title": "Sample Meeting",
                "date": "2024-11-15",
                "start_time": "10:30 AM",
                "description": "Quarterly business review. This is a dummy event for stub client.",
                "location": "Conference Room A",
            }
        ])

    def call_model(self, request: ExtractionRequest, model: CandidateModel, prompt: str) -> CallResult:
        Log.section("Stub LLM Client")
        Log.info("Using stub LLM client (offline mode)")
        Log.kv({"stage": "llm", "provider": "stub", "model": model.name, "result": "success"})
        return Success(payload={"choices": [{"message": {"content": self.content}}]})


class OpenRouterImageLLMClient(ImageLLMClient):
    """
    OpenRouter chat-completions client for real event extraction.
    """

    def __init__(
        self,
        api_key: str,
        executor_config: ExecutorConfig,
        base_url: Optional[str] = None,
        session=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize OpenRouter client.

        Args:
            api_key: OpenRouter API key from environment
            executor_config: Timeout and retry policy for every model attempt
            base_url: API base URL (defaults to PICSCHEDULE_BASE_URL)
            session: Optional requests.Session-like object
            sleep: Backoff sleep function
        """
        self.api_key = api_key
        self.api_url = f"{(base_url or get_base_url()).rstrip('/')}/chat/completions"
        self.executor_config = executor_config
        self.session = session
        self.sleep = sleep

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": "https://picschedule.app",
            "X-Title": "PicSchedule",
            "User-Agent": "PicSchedule/1.0",
        }

    def build_payload(self, request: ExtractionRequest, model: CandidateModel, prompt: str) -> dict:
        return {
            "model": model.name,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "text",
                            "text": prompt
                        },
                        {
                            "type": "image_url",
                            "image_url": {
                                "url": request.image_data
                            }
                        }
                    ]
                }
            ],
            "max_tokens": 1000,
            "temperature": 0.1
        }

    def call_model(self, request: ExtractionRequest, model: CandidateModel, prompt: str) -> CallResult:
        Log.section("OpenRouter LLM Client")
        Log.info(f"Processing image with {model.name}")
        Log.kv({
            "stage": "llm",
            "provider": "openrouter",
            "model": model.name,
            "status": "requesting",
            "image_chars": len(request.image_data),
            "filename": request.filename or "unknown",
        })

        return execute(
            self.api_url,
            self.build_payload(request, model, prompt),
            self.executor_config,
            headers=self._headers(),
            session=self.session,
            sleep=self.sleep,
            label=model.name,
        )


def get_llm_client(
    api_key: Optional[str],
    executor_config: ExecutorConfig,
    session=None,
    sleep: Callable[[float], None] = time.sleep,
) -> ImageLLMClient:
    """
    Factory function to get the appropriate LLM client.
    Can be forced to use the stub by setting the USE_STUB environment variable.

    Returns:
        ImageLLMClient instance
    """
    if use_stub_client():
        Log.info("USE_STUB flag set - using stub client")
        return StubImageLLMClient()
    return OpenRouterImageLLMClient(api_key, executor_config, session=session, sleep=sleep)
