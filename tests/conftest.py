from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
import requests

from picschedule.event_models import ExtractionRequest

TEST_API_KEY = "sk-or-v1-" + "a" * 48
TINY_PNG_URL = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """No log files, no real credentials, no stub override leaking in from the shell."""
    monkeypatch.setenv("PICSCHEDULE_LOG_FILE", "0")
    for name in ("OPENROUTER_API_KEY", "USE_STUB", "PICSCHEDULE_SKIP_KEY_CHECK",
                 "PICSCHEDULE_BASE_URL", "PICSCHEDULE_PROBE_URL"):
        monkeypatch.delenv(name, raising=False)


def make_response(status_code: int = 200, body=None) -> MagicMock:
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    if body is None:
        resp.text = ""
    elif isinstance(body, str):
        resp.text = body
    else:
        resp.text = json.dumps(body)
    return resp


def completion(content: str) -> dict:
    """Chat-completions response body carrying content."""
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class RecordingSleep:
    """Stands in for time.sleep; remembers every requested delay."""

    def __init__(self):
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def image_request() -> ExtractionRequest:
    return ExtractionRequest(image_data=TINY_PNG_URL, filename="flyer.png")


@pytest.fixture
def api_key() -> str:
    return TEST_API_KEY
