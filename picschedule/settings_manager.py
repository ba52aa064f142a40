"""
Configuration for the extraction pipeline.

The inference credential and service URLs come from the environment.
Tunables (candidate models, retry budget, timeouts, truncation cap) have
defaults that an optional JSON settings file can override, so operators
can reorder the model chain without a redeploy.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, TypedDict

from picschedule.errors import ConfigurationError
from picschedule.event_models import CandidateModel
from picschedule.logging_helper import Log

API_KEY_ENV = "OPENROUTER_API_KEY"
API_KEY_PREFIX = "sk-or-v1-"

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_PROBE_URL = "https://openrouter.ai"

DEFAULT_MODELS: Tuple[CandidateModel, ...] = (
    CandidateModel("opengvlab/internvl3-14b:free", priority=0),
    CandidateModel("qwen/qwen2.5-vl-72b-instruct:free", priority=1),
    CandidateModel("meta-llama/llama-3.2-11b-vision-instruct:free", priority=2),
)

EXTRACTION_PROMPT = """Analyze this image and extract any calendar events, appointments, or scheduled activities you can find. Look for dates, times, event titles, locations, and descriptions.

Return your response as a JSON array of events in this exact format:
[
  {
    "title": "Event title",
    "date": "YYYY-MM-DD",
    "start_time": "HH:MM AM/PM",
    "end_time": "HH:MM AM/PM",
    "location": "Event location",
    "description": "Event description"
  }
]

Use null for any field you cannot find. If you find multiple events, include them all in the array. If no events are found, return an empty array [].
Only return valid JSON - no additional text or explanations."""


class SettingsSchema(TypedDict, total=False):
    models: List[str]
    max_retries: int
    per_attempt_timeout_ms: int
    base_delay_ms: int
    probe_timeout_ms: int
    truncate_at: int


SETTINGS_FILE = Path(os.getenv(
    "PICSCHEDULE_SETTINGS_FILE",
    Path.home() / ".config" / "picschedule" / "settings.json",
))

DEFAULT_SETTINGS: SettingsSchema = {
    "models": [model.name for model in DEFAULT_MODELS],
    "max_retries": 2,
    "per_attempt_timeout_ms": 90000,
    "base_delay_ms": 1000,
    "probe_timeout_ms": 10000,
    "truncate_at": 300,
}


@dataclass
class ExtractionOptions:
    """Per-request knobs for extract_events. Every field has a default."""
    max_retries: int = DEFAULT_SETTINGS["max_retries"]
    per_attempt_timeout_ms: int = DEFAULT_SETTINGS["per_attempt_timeout_ms"]
    base_delay_ms: int = DEFAULT_SETTINGS["base_delay_ms"]
    probe_timeout_ms: int = DEFAULT_SETTINGS["probe_timeout_ms"]
    models: List[CandidateModel] = field(default_factory=lambda: list(DEFAULT_MODELS))
    truncate_at: int = DEFAULT_SETTINGS["truncate_at"]
    prompt: str = EXTRACTION_PROMPT

    @classmethod
    def from_settings(cls, settings: Optional[SettingsSchema] = None) -> "ExtractionOptions":
        settings = settings if settings is not None else load_settings()
        return cls(
            max_retries=int(settings["max_retries"]),
            per_attempt_timeout_ms=int(settings["per_attempt_timeout_ms"]),
            base_delay_ms=int(settings["base_delay_ms"]),
            probe_timeout_ms=int(settings["probe_timeout_ms"]),
            models=models_from_names(settings["models"]),
            truncate_at=int(settings["truncate_at"]),
        )


def models_from_names(names) -> List[CandidateModel]:
    """Build a fallback chain from model names, in the order given."""
    return [CandidateModel(str(name), priority=index) for index, name in enumerate(names)]


def load_settings(path: Optional[Path] = None) -> SettingsSchema:
    """
    Load settings from disk, falling back to defaults if anything fails.
    """
    settings_file = path or SETTINGS_FILE
    merged: SettingsSchema = dict(DEFAULT_SETTINGS)  # type: ignore[assignment]
    if not settings_file.exists():
        return merged

    try:
        data = json.loads(settings_file.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("Settings data is not a JSON object")
    except (OSError, ValueError) as err:
        Log.warn(f"Failed to read settings file ({settings_file}): {err}")
        return merged

    # Merge only known keys
    for key in DEFAULT_SETTINGS:
        if key in data:
            merged[key] = data[key]  # type: ignore[literal-required]

    if not isinstance(merged["models"], list) or not merged["models"]:
        Log.warn(f"Invalid models value '{merged['models']}', using default chain")
        merged["models"] = list(DEFAULT_SETTINGS["models"])

    Log.info(f"Loaded settings from {settings_file}")
    return merged


def _truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


def get_api_key(explicit: Optional[str] = None) -> str:
    """
    Resolve and validate the inference-service credential.

    Args:
        explicit: Key passed by the caller; the environment is used otherwise

    Returns:
        The API key

    Raises:
        ConfigurationError: key missing, or not in the OpenRouter format
    """
    api_key = (explicit if explicit is not None else os.getenv(API_KEY_ENV, "")).strip()

    Log.kv({"stage": "config", "api_key_present": bool(api_key), "api_key_length": len(api_key)})

    if not api_key:
        Log.error(f"{API_KEY_ENV} is not set in environment variables")
        raise ConfigurationError()

    if not _truthy(os.getenv("PICSCHEDULE_SKIP_KEY_CHECK")) and not api_key.startswith(API_KEY_PREFIX):
        Log.error(f"Invalid API key format - should start with {API_KEY_PREFIX}")
        raise ConfigurationError(f"Invalid API key format - OpenRouter API key should start with {API_KEY_PREFIX}")

    return api_key


def get_base_url() -> str:
    return os.getenv("PICSCHEDULE_BASE_URL", DEFAULT_BASE_URL).rstrip("/")


def get_probe_url() -> str:
    return os.getenv("PICSCHEDULE_PROBE_URL", DEFAULT_PROBE_URL)


def use_stub_client() -> bool:
    return _truthy(os.getenv("USE_STUB"))
