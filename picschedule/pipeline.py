"""
Image-to-event extraction pipeline.

credential check -> connectivity probe (once) -> model fallback chain
-> response parser -> time normalizer, with the degradation policy
turning network-shaped failures into a single placeholder event.
"""

import time
from typing import Callable, Optional

from picschedule.connectivity import probe
from picschedule.degradation import DegradationPolicy
from picschedule.errors import ConnectivityUnavailable, InvalidImageError, PicScheduleError
from picschedule.event_models import ExtractionRequest, ExtractionResult
from picschedule.image_encoding import validate_data_url
from picschedule.image_llm_client import ImageLLMClient, get_llm_client
from picschedule.logging_helper import Log
from picschedule.model_chain import ChainSuccess, ModelFallbackChain
from picschedule.request_executor import ExecutorConfig
from picschedule.response_parser import parse
from picschedule.settings_manager import ExtractionOptions, get_api_key, get_probe_url
from picschedule.time_normalizer import normalize

FALLBACK_MODEL_NAME = "fallback"


def _degrade(policy: DegradationPolicy, error: PicScheduleError) -> ExtractionResult:
    events = policy.decide(error)
    return ExtractionResult(events=events, model_used=FALLBACK_MODEL_NAME, fallback_used=True, error=error)


def extract_events(
    request: ExtractionRequest,
    options: Optional[ExtractionOptions] = None,
    api_key: Optional[str] = None,
    session=None,
    sleep: Callable[[float], None] = time.sleep,
    client: Optional[ImageLLMClient] = None,
    probe_url: Optional[str] = None,
    precheck: bool = True,
) -> ExtractionResult:
    """
    Extract calendar events from one image.

    Args:
        request: The image to analyze
        options: Retry, timeout and model settings (defaults if None)
        api_key: Inference credential; read from OPENROUTER_API_KEY if None
        session: Optional requests.Session-like object shared by the probe
            and every model attempt
        sleep: Backoff sleep function
        client: Explicit LLM client (skips the factory)
        probe_url: Host to probe before the first model call
        precheck: Run the connectivity probe (offline stub runs skip it)

    Returns:
        ExtractionResult. Network-shaped failures come back as a single
        fallback event with fallback_used=True.

    Raises:
        ConfigurationError: credential missing or malformed (before any network call)
        Unauthorized: the service rejected the credential
        MalformedResponse: the service answered with an unexpected shape
        RequestRejected: the service refused the request
        InvalidImageError: the request does not carry a usable image
    """
    options = options or ExtractionOptions()
    policy = DegradationPolicy()

    Log.section("Extract Events")
    Log.kv({
        "stage": "pipeline",
        "status": "start",
        "filename": request.filename or "unknown",
        "models": len(options.models),
        "max_retries": options.max_retries,
        "timeout_ms": options.per_attempt_timeout_ms,
    })

    if client is None:
        api_key = get_api_key(api_key)

    if not validate_data_url(request.image_data):
        Log.error("Invalid or malformed image data")
        raise InvalidImageError()

    if precheck:
        status = probe(probe_url or get_probe_url(), options.probe_timeout_ms, session=session)
        if not status.connected:
            return _degrade(policy, ConnectivityUnavailable(f"Network connectivity test failed: {status.error}"))

    if client is None:
        executor_config = ExecutorConfig(
            timeout_ms=options.per_attempt_timeout_ms,
            max_retries=options.max_retries,
            base_delay_ms=options.base_delay_ms,
        )
        client = get_llm_client(api_key, executor_config, session=session, sleep=sleep)

    outcome = ModelFallbackChain(client).run(request, options.models, options.prompt)
    if not isinstance(outcome, ChainSuccess):
        return _degrade(policy, outcome.error)

    Log.info(f"LLM response received from {outcome.model_used}")
    events = [normalize(event) for event in parse(outcome.text, truncate_at=options.truncate_at)]

    Log.kv({
        "stage": "pipeline",
        "status": "done",
        "model_used": outcome.model_used,
        "events": len(events),
        "fallback_used": False,
    })
    return ExtractionResult(events=events, model_used=outcome.model_used, raw_text=outcome.text)
