"""
Resilient request executor.

Every outbound call goes through execute(): a bounded per-attempt timeout,
a bounded number of retries with progressive backoff on transport failures,
and classification of the outcome into exactly one CallResult variant.
HTTP error statuses are handed back to the caller to interpret.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Optional

import requests

from picschedule.event_models import CallResult, HttpError, NetworkError, Success, Timeout
from picschedule.logging_helper import Log

# Cap on how much of an error body is kept and logged
MAX_ERROR_BODY = 500


@dataclass(frozen=True)
class ExecutorConfig:
    """
    Retry policy for one call site.

    retry_statuses lists HTTP statuses that are retried like transport
    failures. Empty by default: status codes mean something to the caller.
    """
    timeout_ms: int = 90000
    max_retries: int = 2
    base_delay_ms: int = 1000
    retry_statuses: FrozenSet[int] = field(default_factory=frozenset)

    def backoff_seconds(self, attempt_index: int) -> float:
        """Progressive delay before the retry that follows attempt_index: 1x, 2x, 3x..."""
        return self.base_delay_ms * (attempt_index + 1) / 1000.0


def _decode_body(response: requests.Response):
    text = response.text
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def _attempt(
    session,
    method: str,
    target: str,
    payload: Optional[dict],
    headers: Optional[dict],
    timeout_s: float,
) -> CallResult:
    """Run one network attempt and classify it."""
    try:
        response = session.request(
            method,
            target,
            json=payload,
            headers=headers,
            timeout=timeout_s,
        )
    except requests.exceptions.Timeout as e:
        return Timeout(f"Request timed out after {timeout_s:.0f} seconds: {e}")
    except requests.exceptions.RequestException as e:
        return NetworkError(str(e) or e.__class__.__name__)

    if 200 <= response.status_code < 300:
        return Success(payload=_decode_body(response), status_code=response.status_code)
    return HttpError(status_code=response.status_code, body=(response.text or "")[:MAX_ERROR_BODY])


def execute(
    target: str,
    payload: Optional[dict],
    config: ExecutorConfig,
    headers: Optional[dict] = None,
    method: str = "POST",
    session=None,
    sleep: Callable[[float], None] = time.sleep,
    label: Optional[str] = None,
) -> CallResult:
    """
    Call target with bounded timeout and retry.

    config.timeout_ms is handed to requests as the connect and read
    timeout, so it bounds each socket wait rather than the whole attempt:
    a server that keeps trickling bytes can hold an attempt past it.

    Args:
        target: URL to call
        payload: JSON body (None for bodiless requests)
        config: Timeout and retry policy
        headers: Request headers (never logged)
        method: HTTP method
        session: requests.Session-like object; a new Session is used if None
        sleep: Backoff sleep function
        label: Name used in logs instead of the URL

    Returns:
        The terminal CallResult, with attempts set to the number of tries spent
    """
    owns_session = session is None
    if owns_session:
        session = requests.Session()

    label = label or target
    timeout_s = config.timeout_ms / 1000.0
    total_attempts = config.max_retries + 1
    result: CallResult = NetworkError("No attempt was made", attempts=0)

    try:
        for attempt_index in range(total_attempts):
            if attempt_index > 0:
                Log.info(f"Retry attempt {attempt_index}/{config.max_retries} for {label}")

            result = _attempt(session, method, target, payload, headers, timeout_s)
            result.attempts = attempt_index + 1

            log_fields = {
                "stage": "executor",
                "target": label,
                "attempt": f"{attempt_index + 1}/{total_attempts}",
                "result": result.kind,
            }
            if isinstance(result, HttpError):
                log_fields["status"] = result.status_code
            elif isinstance(result, (NetworkError, Timeout)):
                log_fields["error"] = result.message[:200]
            Log.kv(log_fields)

            if isinstance(result, Success):
                if attempt_index > 0:
                    Log.info(f"Success on retry {attempt_index} for {label}")
                return result

            retryable = isinstance(result, (NetworkError, Timeout)) or (
                isinstance(result, HttpError) and result.status_code in config.retry_statuses
            )
            if not retryable:
                if isinstance(result, HttpError):
                    Log.warn(f"HTTP {result.status_code} for {label}: {result.body[:200]}")
                return result

            if attempt_index < config.max_retries:
                delay = config.backoff_seconds(attempt_index)
                Log.info(f"Waiting {delay:.1f}s before retry...")
                sleep(delay)

        Log.warn(f"All {total_attempts} attempts failed for {label} ({result.kind})")
        return result
    finally:
        if owns_session:
            session.close()
