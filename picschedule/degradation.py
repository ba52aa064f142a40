"""
Degradation policy: what the user gets once every retry and model is spent.
"""

from datetime import date
from typing import List, Optional

from picschedule.errors import (
    ConnectivityUnavailable,
    ModelUnavailable,
    NetworkExhausted,
    PicScheduleError,
    RequestTimeout,
)
from picschedule.event_models import ExtractedEvent
from picschedule.logging_helper import Log

FALLBACK_TITLE = "Event from image"

_REASONS = {
    ConnectivityUnavailable: "the AI service could not be reached from the server",
    NetworkExhausted: "the network connection to the AI service kept failing",
    RequestTimeout: "the AI service took too long to respond",
    ModelUnavailable: "no AI model was available to read the image",
}


def fallback_description(error: PicScheduleError) -> str:
    reason = next(
        (text for error_type, text in _REASONS.items() if isinstance(error, error_type)),
        "the AI service was unavailable",
    )
    return (
        f"Automatic event extraction is unavailable right now ({reason}). "
        "Please fill in the details from your image manually, or try again later."
    )


def build_fallback_event(error: PicScheduleError, today: Optional[date] = None) -> ExtractedEvent:
    """Placeholder event for a request the AI service could not serve."""
    return ExtractedEvent(
        title=FALLBACK_TITLE,
        date=(today or date.today()).isoformat(),
        is_valid_date=True,
        description=fallback_description(error),
    )


class DegradationPolicy:
    """
    Absorbs transient, network-shaped failures into a single fallback event.
    Credential, configuration and response-shape errors are re-raised so
    operators see the real misconfiguration.
    """

    def decide(self, error: BaseException, today: Optional[date] = None) -> List[ExtractedEvent]:
        """
        Args:
            error: The terminal failure of the pipeline
            today: Date for the fallback event (defaults to today)

        Returns:
            A one-element list holding the fallback event

        Raises:
            The error itself, when it is not network-shaped
        """
        if not isinstance(error, PicScheduleError) or not error.network_shaped:
            Log.error(f"Propagating {type(error).__name__}: {error}")
            Log.kv({"stage": "degrade", "result": "propagate", "error": type(error).__name__})
            raise error

        Log.warn(f"Degrading to fallback event after {type(error).__name__}: {error}")
        Log.kv({"stage": "degrade", "result": "fallback_event", "error": type(error).__name__})
        return [build_fallback_event(error, today)]
