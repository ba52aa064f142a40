"""
Data models for the image-to-event extraction pipeline.
Defines ExtractedEvent (parsed from the model), CandidateModel, the
per-attempt CallResult variants, and the request/result envelopes.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Union


@dataclass(frozen=True)
class ExtractedEvent:
    """
    Calendar event extracted from an image.
    Invalid dates are kept (is_valid_date=False) so the user can review them.
    """
    title: str
    date: str  # ISO YYYY-MM-DD when it parsed, raw model text otherwise
    is_valid_date: bool = False
    start_time: Optional[str] = None  # Canonical HH:MM after normalization
    end_time: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None

    def has_time(self) -> bool:
        return self.start_time is not None

    def to_dict(self) -> dict:
        """Wire shape handed to the UI and persistence layers."""
        return {
            "title": self.title,
            "date": self.date,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "description": self.description,
            "location": self.location,
            "isValidDate": self.is_valid_date,
        }


@dataclass(frozen=True)
class CandidateModel:
    """One remote inference endpoint in the fallback chain."""
    name: str
    priority: int = 0


@dataclass
class ExtractionRequest:
    """
    One user submission: the image as a data URL plus its source filename.
    Use image_encoding.request_from_path / request_from_bytes to build one
    from raw image data.
    """
    image_data: str
    filename: Optional[str] = None


# One network attempt resolves to exactly one of these

@dataclass
class Success:
    payload: Any
    status_code: int = 200
    attempts: int = 1
    kind = "success"


@dataclass
class HttpError:
    status_code: int
    body: str = ""
    attempts: int = 1
    kind = "http_error"


@dataclass
class NetworkError:
    message: str
    attempts: int = 1
    kind = "network_error"


@dataclass
class Timeout:
    message: str = "Request timed out"
    attempts: int = 1
    kind = "timeout"


CallResult = Union[Success, HttpError, NetworkError, Timeout]


@dataclass
class ExtractionResult:
    """What the pipeline hands back to its caller."""
    events: List[ExtractedEvent]
    model_used: str
    fallback_used: bool = False
    raw_text: Optional[str] = None
    error: Optional[Exception] = field(default=None, repr=False)

    def to_dict(self) -> dict:
        result = {
            "events": [event.to_dict() for event in self.events],
            "modelUsed": self.model_used,
            "fallbackUsed": self.fallback_used,
        }
        if self.raw_text is not None:
            result["rawText"] = self.raw_text
        return result
