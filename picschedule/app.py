"""
Command-line entry point for PicSchedule.
Extracts calendar events from an image file and prints them as JSON.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from picschedule.errors import ConfigurationError, PicScheduleError, Unauthorized
from picschedule.event_store import InMemoryEventStore, to_store_records
from picschedule.ics_generator import default_ics_filename, write_ics
from picschedule.image_encoding import request_from_path
from picschedule.image_llm_client import StubImageLLMClient
from picschedule.logging_helper import Log
from picschedule.pipeline import extract_events
from picschedule.settings_manager import ExtractionOptions, models_from_names, use_stub_client

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="picschedule", description="Turn a photo of a schedule into calendar events")
    sub = parser.add_subparsers(dest="command", required=True)

    extract = sub.add_parser("extract", help="Extract events from an image file")
    extract.add_argument("image", help="Path to the image (PNG, JPEG, GIF, BMP, WebP)")
    extract.add_argument("--model", action="append", dest="models", metavar="NAME",
                         help="Candidate model, highest priority first (repeatable)")
    extract.add_argument("--max-retries", type=int, help="Retries per model on network failures")
    extract.add_argument("--timeout-ms", type=int, help="Per-attempt timeout in milliseconds")
    extract.add_argument("--ics", metavar="PATH", help="Also write the events to an .ics file (or directory)")
    extract.add_argument("--stub", action="store_true", help="Use the offline stub model (no network)")
    extract.add_argument("--records", metavar="PATH", help="Also write event-store rows for the events as JSON")
    extract.add_argument("--owner", default="local", help="Owner id stamped on --records rows (default: local)")
    return parser


def _options_from_args(args) -> ExtractionOptions:
    options = ExtractionOptions.from_settings()
    if args.models:
        options.models = models_from_names(args.models)
    if args.max_retries is not None:
        options.max_retries = args.max_retries
    if args.timeout_ms is not None:
        options.per_attempt_timeout_ms = args.timeout_ms
    return options


def run_extract(args) -> int:
    request = request_from_path(args.image)
    options = _options_from_args(args)

    if args.stub or use_stub_client():
        result = extract_events(request, options, client=StubImageLLMClient(), precheck=False)
    else:
        result = extract_events(request, options)

    print(json.dumps(result.to_dict(), indent=2))

    if args.ics and result.events:
        ics_path = Path(args.ics)
        if ics_path.is_dir():
            ics_path = ics_path / default_ics_filename(result.events[0].title)
        write_ics(result.events, ics_path)

    if args.records:
        write_records(result.events, args.owner, Path(args.records))

    return EXIT_OK


def write_records(events, owner_id: str, path: Path) -> Path:
    """Hand events to an event store and dump the stored rows to path as JSON."""
    store = InMemoryEventStore()
    store.create(owner_id, to_store_records(events, owner_id=owner_id))
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as records_file:
        json.dump(store.list(owner_id), records_file, indent=2)
    Log.info(f"Event records written: {path}")
    return path


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command line."""
    Log.section("PicSchedule")
    args = build_parser().parse_args(argv)

    try:
        return run_extract(args)
    except (ConfigurationError, Unauthorized) as e:
        Log.error(e.user_message())
        print(f"Error: {e.user_message()}", file=sys.stderr)
        return EXIT_CONFIG
    except PicScheduleError as e:
        Log.error(e.user_message())
        print(f"Error: {e.user_message()}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
