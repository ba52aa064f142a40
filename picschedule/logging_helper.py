"""
Logging helper module for terminal-first logging.
All output goes to stdout with formatted prefixes, and also to a log file.
"""

import os
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

# Log directory (PICSCHEDULE_LOG_DIR); PICSCHEDULE_LOG_FILE=0 disables the file
_log_dir = Path(os.getenv("PICSCHEDULE_LOG_DIR", Path.cwd() / "logs"))
_log_file_path: Optional[Path] = None
_log_file = None

# Bearer tokens and OpenRouter-style keys
_SECRET_PATTERN = re.compile(r"(Bearer\s+)?\b(sk-[A-Za-z0-9_-]{4})[A-Za-z0-9_-]+")


def _file_logging_enabled() -> bool:
    return os.getenv("PICSCHEDULE_LOG_FILE", "1").lower() not in ("0", "false", "no")


def _open_log_file():
    """Open the timestamped log file on first write."""
    global _log_file, _log_file_path
    if _log_file is not None:
        return _log_file
    _log_dir.mkdir(parents=True, exist_ok=True)
    _log_file_path = _log_dir / f"picschedule_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    _log_file = open(_log_file_path, 'a', encoding='utf-8')
    return _log_file


def _log(message: str):
    """Write message to both stdout and log file."""
    print(message)
    if not _file_logging_enabled():
        return
    try:
        log_file = _open_log_file()
    except OSError as err:
        print(f"[WARN] Unable to open log file in {_log_dir}: {err}")
        return
    log_file.write(message + '\n')
    log_file.flush()


def redact(value) -> str:
    """
    Mask credentials inside a string, keeping only a short prefix.

    Args:
        value: Anything that may contain an API key or bearer token

    Returns:
        String safe to write to logs
    """
    text = str(value)
    return _SECRET_PATTERN.sub(lambda m: f"{m.group(1) or ''}{m.group(2)}***", text)


class Log:
    """Simple logging class that outputs to stdout and log file with formatted prefixes."""

    @staticmethod
    def section(title: str):
        """Print a section header: blank line + '===== TITLE ====='"""
        _log("")
        _log(f"===== {title} =====")

    @staticmethod
    def info(message: str):
        """Print an info message: '[INFO] message'"""
        _log(f"[INFO] {redact(message)}")

    @staticmethod
    def warn(message: str):
        """Print a warning message: '[WARN] message'"""
        _log(f"[WARN] {redact(message)}")

    @staticmethod
    def error(message: str):
        """Print an error message: '[ERROR] message'"""
        _log(f"[ERROR] {redact(message)}")

    @staticmethod
    def kv(pairs: dict):
        """
        Print key-value pairs: '[KV] key=value | key2=value2'

        Args:
            pairs: Dictionary of key-value pairs to print
        """
        kv_string = " | ".join([f"{k}={redact(v)}" for k, v in pairs.items()])
        _log(f"[KV] {kv_string}")

    @staticmethod
    def get_log_path() -> Optional[str]:
        """Get the path to the current log file, or None if nothing was written yet."""
        return str(_log_file_path) if _log_file_path else None
