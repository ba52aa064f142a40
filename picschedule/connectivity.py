"""
One-shot reachability probe, run before the first expensive model call.
"""

from dataclasses import dataclass
from typing import Optional

from picschedule.event_models import HttpError, Success
from picschedule.logging_helper import Log
from picschedule.request_executor import ExecutorConfig, execute


@dataclass
class ConnectivityStatus:
    connected: bool
    error: Optional[str] = None


def probe(host_url: str, timeout_ms: int = 10000, session=None) -> ConnectivityStatus:
    """
    Send a single HEAD request to host_url.

    Any HTTP answer, whatever its status, proves the host is reachable.
    Only transport failures and timeouts count as disconnected. No retries.

    Args:
        host_url: Base URL of the inference service
        timeout_ms: Deadline for the probe
        session: Optional requests.Session-like object

    Returns:
        ConnectivityStatus
    """
    Log.info(f"Testing network connectivity to {host_url}...")
    result = execute(
        host_url,
        None,
        ExecutorConfig(timeout_ms=timeout_ms, max_retries=0),
        method="HEAD",
        session=session,
        label="connectivity_probe",
    )

    if isinstance(result, (Success, HttpError)):
        Log.info("Network connectivity test passed")
        Log.kv({"stage": "probe", "result": "connected", "host": host_url})
        return ConnectivityStatus(connected=True)

    Log.warn(f"Network connectivity test failed: {result.message}")
    Log.kv({"stage": "probe", "result": "unreachable", "host": host_url, "reason": result.kind})
    return ConnectivityStatus(connected=False, error=result.message)
