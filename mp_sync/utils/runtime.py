"""
Runtime environment resolution.

Computed once at process start and passed down explicitly; nothing below the
executor inspects the environment to decide where it is running.
"""

import os
import logging
from enum import Enum

import httplib2

from mp_sync.utils.api_client import HostedHttpClient, HttpClient, RequestsHttpClient

logger = logging.getLogger(__name__)


class RuntimeEnvironment(str, Enum):
    LOCAL = "local"    # requests transport, CSV files under the output dir
    SHEETS = "sheets"  # host http transport, Google Sheets ranges


def detect_runtime(environ=None) -> RuntimeEnvironment:
    """
    Resolve the runtime from MP_SYNC_RUNTIME, else from SPREADSHEET_ID presence.

    Raises:
        ValueError: If MP_SYNC_RUNTIME holds an unknown value
    """
    environ = os.environ if environ is None else environ
    explicit = (environ.get("MP_SYNC_RUNTIME") or "").strip().lower()

    if explicit:
        try:
            runtime = RuntimeEnvironment(explicit)
        except ValueError:
            allowed = ", ".join(r.value for r in RuntimeEnvironment)
            raise ValueError(f"Invalid MP_SYNC_RUNTIME={explicit!r}. Must be one of: {allowed}")
    elif environ.get("SPREADSHEET_ID"):
        runtime = RuntimeEnvironment.SHEETS
    else:
        runtime = RuntimeEnvironment.LOCAL

    logger.info(f"Runtime environment: {runtime.value}")
    return runtime


def build_http_client(runtime: RuntimeEnvironment, http=None) -> HttpClient:
    """
    Transport for the runtime.

    SHEETS goes through the host http object. A handed-in object is shared
    under a lock; otherwise each thread gets its own httplib2.Http. LOCAL
    talks to the APIs over a requests.Session.
    """
    if runtime == RuntimeEnvironment.SHEETS:
        if http is not None:
            return HostedHttpClient(http)
        timeout = float(os.environ.get("MP_SYNC_HTTP_TIMEOUT", 60))
        return HostedHttpClient(http_factory=lambda: httplib2.Http(timeout=timeout))
    return RequestsHttpClient()
