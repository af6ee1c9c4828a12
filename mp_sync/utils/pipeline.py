"""
Feature pipeline plumbing: the per-run context, result dicts and the sink write step.
"""

import os
import time
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from mp_sync.utils.alerting import AlertManager
from mp_sync.utils.api_client import HttpClient, MarketplaceClient
from mp_sync.utils.runtime import RuntimeEnvironment, build_http_client
from mp_sync.utils.sinks import (
    KeyMatch,
    SinkTarget,
    SinkUnavailableError,
    SinkWriteRequest,
    TabularSink,
    WriteMode,
    build_sink,
    get_sheets_service,
)

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = os.path.join("data", "output")


@dataclass
class SyncContext:
    """Everything a feature needs for one run, resolved once by the executor."""
    runtime: RuntimeEnvironment
    http_client: HttpClient
    client: MarketplaceClient
    output_dir: str = DEFAULT_OUTPUT_DIR
    sheets_service: Any = None
    spreadsheet_id: Optional[str] = None
    alerts: AlertManager = field(default_factory=AlertManager)
    sleep: Callable[[float], None] = time.sleep

    def sink(self, target: SinkTarget) -> TabularSink:
        return build_sink(self.runtime, target, self.sheets_service, self.spreadsheet_id)

    def file_path(self, file_name: str) -> str:
        return os.path.join(self.output_dir, file_name)


def build_context(runtime: RuntimeEnvironment, http=None, sheets_service=None) -> SyncContext:
    """
    Build the run context for a runtime.

    Environment variables:
        MP_SYNC_OUTPUT_DIR: CSV output directory (default: data/output)
        SPREADSHEET_ID: Target spreadsheet (sheets runtime)
        GOOGLE_APPLICATION_CREDENTIALS: Service account JSON (sheets runtime)

    Raises:
        SinkUnavailableError: Sheets runtime without a spreadsheet id or credentials
    """
    spreadsheet_id = None

    if runtime == RuntimeEnvironment.SHEETS:
        spreadsheet_id = os.environ.get("SPREADSHEET_ID")
        if not spreadsheet_id:
            raise SinkUnavailableError("Sheets runtime needs SPREADSHEET_ID to be set")
        if sheets_service is None:
            sheets_service = get_sheets_service()

    http_client = build_http_client(runtime, http)

    return SyncContext(
        runtime=runtime,
        http_client=http_client,
        client=MarketplaceClient(http_client),
        output_dir=os.environ.get("MP_SYNC_OUTPUT_DIR", DEFAULT_OUTPUT_DIR),
        sheets_service=sheets_service,
        spreadsheet_id=spreadsheet_id,
    )


def new_result(feature: str, store: str) -> Dict[str, Any]:
    return {
        "feature": feature,
        "store": store,
        "status": "pending",
        "row_count": 0,
        "error": None,
    }


def write_rows(
    ctx: SyncContext,
    result: Dict[str, Any],
    target: SinkTarget,
    header: List[str],
    rows: List[List[Any]],
    key_match: Optional[KeyMatch] = None,
    mode: WriteMode = WriteMode.APPEND
) -> Dict[str, Any]:
    """
    Hand rows to the sink, or record 'no_data' without touching it.

    An empty row set is a normal outcome, not an error.
    """
    if not rows:
        logger.info(f"{result['feature']} ({result['store']}): no data for this run, nothing written")
        print("⚠️  No data for this period, nothing written")
        result["status"] = "no_data"
        return result

    sink = ctx.sink(target)
    written = sink.write(SinkWriteRequest(header=header, rows=rows, mode=mode, key_match=key_match))

    result["status"] = "completed"
    result["row_count"] = written
    print(f"✓ Saved {written} rows to {sink.describe()}")
    return result


def run_feature(
    ctx: SyncContext,
    feature: str,
    store: str,
    func: Callable[..., Dict[str, Any]],
    *args,
    **kwargs
) -> Dict[str, Any]:
    """
    Run one feature, turning any failure into a 'failed' result plus an alert.
    """
    start = time.time()
    try:
        result = func(ctx, store, *args, **kwargs)
    except Exception as e:
        logger.exception(f"{feature} failed for {store}")
        result = new_result(feature, store)
        result["status"] = "failed"
        result["error"] = str(e)
        ctx.alerts.alert_failure(feature, store, str(e))

    result["duration_seconds"] = round(time.time() - start, 1)
    return result
