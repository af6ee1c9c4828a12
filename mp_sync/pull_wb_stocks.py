"""
Pull Wildberries Stock History

Creates two STOCK_HISTORY_REPORT_CSV jobs: the report window (7 days ending
yesterday, Moscow time, by default) and a 28-day window ending on the same
day. The 28-day order columns are joined onto the 7-day rows, which are then
written with the store and the snapshot date (window end).

Usage:
    mp-sync wb wb-stocks leeshop
    mp-sync wb wb-stocks povar-na-rayone 2026-02-01 2026-02-07

Environment variables:
    MP_SYNC_POLL_INTERVAL: Seconds between status checks (default: 5)
    MP_SYNC_POLL_ATTEMPTS: Status checks before giving up (default: 5)
    MP_SYNC_CREATION_DELAY: Seconds between the two job creations (default: 20)
"""

import os
import logging
from typing import Any, Dict, Optional

from mp_sync.utils.auth import get_store_display_name, get_store_short_name, get_wb_token
from mp_sync.utils.dates import PeriodWindow, moscow_yesterday
from mp_sync.utils.period_join import join_by_key
from mp_sync.utils.pipeline import SyncContext, new_result, write_rows
from mp_sync.utils.reports import ReportJobOrchestrator, WBStockReportEndpoints
from mp_sync.utils.sinks import KeyMatch, SinkTarget
from mp_sync.utils.wb_api import get_wb_config
from mp_sync.utils.wb_reports import (
    STOCK_DATE_COLUMN,
    STOCK_KEY_COLUMNS,
    STOCK_ORDER_COLUMNS,
    STOCK_STORE_COLUMN,
    adapt_stocks,
)

logger = logging.getLogger(__name__)

FEATURE = "wb-stocks"
REPORT_DAYS = 7
ENRICH_DAYS = 28


def build_orchestrator(ctx: SyncContext, token: str) -> ReportJobOrchestrator:
    return ReportJobOrchestrator(
        ctx.client,
        ctx.http_client,
        get_wb_config(token),
        WBStockReportEndpoints(),
        poll_interval=float(os.environ.get("MP_SYNC_POLL_INTERVAL", 5)),
        max_poll_attempts=int(os.environ.get("MP_SYNC_POLL_ATTEMPTS", 5)),
        creation_delay=float(os.environ.get("MP_SYNC_CREATION_DELAY", 20)),
        sleep=ctx.sleep,
    )


def pull_wb_stocks(ctx: SyncContext, store: str, period: Optional[PeriodWindow] = None) -> Dict[str, Any]:
    """
    Pull the stock report for one store.

    Args:
        ctx: Run context
        store: WB store identifier
        period: Report window (default: 7 days ending yesterday, Moscow)

    Returns:
        Result dict (status completed / no_data)
    """
    result = new_result(FEATURE, store)
    period = period or PeriodWindow.trailing(moscow_yesterday(), REPORT_DAYS)
    enrich_period = PeriodWindow.trailing(period.end, ENRICH_DAYS)

    print(f"\n{'=' * 60}")
    print(f"WB STOCKS: {store} {period}")
    print(f"{'=' * 60}")
    logger.info(f"Pulling {FEATURE} for {store}: {period}, enriched with {enrich_period}")

    token = get_wb_token(store)
    orchestrator = build_orchestrator(ctx, token)
    (base_header, base_rows), (enrich_header, enrich_rows) = orchestrator.acquire_reports(
        [period, enrich_period]
    )

    display_name = get_store_display_name("wb", store)
    short_name = get_store_short_name("wb", store)
    header, rows = [], []
    if base_rows:
        if not enrich_header:
            logger.warning(f"{ENRICH_DAYS}-day report for {store} came back empty, {ENRICH_DAYS}d columns stay blank")
            enrich_header, enrich_rows = STOCK_KEY_COLUMNS + STOCK_ORDER_COLUMNS, []
        joined = join_by_key(
            base_rows, base_header,
            enrich_rows, enrich_header,
            STOCK_KEY_COLUMNS, STOCK_ORDER_COLUMNS,
            base_tag=f"{REPORT_DAYS}d", enrich_tag=f"{ENRICH_DAYS}d"
        )
        header, rows = adapt_stocks(joined, display_name, period.end)

    target = SinkTarget(
        file_path=ctx.file_path(f"wb-stocks-{period.start.isoformat()}-{short_name}.csv"),
        sheet_name=f"wb-{short_name}-stocks",
    )
    key_match = KeyMatch.for_day([STOCK_STORE_COLUMN], [display_name], STOCK_DATE_COLUMN, period.end)
    return write_rows(ctx, result, target, header, rows, key_match)
