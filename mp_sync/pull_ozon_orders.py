"""
Pull Ozon FBO Orders

Fetches FBO postings created in the period and writes one row per posted
product, laid out like the seller cabinet orders export plus a trailing
creation-time column. Re-runs replace rows by that column, so a posting
accepted after midnight is still replaced. Local files use a semicolon
delimiter, as the cabinet does.

Usage:
    mp-sync ozon ozon-fbo-orders leeshop                         # yesterday
    mp-sync ozon ozon-fbo-orders povar 2026-02-01 2026-02-07
"""

import logging
from typing import Any, Dict, Optional

from mp_sync.utils.auth import get_ozon_credentials, get_store_display_name, get_store_short_name
from mp_sync.utils.csv_codec import SEMICOLON
from mp_sync.utils.dates import PeriodWindow, moscow_yesterday
from mp_sync.utils.ozon_api import fetch_all_fbo_postings
from mp_sync.utils.ozon_reports import CREATED_AT_COLUMN, STORE_COLUMN, adapt_postings
from mp_sync.utils.pipeline import SyncContext, new_result, write_rows
from mp_sync.utils.sinks import KeyMatch, SinkTarget

logger = logging.getLogger(__name__)

FEATURE = "ozon-fbo-orders"


def posting_filter(period: PeriodWindow) -> Dict[str, str]:
    """Whole-day UTC bounds for the postings filter."""
    return {
        "since": f"{period.start.isoformat()}T00:00:00.000Z",
        "to": f"{period.end.isoformat()}T23:59:59.999Z",
    }


def pull_ozon_orders(ctx: SyncContext, store: str, period: Optional[PeriodWindow] = None) -> Dict[str, Any]:
    """Pull FBO orders for one store and period (default: yesterday)."""
    result = new_result(FEATURE, store)
    period = period or PeriodWindow.single_day(moscow_yesterday())

    print(f"\n{'=' * 60}")
    print(f"OZON FBO ORDERS: {store} {period}")
    print(f"{'=' * 60}")

    creds = get_ozon_credentials(store)
    bounds = posting_filter(period)
    postings = fetch_all_fbo_postings(ctx.client, creds, bounds["since"], bounds["to"])
    print(f"✓ Got {len(postings)} postings")

    display_name = get_store_display_name("ozon", store)
    short_name = get_store_short_name("ozon", store)
    header, rows = adapt_postings(postings, display_name)

    target = SinkTarget(
        file_path=ctx.file_path(f"ozon-{short_name}-orders-{period}.csv"),
        sheet_name=f"ozon-{short_name}-orders",
        delimiter=SEMICOLON,
    )
    key_match = KeyMatch.for_period([STORE_COLUMN], [display_name], CREATED_AT_COLUMN, period)
    return write_rows(ctx, result, target, header, rows, key_match)
