"""
Pull Ozon Stocks

Collects every product SKU, then the stock analytics per SKU (item x cluster x
warehouse) as of today, Moscow time. Local files use a semicolon delimiter.

Usage:
    mp-sync ozon ozon-stocks leeshop
"""

import logging
from datetime import date
from typing import Any, Dict, Optional

from mp_sync.utils.auth import get_ozon_credentials, get_store_display_name, get_store_short_name
from mp_sync.utils.csv_codec import SEMICOLON
from mp_sync.utils.dates import PeriodWindow, moscow_today
from mp_sync.utils.ozon_api import fetch_all_product_skus, fetch_analytics_stocks
from mp_sync.utils.ozon_reports import SNAPSHOT_DATE_COLUMN, STORE_COLUMN, adapt_stocks
from mp_sync.utils.pipeline import SyncContext, new_result, write_rows
from mp_sync.utils.sinks import KeyMatch, SinkTarget

logger = logging.getLogger(__name__)

FEATURE = "ozon-stocks"


def pull_ozon_stocks(
    ctx: SyncContext,
    store: str,
    period: Optional[PeriodWindow] = None,
    snapshot_date: Optional[date] = None
) -> Dict[str, Any]:
    """
    Pull the current stock snapshot for one store.

    The API only serves current stock, so a period is ignored.
    """
    result = new_result(FEATURE, store)
    if period is not None:
        logger.warning(f"{FEATURE} is a current snapshot; ignoring period {period}")
    snapshot_date = snapshot_date or moscow_today()

    print(f"\n{'=' * 60}")
    print(f"OZON STOCKS: {store} {snapshot_date.isoformat()}")
    print(f"{'=' * 60}")

    creds = get_ozon_credentials(store)
    skus = fetch_all_product_skus(ctx.client, creds)
    print(f"✓ Found {len(skus)} SKUs")

    items = fetch_analytics_stocks(ctx.client, creds, skus) if skus else []

    display_name = get_store_display_name("ozon", store)
    short_name = get_store_short_name("ozon", store)
    header, rows = adapt_stocks(items, display_name, snapshot_date)

    target = SinkTarget(
        file_path=ctx.file_path(f"ozon-{short_name}-stocks-{snapshot_date.isoformat()}.csv"),
        sheet_name=f"ozon-{short_name}-stocks",
        delimiter=SEMICOLON,
    )
    key_match = KeyMatch.for_day([STORE_COLUMN], [display_name], SNAPSHOT_DATE_COLUMN, snapshot_date)
    return write_rows(ctx, result, target, header, rows, key_match)
