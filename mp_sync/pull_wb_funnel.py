"""
Pull Wildberries Sales Funnel

Fetches per-product funnel statistics (views, carts, orders, buyouts and
their WB Club shares) and writes them in the seller cabinet export layout.

Usage:
    mp-sync wb wb-funnel leeshop                 # yesterday, Moscow time
    mp-sync wb wb-funnel leeshop 2026-02-01      # single day
"""

import logging
from typing import Any, Dict, Optional

from mp_sync.utils.auth import get_store_display_name, get_store_short_name, get_wb_token
from mp_sync.utils.dates import PeriodWindow, moscow_yesterday
from mp_sync.utils.pipeline import SyncContext, new_result, write_rows
from mp_sync.utils.sinks import KeyMatch, SinkTarget
from mp_sync.utils.wb_api import fetch_sales_funnel_products
from mp_sync.utils.wb_reports import FUNNEL_DATE_COLUMN, STORE_COLUMN, adapt_funnel

logger = logging.getLogger(__name__)

FEATURE = "wb-funnel"
FUNNEL_SHEET = "funnel"


def pull_wb_funnel(ctx: SyncContext, store: str, period: Optional[PeriodWindow] = None) -> Dict[str, Any]:
    """Pull funnel rows for one store and period (default: yesterday)."""
    result = new_result(FEATURE, store)
    period = period or PeriodWindow.single_day(moscow_yesterday())

    print(f"\n{'=' * 60}")
    print(f"WB FUNNEL: {store} {period}")
    print(f"{'=' * 60}")

    token = get_wb_token(store)
    products = fetch_sales_funnel_products(ctx.client, token, period)
    print(f"✓ Got {len(products)} products")

    display_name = get_store_display_name("wb", store)
    short_name = get_store_short_name("wb", store)
    header, rows = adapt_funnel(products, display_name)

    target = SinkTarget(
        file_path=ctx.file_path(f"wb-funnel-{period.start.isoformat()}-{short_name}.csv"),
        sheet_name=FUNNEL_SHEET,
    )
    key_match = KeyMatch.for_period([STORE_COLUMN], [display_name], FUNNEL_DATE_COLUMN, period)
    return write_rows(ctx, result, target, header, rows, key_match)
