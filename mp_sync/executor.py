"""
Marketplace Sync Executor

Single entry point for every feature:

    mp-sync <marketplace> <feature> <store> [since] [to]

Examples:
    mp-sync wb ping leeshop
    mp-sync wb wb-stocks povar-na-rayone
    mp-sync wb wb-funnel leeshop 2026-02-01
    mp-sync ozon ozon-fbo-orders povar 2026-02-01 2026-02-07
    mp-sync ozon ozon-stocks leeshop

Dates are YYYY-MM-DD; `since` alone means a single day. Exit code is 0 on
success or when the report has no data, 1 on any failure.

Environment variables:
    MP_SYNC_LOG_LEVEL: Logging level (default: INFO)
    MP_SYNC_RUNTIME: 'local' or 'sheets' (default: sheets if SPREADSHEET_ID is set)
"""

import os
import sys
import argparse
import logging
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from mp_sync.ping_wb import ping_wb
from mp_sync.pull_ozon_orders import pull_ozon_orders
from mp_sync.pull_ozon_stocks import pull_ozon_stocks
from mp_sync.pull_wb_funnel import pull_wb_funnel
from mp_sync.pull_wb_stocks import pull_wb_stocks
from mp_sync.utils.auth import OZON_ENV_PREFIX, WB_TOKEN_ENV
from mp_sync.utils.dates import parse_period
from mp_sync.utils.pipeline import SyncContext, build_context, run_feature
from mp_sync.utils.runtime import detect_runtime

logger = logging.getLogger(__name__)

FEATURES = {
    "wb": {
        "ping": ping_wb,
        "wb-funnel": pull_wb_funnel,
        "wb-stocks": pull_wb_stocks,
    },
    "ozon": {
        "ozon-fbo-orders": pull_ozon_orders,
        "ozon-stocks": pull_ozon_stocks,
    },
}

STORES = {
    "wb": list(WB_TOKEN_ENV),
    "ozon": list(OZON_ENV_PREFIX),
}


def configure_logging(level: Optional[str] = None):
    logging.basicConfig(
        level=(level or os.environ.get("MP_SYNC_LOG_LEVEL", "INFO")).upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mp-sync",
        description="Pull Wildberries / Ozon seller reports into CSV files or Google Sheets"
    )
    parser.add_argument("marketplace", choices=sorted(FEATURES), help="Marketplace")
    parser.add_argument("feature", help="Feature to run (e.g. wb-stocks, ozon-fbo-orders)")
    parser.add_argument("store", help="Store identifier (e.g. leeshop)")
    parser.add_argument("since", nargs="?", help="Period start, YYYY-MM-DD")
    parser.add_argument("to", nargs="?", help="Period end, YYYY-MM-DD (default: since)")
    parser.add_argument("--log-level", help="Logging level (default: MP_SYNC_LOG_LEVEL or INFO)")
    return parser


def print_summary(results: List[Dict[str, Any]]):
    print("\n" + "=" * 60)
    print("SUMMARY")
    print("=" * 60)
    for result in results:
        line = f"  {result['feature']} {result['store']}: {result['status']}"
        if result["status"] == "completed":
            line += f" ({result['row_count']} rows)"
        if result.get("error"):
            line += f" - {result['error']}"
        print(line)


def execute(
    marketplace: str,
    feature: str,
    store: str,
    since: Optional[str] = None,
    to: Optional[str] = None,
    ctx: Optional[SyncContext] = None
) -> Dict[str, Any]:
    """
    Run one feature for one store.

    Raises:
        ValueError: Unknown feature/store or malformed dates
    """
    features = FEATURES.get(marketplace)
    if features is None:
        raise ValueError(f"Unknown marketplace: {marketplace}. Must be one of: {', '.join(FEATURES)}")
    if feature not in features:
        raise ValueError(f"Unknown {marketplace} feature: {feature}. Must be one of: {', '.join(features)}")
    if store not in STORES[marketplace]:
        raise ValueError(f"Unknown {marketplace} store: {store}. Must be one of: {', '.join(STORES[marketplace])}")

    period = parse_period(since, to, default=None)

    if ctx is None:
        runtime = detect_runtime()
        ctx = build_context(runtime)

    logger.info(f"Running {marketplace} {feature} for {store} ({ctx.runtime.value} runtime)")
    result = run_feature(ctx, feature, store, features[feature], period)

    stats = ctx.client.get_stats()
    logger.info(f"API stats: {stats['requests']} requests, {stats['retries']} retries, {stats['errors']} errors")
    ctx.alerts.send_summary(feature, str(period) if period else "default", [result], result.get("duration_seconds", 0))
    return result


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        result = execute(args.marketplace, args.feature, args.store, args.since, args.to)
    except ValueError as e:
        parser.error(str(e))
    except Exception as e:
        logger.exception("Run failed before the feature started")
        print(f"\n❌ {e}")
        return 1

    print_summary([result])
    return 1 if result["status"] == "failed" else 0


if __name__ == "__main__":
    sys.exit(main())
