"""
Ping Wildberries

Checks that a store token reaches the WB common API.

Usage:
    mp-sync wb ping leeshop
"""

import json
import logging
from typing import Any, Dict, Optional

from mp_sync.utils.auth import get_wb_token
from mp_sync.utils.dates import PeriodWindow
from mp_sync.utils.pipeline import SyncContext, new_result
from mp_sync.utils.wb_api import ping

logger = logging.getLogger(__name__)

FEATURE = "ping"


def ping_wb(ctx: SyncContext, store: str, period: Optional[PeriodWindow] = None) -> Dict[str, Any]:
    result = new_result(FEATURE, store)
    reply = ping(ctx.client, get_wb_token(store))

    print("✓ Connected to WB API")
    print(f"  Server reply: {json.dumps(reply, ensure_ascii=False, indent=2)}")
    result["status"] = "completed"
    return result
