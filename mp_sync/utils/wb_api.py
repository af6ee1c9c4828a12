"""
Wildberries API Module
Request configs and calls for the Wildberries seller APIs.
"""

import logging
from typing import Any, Dict, List

from mp_sync.utils.api_client import ApiRequestConfig, MarketplaceClient
from mp_sync.utils.dates import PeriodWindow

logger = logging.getLogger(__name__)

WB_COMMON_API_URL = "https://common-api.wildberries.ru"
WB_ANALYTICS_API_URL = "https://seller-analytics-api.wildberries.ru"

FUNNEL_PAGE_LIMIT = 1000


def get_wb_config(token: str, base_url: str = WB_ANALYTICS_API_URL) -> ApiRequestConfig:
    """Request config for one store token (the token is sent as-is in Authorization)."""
    return ApiRequestConfig(
        base_url=base_url,
        auth_headers={"Authorization": token},
        log_prefix="wb-api",
    )


def ping(client: MarketplaceClient, token: str) -> Any:
    """Check that the token reaches the common API. Returns the server's reply."""
    return client.get(get_wb_config(token, WB_COMMON_API_URL), "/ping")


def fetch_sales_funnel_products(
    client: MarketplaceClient,
    token: str,
    period: PeriodWindow,
    limit: int = FUNNEL_PAGE_LIMIT
) -> List[Dict[str, Any]]:
    """
    Fetch funnel statistics for every product over the period.

    POST /api/analytics/v3/sales-funnel/products, paged by offset until a
    short page comes back.
    """
    config = get_wb_config(token)
    products: List[Dict[str, Any]] = []
    offset = 0

    while True:
        body = {
            "selectedPeriod": period.iso(),
            "nmIds": [],  # all products
            "limit": limit,
            "offset": offset,
        }
        response = client.post(config, "/api/analytics/v3/sales-funnel/products", body=body)
        data = response.get("data") if isinstance(response, dict) else None
        page = (data or {}).get("products") or []

        products.extend(page)
        logger.info(f"Funnel products: got {len(page)} (total {len(products)})")

        if len(page) < limit:
            break
        offset += limit

    return products
