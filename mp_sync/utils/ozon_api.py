"""
Ozon Seller API Module
Paginated calls for FBO postings, product SKUs and stock analytics.
"""

import logging
from typing import Any, Dict, List, Sequence

from mp_sync.utils.api_client import ApiRequestConfig, MarketplaceClient
from mp_sync.utils.auth import OzonCredentials

logger = logging.getLogger(__name__)

OZON_API_URL = "https://api-seller.ozon.ru"

POSTINGS_PAGE_LIMIT = 1000
ATTRIBUTES_PAGE_LIMIT = 1000
STOCKS_SKU_CHUNK = 100


def get_ozon_config(creds: OzonCredentials) -> ApiRequestConfig:
    return ApiRequestConfig(
        base_url=OZON_API_URL,
        auth_headers={"Client-Id": creds.client_id, "Api-Key": creds.api_key},
        log_prefix="ozon-api",
    )


def _result(response: Any, key: str = "result") -> List[Dict[str, Any]]:
    if not isinstance(response, dict):
        return []
    return response.get(key) or []


def fetch_all_fbo_postings(
    client: MarketplaceClient,
    creds: OzonCredentials,
    since: str,
    to: str,
    limit: int = POSTINGS_PAGE_LIMIT
) -> List[Dict[str, Any]]:
    """
    All FBO postings created in [since, to].

    Args:
        since: ISO timestamp, e.g. 2026-02-01T00:00:00.000Z
        to: ISO timestamp, e.g. 2026-02-01T23:59:59.999Z
    """
    config = get_ozon_config(creds)
    postings: List[Dict[str, Any]] = []
    offset = 0

    while True:
        body = {
            "dir": "ASC",
            "filter": {"since": since, "to": to, "status": ""},
            "limit": limit,
            "offset": offset,
            "translit": True,
            "with": {"analytics_data": True, "financial_data": True, "legal_info": False},
        }
        chunk = _result(client.post(config, "/v2/posting/fbo/list", body=body))
        if not chunk:
            break

        if not postings:
            first = chunk[0]
            logger.info(
                f"First posting: analytics_data={'yes' if first.get('analytics_data') else 'NO'}, "
                f"financial_data={'yes' if first.get('financial_data') else 'NO'}"
            )

        postings.extend(chunk)
        logger.info(f"FBO list: got {len(chunk)} postings (total {len(postings)})")

        if len(chunk) < limit:
            break
        offset += limit

    return postings


def fetch_all_product_skus(
    client: MarketplaceClient,
    creds: OzonCredentials,
    limit: int = ATTRIBUTES_PAGE_LIMIT
) -> List[int]:
    """Unique SKUs of all products (any visibility), in first-seen order."""
    config = get_ozon_config(creds)
    items: List[Dict[str, Any]] = []
    last_id = ""

    while True:
        body = {"filter": {"visibility": "ALL"}, "limit": limit, "sort_dir": "ASC"}
        if last_id:
            body["last_id"] = last_id

        response = client.post(config, "/v4/product/info/attributes", body=body)
        page = _result(response)
        if not page:
            break

        items.extend(page)
        logger.info(f"Product attributes: got {len(page)} items (total {len(items)})")

        total = int(response.get("total") or 0)
        last_id = response.get("last_id") or ""
        if not last_id or len(page) < limit or (total > 0 and len(items) >= total):
            break

    skus = []
    seen = set()
    for item in items:
        sku = item.get("sku")
        if sku is not None and sku not in seen:
            seen.add(sku)
            skus.append(sku)
    return skus


def fetch_analytics_stocks(
    client: MarketplaceClient,
    creds: OzonCredentials,
    skus: Sequence[int],
    chunk_size: int = STOCKS_SKU_CHUNK
) -> List[Dict[str, Any]]:
    """Stock analytics rows (item x cluster x warehouse) for the SKUs."""
    config = get_ozon_config(creds)
    rows: List[Dict[str, Any]] = []

    for i in range(0, len(skus), chunk_size):
        chunk = list(skus[i:i + chunk_size])
        response = client.post(config, "/v1/analytics/stocks", body={"skus": chunk})
        rows.extend(_result(response, "items"))
        logger.info(f"Analytics stocks: {len(chunk)} SKUs in chunk, {len(rows)} rows so far")

    return rows
