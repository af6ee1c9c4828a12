"""
Wildberries Report Adapters
Turns API payloads and joined stock reports into sink rows.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from mp_sync.utils.dates import parse_iso_date, week_number
from mp_sync.utils.period_join import JoinResult

STORE_COLUMN = "Магазин"
FUNNEL_DATE_COLUMN = "Дата"

# Seller cabinet funnel export layout
WB_FUNNEL_HEADERS = [
    "Год",
    "Мес",
    "Неделя",
    "Артикул продавца",
    "Артикул WB",
    "Название",
    "Предмет",
    "Бренд",
    "Ярлыки",
    "Удаленный товар",
    "Рейтинг карточки",
    "Рейтинг по отзывам",
    FUNNEL_DATE_COLUMN,
    "Показы",
    "CTR",
    "Переходы в карточку",
    "Положили в корзину",
    "Добавили в отложенные",
    "Заказали, шт",
    "Заказали ВБ клуб, шт",
    "Выкупили, шт",
    "Выкупили ВБ клуб, шт",
    "Отменили, шт",
    "Отменили ВБ клуб, шт",
    "Конверсия в корзину, %",
    "Конверсия в заказ, %",
    "Процент выкупа",
    "Процент выкупа ВБ клуб",
    "Заказали на сумму, ₽",
    "Заказали на сумму ВБ клуб, ₽",
    "Выкупили на сумму, ₽",
    "Выкупили на сумму ВБ клуб, ₽",
    "Отменили на сумму, ₽",
    "Отменили на сумму ВБ клуб, ₽",
]

FUNNEL_HEADER = [STORE_COLUMN] + WB_FUNNEL_HEADERS

# Stock history report: one row per product size per warehouse
STOCK_KEY_COLUMNS = ["NmID", "ChrtID", "RegionName", "OfficeName"]
STOCK_ORDER_COLUMNS = ["OrdersCount", "OrdersSum"]
STOCK_STORE_COLUMN = "Store"
STOCK_DATE_COLUMN = "Date"


def format_tags(tags: Optional[Sequence[Dict[str, Any]]]) -> str:
    if not tags:
        return ""
    return ", ".join(str(tag.get("name", "")) for tag in tags)


def adapt_funnel_product(item: Dict[str, Any], store_name: str) -> List[Any]:
    """One funnel row for a product from /api/analytics/v3/sales-funnel/products."""
    product = item.get("product") or {}
    selected = (item.get("statistic") or {}).get("selected") or {}
    wb_club = selected.get("wbClub") or {}
    conversions = selected.get("conversions") or {}
    day = (selected.get("period") or {}).get("start") or ""

    year = month = week = None
    if day:
        parsed = parse_iso_date(day[:10])
        year, month, week = parsed.year, parsed.month, week_number(parsed)

    return [
        store_name,
        year,
        month,
        week,
        product.get("vendorCode"),
        product.get("nmId"),
        product.get("title"),
        product.get("subjectName"),
        product.get("brandName"),
        format_tags(product.get("tags")),
        None,  # deleted product flag is not in the API
        product.get("productRating"),
        product.get("feedbackRating"),
        day,
        None,  # views
        None,  # ctr
        selected.get("openCount"),
        selected.get("cartCount"),
        selected.get("addToWishlist"),
        selected.get("orderCount"),
        wb_club.get("orderCount"),
        selected.get("buyoutCount"),
        wb_club.get("buyoutCount"),
        selected.get("cancelCount"),
        wb_club.get("cancelCount"),
        conversions.get("addToCartPercent"),
        conversions.get("cartToOrderPercent"),
        conversions.get("buyoutPercent"),
        wb_club.get("buyoutPercent"),
        selected.get("orderSum"),
        wb_club.get("orderSum"),
        selected.get("buyoutSum"),
        wb_club.get("buyoutSum"),
        selected.get("cancelSum"),
        wb_club.get("cancelSum"),
    ]


def adapt_funnel(products: Sequence[Dict[str, Any]], store_name: str) -> Tuple[List[str], List[List[Any]]]:
    return list(FUNNEL_HEADER), [adapt_funnel_product(p, store_name) for p in products]


def adapt_stocks(joined: JoinResult, store_name: str, snapshot_date: date) -> Tuple[List[str], List[List[Any]]]:
    """Prefix every joined stock row with the store and the snapshot date."""
    header = [STOCK_STORE_COLUMN, STOCK_DATE_COLUMN] + list(joined.header)
    day = snapshot_date.isoformat()
    rows = [[store_name, day] + list(row) for row in joined.rows]
    return header, rows
