"""
Ozon Report Adapters
Lays Ozon API payloads out the way the seller cabinet exports them.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

STORE_COLUMN = "Магазин"
ACCEPTED_AT_COLUMN = "Принят в обработку"
SNAPSHOT_DATE_COLUMN = "Дата"
# Posting creation time, the field the postings filter selects on
CREATED_AT_COLUMN = "Дата создания"

# Seller cabinet "orders" export, same columns and order
OZON_ORDERS_HEADERS = [
    "Номер заказа",
    "Номер отправления",
    ACCEPTED_AT_COLUMN,
    "Дата отгрузки",
    "Статус",
    "Дата доставки",
    "Фактическая дата передачи в доставку",
    "Сумма отправления",
    "Код валюты отправления",
    "Название товара",
    "SKU",
    "Артикул",
    "Ваша цена",
    "Код валюты товара",
    "Оплачено покупателем",
    "Код валюты покупателя",
    "Количество",
    "Стоимость доставки",
    "Связанные отправления",
    "Выкуп товара",
    "Цена товара до скидок",
    "Скидка %",
    "Скидка руб",
    "Акции",
    "Объемный вес товаров, кг",
    "Кластер отгрузки",
    "Кластер доставки",
    "Нормативное время доставки",
    "Оценка отгрузки",
    "Склад отгрузки",
    "Регион доставки",
    "Город доставки",
    "Способ доставки",
    "Сегмент клиента",
    "Юридическое лицо",
    "Способ оплаты",
    "Адрес покупателя",
    "Штрихкод ювелирного изделия",
]

OZON_STOCKS_HEADERS = [
    "Артикул",
    "Название товара",
    "SKU",
    "Теги",
    "Зона размещения",
    "Кластер",
    "ID кластера",
    "Склад",
    "ID склада",
    "Доступно к продаже",
    "Готовим к продаже",
    "Ожидают документов",
    "Маркируемые товары, ожидающие УПД",
    "Истекает срок годности",
    "Брак в пути",
    "Брак на складе",
    "Излишки",
    "Прочие",
    "Запрошено",
    "В пути",
    "Возвраты от покупателей",
    "Возвраты продавцу",
    "Среднесуточные продажи",
    "Дней без продаж",
    "Дней хватит остатка",
    "Оборачиваемость",
    "Среднесуточные продажи в кластере",
    "Дней без продаж в кластере",
    "Дней хватит остатка в кластере",
    "Оборачиваемость в кластере",
    "ID макролокального кластера",
]

ORDERS_HEADER = [STORE_COLUMN] + OZON_ORDERS_HEADERS + [CREATED_AT_COLUMN]
STOCKS_HEADER = [STORE_COLUMN, SNAPSHOT_DATE_COLUMN] + OZON_STOCKS_HEADERS

STATUS_NAMES = {
    "awaiting_packaging": "Ожидает сборки",
    "awaiting_deliver": "Ожидает отгрузки",
    "delivering": "Доставляется",
    "delivered": "Доставлен",
    "cancelled": "Отменён",
}

DELIVERY_TYPE_NAMES = {
    "PVZ": "ПВЗ",
    "Courier": "Курьер",
}


def format_timestamp(value: Optional[str]) -> str:
    """ISO timestamp -> 'DD.MM.YYYY HH:MM' in UTC, as in the cabinet export."""
    if not value:
        return ""
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable posting timestamp: {value!r}")
        return ""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%d.%m.%Y %H:%M")


def map_status(status: Optional[str]) -> str:
    return STATUS_NAMES.get(status or "", status or "")


def map_delivery_type(delivery_type: Optional[str]) -> str:
    return DELIVERY_TYPE_NAMES.get(delivery_type or "", delivery_type or "")


def _line_sum(price: Any, quantity: Any) -> str:
    try:
        return f"{float(price) * int(quantity):.2f}"
    except (TypeError, ValueError):
        return ""


def adapt_posting(posting: Dict[str, Any], store_name: str) -> List[List[Any]]:
    """One row per product of an FBO posting. Columns not in the API stay empty."""
    analytics = posting.get("analytics_data") or {}
    financial = posting.get("financial_data") or {}
    accepted_at = format_timestamp(posting.get("in_process_at"))
    created_at = format_timestamp(posting.get("created_at"))

    rows = []
    for product in posting.get("products") or []:
        rows.append([
            store_name,
            posting.get("order_number", ""),
            posting.get("posting_number", ""),
            accepted_at,
            "",
            map_status(posting.get("status")),
            "",
            "",
            _line_sum(product.get("price"), product.get("quantity")),
            product.get("currency_code", ""),
            product.get("name", ""),
            product.get("sku", ""),
            product.get("offer_id", ""),
            product.get("price", ""),
            product.get("currency_code", ""),
            "",
            "",
            product.get("quantity", ""),
            "",
            "",
            "Подлежит выкупу" if product.get("is_marketplace_buyout") else "нет",
            "",
            "",
            "",
            "",
            "",
            financial.get("cluster_from") or "",
            financial.get("cluster_to") or "",
            "",
            "",
            analytics.get("warehouse_name") or "",
            "",
            "",
            map_delivery_type(analytics.get("delivery_type")),
            "Премиум" if analytics.get("is_premium") else "Не премиум",
            "да" if analytics.get("is_legal") else "нет",
            analytics.get("payment_type_group_name") or "",
            "",
            "",
            created_at,
        ])
    return rows


def adapt_postings(postings: Sequence[Dict[str, Any]], store_name: str) -> Tuple[List[str], List[List[Any]]]:
    rows: List[List[Any]] = []
    for posting in postings:
        rows.extend(adapt_posting(posting, store_name))
    return list(ORDERS_HEADER), rows


def adapt_stock_item(item: Dict[str, Any], store_name: str, snapshot_date: date) -> List[Any]:
    """One row per item x cluster x warehouse."""
    tags = item.get("item_tags")
    return [
        store_name,
        snapshot_date.isoformat(),
        item.get("offer_id", ""),
        item.get("name", ""),
        item.get("sku", ""),
        ",".join(str(t) for t in tags) if isinstance(tags, list) else "",
        "",  # placement zone is not in the API
        item.get("cluster_name", ""),
        item.get("cluster_id", ""),
        item.get("warehouse_name", ""),
        item.get("warehouse_id", ""),
        item.get("available_stock_count", 0),
        item.get("valid_stock_count", 0),
        item.get("waiting_docs_stock_count", 0),
        "",  # marked goods awaiting UPD: no API field
        item.get("expiring_stock_count", 0),
        item.get("transit_defect_stock_count", 0),
        item.get("stock_defect_stock_count", 0),
        item.get("excess_stock_count", 0),
        item.get("other_stock_count", 0),
        item.get("requested_stock_count", 0),
        item.get("transit_stock_count", 0),
        item.get("return_from_customer_stock_count", 0),
        item.get("return_to_seller_stock_count", 0),
        item.get("ads", 0),
        item.get("days_without_sales", 0),
        item.get("idc", 0),
        item.get("turnover_grade", ""),
        item.get("ads_cluster", 0),
        item.get("days_without_sales_cluster", 0),
        item.get("idc_cluster", 0),
        item.get("turnover_grade_cluster", ""),
        item.get("macrolocal_cluster_id", ""),
    ]


def adapt_stocks(items: Sequence[Dict[str, Any]], store_name: str, snapshot_date: date) -> Tuple[List[str], List[List[Any]]]:
    return list(STOCKS_HEADER), [adapt_stock_item(i, store_name, snapshot_date) for i in items]
