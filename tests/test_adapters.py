from datetime import date

from mp_sync.utils import ozon_reports, wb_reports
from mp_sync.utils.period_join import JoinResult

POSTING = {
    "order_number": "0123-0001",
    "posting_number": "0123-0001-1",
    "status": "delivering",
    "in_process_at": "2026-02-01T21:15:00Z",
    "created_at": "2026-02-01T21:10:00Z",
    "products": [
        {"sku": 555, "name": "Сковорода", "offer_id": "PAN-24", "quantity": 2,
         "price": "1499.50", "currency_code": "RUB", "is_marketplace_buyout": False},
        {"sku": 556, "name": "Крышка", "offer_id": "LID-24", "quantity": 1,
         "price": "300", "currency_code": "RUB", "is_marketplace_buyout": True},
    ],
    "analytics_data": {
        "warehouse_name": "ХОРУГВИНО_РФЦ",
        "delivery_type": "PVZ",
        "is_premium": True,
        "is_legal": False,
        "payment_type_group_name": "Карты оплаты",
    },
    "financial_data": {"cluster_from": "Москва", "cluster_to": "Казань"},
}


def as_record(header, row):
    assert len(header) == len(row)
    return dict(zip(header, row))


def test_posting_row_per_product():
    header, rows = ozon_reports.adapt_postings([POSTING], "Leeshop")

    assert len(header) == 40
    assert len(rows) == 2
    first = as_record(header, rows[0])
    assert first["Магазин"] == "Leeshop"
    assert first["Номер отправления"] == "0123-0001-1"
    assert first["Принят в обработку"] == "01.02.2026 21:15"
    assert first["Статус"] == "Доставляется"
    assert first["Сумма отправления"] == "2999.00"
    assert first["Количество"] == 2
    assert first["Выкуп товара"] == "нет"
    assert first["Кластер отгрузки"] == "Москва"
    assert first["Кластер доставки"] == "Казань"
    assert first["Склад отгрузки"] == "ХОРУГВИНО_РФЦ"
    assert first["Способ доставки"] == "ПВЗ"
    assert first["Сегмент клиента"] == "Премиум"
    assert first["Юридическое лицо"] == "нет"
    assert first["Способ оплаты"] == "Карты оплаты"
    assert first["Дата отгрузки"] == ""
    assert first["Дата создания"] == "01.02.2026 21:10"

    second = as_record(header, rows[1])
    assert second["Артикул"] == "LID-24"
    assert second["Выкуп товара"] == "Подлежит выкупу"


def test_unknown_codes_pass_through():
    assert ozon_reports.map_status("arbitration") == "arbitration"
    assert ozon_reports.map_delivery_type(None) == ""


def test_timestamp_edge_cases():
    assert ozon_reports.format_timestamp("") == ""
    assert ozon_reports.format_timestamp("yesterday") == ""
    assert ozon_reports.format_timestamp("2026-02-01T23:59:59.999+03:00") == "01.02.2026 20:59"


def test_posting_without_products_yields_nothing():
    _, rows = ozon_reports.adapt_postings([dict(POSTING, products=[])], "Leeshop")
    assert rows == []


def test_stock_item_row():
    item = {
        "offer_id": "PAN-24",
        "name": "Сковорода",
        "sku": 555,
        "item_tags": ["NEW", "PROMO"],
        "cluster_name": "Москва",
        "warehouse_name": "ХОРУГВИНО_РФЦ",
        "available_stock_count": 12,
        "turnover_grade": "GREEN",
    }

    header, rows = ozon_reports.adapt_stocks([item], "Povar", date(2026, 2, 2))

    record = as_record(header, rows[0])
    assert record["Магазин"] == "Povar"
    assert record["Дата"] == "2026-02-02"
    assert record["Теги"] == "NEW,PROMO"
    assert record["Доступно к продаже"] == 12
    assert record["В пути"] == 0
    assert record["Оборачиваемость"] == "GREEN"
    assert record["Зона размещения"] == ""


def test_funnel_product_row():
    item = {
        "product": {
            "nmId": 123456,
            "vendorCode": "PAN-24",
            "title": "Сковорода",
            "subjectName": "Сковороды",
            "brandName": "Povar",
            "tags": [{"id": 1, "name": "Хит"}, {"id": 2, "name": "Новинка"}],
            "productRating": 4.8,
            "feedbackRating": 4.9,
        },
        "statistic": {"selected": {
            "period": {"start": "2023-01-01", "end": "2023-01-01"},
            "openCount": 100,
            "cartCount": 20,
            "orderCount": 5,
            "orderSum": 7497,
            "conversions": {"addToCartPercent": 20, "cartToOrderPercent": 25, "buyoutPercent": 80},
            "wbClub": {"orderCount": 1, "buyoutPercent": 100},
        }},
    }

    header, rows = wb_reports.adapt_funnel([item], "LeeShop")

    assert len(header) == 35
    record = as_record(header, rows[0])
    assert record["Магазин"] == "LeeShop"
    assert (record["Год"], record["Мес"], record["Неделя"]) == (2023, 1, 53)
    assert record["Артикул WB"] == 123456
    assert record["Ярлыки"] == "Хит, Новинка"
    assert record["Дата"] == "2023-01-01"
    assert record["Переходы в карточку"] == 100
    assert record["Заказали ВБ клуб, шт"] == 1
    assert record["Процент выкупа ВБ клуб"] == 100
    assert record["Показы"] is None


def test_funnel_product_without_period():
    _, rows = wb_reports.adapt_funnel([{"product": {"nmId": 1}}], "LeeShop")

    record = as_record(wb_reports.FUNNEL_HEADER, rows[0])
    assert record["Год"] is None
    assert record["Дата"] == ""


def test_stock_rows_get_store_and_date():
    joined = JoinResult(header=["NmID", "OrdersCount_7d"], rows=[["1", "3"]])

    header, rows = wb_reports.adapt_stocks(joined, "Povar", date(2026, 2, 7))

    assert header == ["Store", "Date", "NmID", "OrdersCount_7d"]
    assert rows == [["Povar", "2026-02-07", "1", "3"]]
