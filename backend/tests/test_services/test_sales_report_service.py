"""
Unit tests for the sales report

Author: Vadiler
Date: 2025-11-08
"""
from decimal import Decimal
from unittest.mock import MagicMock

from openpyxl import load_workbook

from vadiler.services.sales_report_service import POSITIVE_STATUSES, SalesReportService, aggregate_sales


def _orders(make_order):
    return [
        make_order(id="o1", total=Decimal("1500")),
        make_order(
            id="o2",
            products=[
                {"id": 1, "name": "Kırmızı Gül Buketi", "price": 750.0, "quantity": 1},
                {"id": 5, "name": "Beyaz Orkide", "price": 1200.0, "quantity": 1},
            ],
            delivery={"district": "Beşiktaş", "province": "İstanbul"},
            total=Decimal("1950"),
        ),
        make_order(id="o3", products=[{"id": 5, "name": "Beyaz Orkide", "price": 1200.0}],
                   delivery={}, total=Decimal("1200")),
    ]


class TestAggregateSales:

    def test_products_and_districts(self, make_order):
        report = aggregate_sales(_orders(make_order))

        rose, orchid = report["sales"]
        assert rose["productId"] == "1"
        assert rose["totalQuantity"] == 3
        assert rose["totalRevenue"] == 2250.0
        assert rose["orderCount"] == 2
        assert orchid["totalQuantity"] == 2

        districts = {d["district"]: d for d in report["districtSales"]}
        assert districts["Beşiktaş"]["revenue"] == 1950.0
        assert districts["Bilinmiyor"]["productCount"] == 1
        assert report["districtSales"][0]["district"] == "Beşiktaş"

        assert report["stats"] == {"totalProducts": 2, "totalQuantity": 5,
                                   "totalRevenue": 4650.0, "totalOrders": 3}

    def test_empty(self):
        assert aggregate_sales([])["stats"]["totalOrders"] == 0


class TestSalesReportService:

    def test_report_uses_sale_statuses(self, make_order):
        repo = MagicMock()
        repo.find_for_sales_report.return_value = _orders(make_order)

        report = SalesReportService(repo).build_report("2025-11-01", "2025-11-30")

        repo.find_for_sales_report.assert_called_once_with(POSITIVE_STATUSES, "2025-11-01", "2025-11-30")
        assert len(report["paidOrders"]) == 3

    def test_workbook_sheets(self, make_order):
        repo = MagicMock()
        repo.find_for_sales_report.return_value = _orders(make_order)

        workbook = load_workbook(SalesReportService(repo).export_workbook())

        assert workbook.sheetnames == ["Ürün Satışları", "İlçe Satışları", "Özet"]
        products = workbook["Ürün Satışları"]
        assert products["A1"].value == "Ürün ID"
        assert products["B2"].value == "Kırmızı Gül Buketi"
        assert products["E2"].value == 3
        assert workbook["Özet"]["B2"].value == 3
