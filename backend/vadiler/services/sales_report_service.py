"""
Sales Report Service
Paid order totals per product and per district, plus the Excel export

Author: Vadiler
Date: 2025-11-06
"""
import io
import logging
from typing import Any, Dict, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from vadiler.domain.order import Order
from vadiler.repositories.order_repository import OrderRepository

logger = logging.getLogger(__name__)

# Statuses that count as a sale once the payment is in
POSITIVE_STATUSES = [
    "pending", "pending_payment", "confirmed", "processing", "shipped", "delivered",
]


def aggregate_sales(orders: List[Order]) -> Dict[str, Any]:
    products: Dict[str, Dict[str, Any]] = {}
    districts: Dict[str, Dict[str, Any]] = {}

    for order in orders:
        items = order.products or []
        for item in items:
            product_id = str(item.get("productId") or item.get("id") or "")
            if not product_id:
                continue
            quantity = int(item.get("quantity") or 1)
            price = float(item.get("price") or 0)

            entry = products.get(product_id)
            if entry is None:
                products[product_id] = {
                    "productId": product_id,
                    "productName": item.get("name") or f"Ürün #{product_id}",
                    "productImage": item.get("image") or "",
                    "productSlug": item.get("slug") or "",
                    "productCategory": item.get("category") or "",
                    "productPrice": price,
                    "totalQuantity": quantity,
                    "totalRevenue": price * quantity,
                    "orderCount": 1,
                }
            else:
                entry["totalQuantity"] += quantity
                entry["totalRevenue"] += price * quantity
                entry["orderCount"] += 1

        delivery = order.delivery or {}
        district = str(delivery.get("district") or "Bilinmiyor")
        total = float(order.total or 0)
        item_count = sum(int(i.get("quantity") or 1) for i in items)

        d = districts.setdefault(district, {
            "district": district,
            "province": str(delivery.get("province") or "İstanbul"),
            "orderCount": 0,
            "revenue": 0.0,
            "productCount": 0,
        })
        d["orderCount"] += 1
        d["revenue"] += total
        d["productCount"] += item_count

    sales = sorted(products.values(), key=lambda p: p["totalQuantity"], reverse=True)
    district_sales = sorted(districts.values(), key=lambda d: d["revenue"], reverse=True)

    return {
        "sales": sales,
        "districtSales": district_sales,
        "stats": {
            "totalProducts": len(sales),
            "totalQuantity": sum(p["totalQuantity"] for p in sales),
            "totalRevenue": sum(float(o.total or 0) for o in orders),
            "totalOrders": len(orders),
        },
    }


def _write_sheet(ws, headers: List[str], rows: List[List[Any]], money_columns=(), widths=()) -> None:
    header_fill = PatternFill(start_color="7B2D8E", end_color="7B2D8E", fill_type="solid")
    header_font = Font(color="FFFFFF", bold=True, size=12)
    border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    for col_num, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_num, value=header)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal='center', vertical='center')
        cell.border = border

    for row_num, values in enumerate(rows, 2):
        for col_num, value in enumerate(values, 1):
            cell = ws.cell(row=row_num, column=col_num, value=value)
            cell.border = border
            if col_num in money_columns:
                cell.alignment = Alignment(horizontal='right', vertical='center')
                cell.number_format = '#,##0.00 ₺'

    for letter, width in widths:
        ws.column_dimensions[letter].width = width

    ws.freeze_panes = 'A2'


class SalesReportService:

    def __init__(self, order_repo: Optional[OrderRepository] = None):
        self.order_repo = order_repo or OrderRepository()

    def build_report(self, start: Optional[str] = None, end: Optional[str] = None) -> Dict[str, Any]:
        orders = self.order_repo.find_for_sales_report(POSITIVE_STATUSES, start, end)
        report = aggregate_sales(orders)
        report["paidOrders"] = [o.to_dict() for o in orders]
        logger.info(f"Sales report {start or '-'}..{end or '-'}: {len(orders)} paid orders")
        return report

    def export_workbook(self, start: Optional[str] = None, end: Optional[str] = None) -> io.BytesIO:
        """Sales report as an .xlsx with product and district sheets"""
        report = aggregate_sales(self.order_repo.find_for_sales_report(POSITIVE_STATUSES, start, end))

        wb = Workbook()
        ws = wb.active
        ws.title = "Ürün Satışları"
        _write_sheet(
            ws,
            ["Ürün ID", "Ürün", "Kategori", "Birim Fiyat", "Adet", "Ciro", "Sipariş"],
            [
                [p["productId"], p["productName"], p["productCategory"], p["productPrice"],
                 p["totalQuantity"], p["totalRevenue"], p["orderCount"]]
                for p in report["sales"]
            ],
            money_columns=(4, 6),
            widths=[("A", 12), ("B", 45), ("C", 20), ("D", 15), ("E", 10), ("F", 18), ("G", 10)],
        )

        _write_sheet(
            wb.create_sheet("İlçe Satışları"),
            ["İlçe", "İl", "Sipariş", "Ürün Adedi", "Ciro"],
            [
                [d["district"], d["province"], d["orderCount"], d["productCount"], d["revenue"]]
                for d in report["districtSales"]
            ],
            money_columns=(5,),
            widths=[("A", 25), ("B", 15), ("C", 10), ("D", 12), ("E", 18)],
        )

        stats = report["stats"]
        _write_sheet(
            wb.create_sheet("Özet"),
            ["Metrik", "Değer"],
            [
                ["Toplam Sipariş", stats["totalOrders"]],
                ["Farklı Ürün", stats["totalProducts"]],
                ["Toplam Adet", stats["totalQuantity"]],
                ["Toplam Ciro", stats["totalRevenue"]],
            ],
            widths=[("A", 20), ("B", 18)],
        )

        excel_file = io.BytesIO()
        wb.save(excel_file)
        excel_file.seek(0)
        return excel_file
