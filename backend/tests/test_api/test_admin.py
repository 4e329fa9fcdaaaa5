"""
API tests for /api/admin

Author: Vadiler
Date: 2025-11-08
"""
import inspect
from io import BytesIO
from unittest.mock import patch

from vadiler.api import admin
from vadiler.services.email_service import EmailSendResult


class TestAdminAuth:

    def test_router_requires_admin(self, client):
        assert client.get('/api/admin/order-counter').status_code == 401

    def test_customer_cookie_is_not_enough(self, client, customer_cookie):
        client.cookies.update(customer_cookie)
        assert client.get('/api/admin/sales-report').status_code == 401


class TestBulkImport:

    def test_records_must_be_a_list(self, client, admin_headers):
        response = client.post('/api/admin/bulk-import-products', json={"products": {"id": 1}},
                               headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid products data"

    @patch('vadiler.api.admin.BulkImportService')
    def test_coupons(self, mock_service, client, admin_headers):
        mock_service.return_value.import_coupons.return_value = {"success": True, "imported": 2, "skipped": 0}

        response = client.post('/api/admin/bulk-import-coupons', json={"coupons": [{"code": "A"}, {"code": "B"}]},
                               headers=admin_headers)

        assert response.json()["imported"] == 2
        mock_service.return_value.import_coupons.assert_called_once_with([{"code": "A"}, {"code": "B"}])


    def test_import_handlers_run_in_threadpool(self):
        # they sleep between chunks, which must not stall the event loop
        for handler in (admin.bulk_import_products, admin.bulk_import_customers, admin.bulk_import_coupons):
            assert not inspect.iscoroutinefunction(handler)


class TestOrderCounter:

    @patch('vadiler.api.admin.OrderNumberService')
    def test_reset_out_of_range(self, mock_service, client, admin_headers):
        mock_service.return_value.reset_counter.side_effect = ValueError("Start must be between 100000 and 999999")

        response = client.post('/api/admin/order-counter/reset', json={"start": 5}, headers=admin_headers)

        assert response.status_code == 400

    @patch('vadiler.api.admin.OrderNumberService')
    def test_info(self, mock_service, client, admin_headers):
        mock_service.return_value.get_counter_info.return_value = {"nextOrderNumber": 100201, "totalOrders": 200}

        response = client.get('/api/admin/order-counter', headers=admin_headers)

        assert response.json() == {"success": True, "data": {"nextOrderNumber": 100201, "totalOrders": 200}}


class TestSalesReport:

    @patch('vadiler.api.admin.SalesReportService')
    def test_export_streams_workbook(self, mock_service, client, admin_headers):
        mock_service.return_value.export_workbook.return_value = BytesIO(b"PK\x03\x04fake")

        response = client.get('/api/admin/sales-report/export?start=2025-11-01', headers=admin_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert "satis_raporu_" in response.headers["content-disposition"]
        assert response.content.startswith(b"PK")
        mock_service.return_value.export_workbook.assert_called_once_with("2025-11-01", None)


class TestDeliveryOffDays:

    @patch('vadiler.api.admin.DeliveryCalendarRepository')
    def test_deactivate_unknown_is_404(self, mock_repo, client, admin_headers):
        mock_repo.return_value.deactivate.return_value = False

        assert client.delete('/api/admin/delivery-off-days/9', headers=admin_headers).status_code == 404


class TestTestEmail:

    @patch('vadiler.api.admin.get_email_service')
    def test_smtp_failure_is_502(self, mock_get, client, admin_headers):
        mock_get.return_value.send_test_email.return_value = EmailSendResult(
            success=False, error="Connection refused", error_code="CONNECTION_ERROR"
        )

        response = client.post('/api/admin/test-email', json={"to": "ops@vadiler.com"}, headers=admin_headers)

        assert response.status_code == 502
        assert response.json()["detail"]["errorCode"] == "CONNECTION_ERROR"
