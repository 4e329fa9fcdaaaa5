"""
Unit tests for OrderService

Author: Vadiler
Date: 2025-11-08
"""
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from vadiler.domain.order import Order
from vadiler.services.checkout_service import CheckoutValidationError
from vadiler.services.order_service import (
    OrderNotFoundError,
    OrderService,
    TrackingError,
    build_client_info,
    detect_browser,
    detect_device_type,
)
from vadiler.services.payment_reminder_service import REMINDER_STATUSES

TRUSTED_LINES = [{"id": 1, "name": "Kırmızı Gül Buketi", "price": 750.0, "quantity": 2}]

CHROME_UA = ("Mozilla/5.0 (Linux; Android 14) AppleWebKit/537.36 "
             "(KHTML, like Gecko) Chrome/120.0.6099.43 Mobile Safari/537.36")


@pytest.fixture
def parts():
    order_repo = MagicMock()
    order_repo.create.side_effect = lambda fields: Order(id="order-9", **fields)
    customer_repo = MagicMock()
    number_service = MagicMock()
    number_service.generate_order_number.return_value = 100124
    email_service = MagicMock()
    lifecycle = MagicMock()
    service = OrderService(order_repo, customer_repo, lifecycle, number_service, email_service)
    return service, order_repo, customer_repo, lifecycle, email_service


def _payload(**overrides):
    payload = {
        "products": [{"id": 1, "quantity": 2, "price": 1}],
        "delivery": {"recipientName": "Fatma Demir", "recipientPhone": "0533 987 65 43",
                     "district": "Kadıköy", "deliveryDate": "2025-11-10"},
        "customer_name": "Ayşe Yılmaz",
        "customer_email": " Ayse@Example.com ",
        "customer_phone": "+90 532 123 45 67",
        "payment": {"method": "credit_card", "status": "pending"},
        "delivery_fee": 0,
        "discount": 0,
        "total": 1,
    }
    payload.update(overrides)
    return payload


class TestClientInfo:

    def test_device_type(self):
        assert detect_device_type("") == "desktop"
        assert detect_device_type("Mozilla/5.0 (iPad; CPU OS 17_0)") == "tablet"
        assert detect_device_type(CHROME_UA) == "mobile"

    def test_browser(self):
        assert detect_browser(CHROME_UA) == ("Chrome", "120.0.6099.43")
        assert detect_browser("curl/8.0") == ("Bilinmiyor", "")

    def test_build_client_info_drops_empty_values(self):
        info = build_client_info({"user-agent": CHROME_UA, "sec-ch-ua-platform": '"Android"'})

        assert info["deviceType"] == "mobile"
        assert info["os"] == "Android"
        assert "browserVersion" in info
        assert build_client_info({}) == {"deviceType": "desktop", "browser": "Bilinmiyor"}


@patch("vadiler.services.order_service.validate_delivery_date")
@patch("vadiler.services.order_service.build_trusted_order_products")
class TestCreateOrder:

    def test_totals_come_from_the_catalog(self, mock_lines, mock_date, parts):
        # Arrange
        service, order_repo, _, _, _ = parts
        mock_lines.return_value = (TRUSTED_LINES, Decimal("1500"))

        # Act
        order = service.create_order(_payload(), headers={"user-agent": CHROME_UA})

        # Assert
        fields = order_repo.create.call_args[0][0]
        assert fields["total"] == Decimal("1500")
        assert fields["subtotal"] == Decimal("1500")
        assert fields["order_number"] == 100124
        assert fields["customer_email"] == "ayse@example.com"
        assert fields["customer_phone"] == "5321234567"
        assert fields["delivery"]["recipientPhone"] == "5339876543"
        assert fields["status"] == "pending_payment"
        assert fields["is_guest"] is True
        assert fields["timeline"][0]["status"] == "pending_payment"
        assert fields["payment"]["clientInfo"]["deviceType"] == "mobile"
        assert order.total == Decimal("1500")

    def test_requires_products_and_delivery(self, mock_lines, mock_date, parts):
        service = parts[0]
        with pytest.raises(CheckoutValidationError):
            service.create_order(_payload(products=[]))
        with pytest.raises(CheckoutValidationError):
            service.create_order(_payload(delivery=None))

    def test_non_awaiting_initial_status_falls_back_to_method_default(self, mock_lines, mock_date, parts):
        service, order_repo, _, _, _ = parts
        mock_lines.return_value = (TRUSTED_LINES, Decimal("1500"))

        order = service.create_order(_payload(status="confirmed"))

        assert order.status == "pending_payment"

    def test_bank_transfer_order_awaits_payment(self, mock_lines, mock_date, parts):
        service, order_repo, _, _, _ = parts
        mock_lines.return_value = (TRUSTED_LINES, Decimal("1500"))

        order = service.create_order(_payload(payment={"method": "bank_transfer"}))

        assert order.status == "awaiting_payment"
        assert order.status in REMINDER_STATUSES
        assert order.timeline[0]["note"] == "Ödeme bekleniyor"

    def test_explicit_pending_is_kept(self, mock_lines, mock_date, parts):
        service, order_repo, _, _, _ = parts
        mock_lines.return_value = (TRUSTED_LINES, Decimal("1500"))

        order = service.create_order(_payload(status="pending"))

        assert order.status == "pending"
        assert order.timeline[0]["note"] == "Sipariş alındı"

    def test_pending_payment_initial_status(self, mock_lines, mock_date, parts):
        service, order_repo, _, _, _ = parts
        mock_lines.return_value = (TRUSTED_LINES, Decimal("1500"))

        order = service.create_order(_payload(status="pending_payment"))

        assert order.status == "pending_payment"
        assert order.timeline[0]["note"] == "Ödeme bekleniyor"

    def test_registered_customer_stats_updated(self, mock_lines, mock_date, parts):
        service, _, customer_repo, _, _ = parts
        mock_lines.return_value = (TRUSTED_LINES, Decimal("1500"))

        service.create_order(_payload(customer_id="cust-1"))

        customer_repo.record_order.assert_called_once()
        assert customer_repo.record_order.call_args[0][:2] == ("cust-1", "order-9")

    def test_bank_transfer_sends_instructions(self, mock_lines, mock_date, parts):
        service, _, _, _, email_service = parts
        mock_lines.return_value = (TRUSTED_LINES, Decimal("1500"))

        service.create_order(_payload(payment={"method": "bank_transfer", "status": "pending"}))

        email_service.send_bank_transfer_confirmation.assert_called_once()

    def test_email_failure_does_not_fail_the_order(self, mock_lines, mock_date, parts):
        service, _, _, _, email_service = parts
        mock_lines.return_value = (TRUSTED_LINES, Decimal("1500"))
        email_service.send_bank_transfer_confirmation.side_effect = RuntimeError("smtp down")

        order = service.create_order(_payload(payment={"method": "bank_transfer", "status": "pending"}))

        assert order.id == "order-9"

    def test_undeliverable_date_propagates(self, mock_lines, mock_date, parts):
        service = parts[0]
        mock_date.side_effect = CheckoutValidationError("Pazar günleri teslimat yapılmamaktadır.")

        with pytest.raises(CheckoutValidationError):
            service.create_order(_payload())


class TestUpdateAndDelete:

    def test_status_change_goes_through_lifecycle(self, parts, make_order):
        service, order_repo, _, lifecycle, _ = parts
        order_repo.find_by_id.return_value = make_order(status="confirmed",
                                                        payment={"method": "credit_card", "status": "paid"})

        service.update_order("order-1", {"status": "processing", "notes": "Hazırlanıyor",
                                         "timeline": []})

        args, kwargs = lifecycle.transition.call_args
        assert args[1] == "processing"
        assert kwargs["extra_fields"] == {"notes": "Hazırlanıyor"}
        assert kwargs["notify"] is True
        order_repo.update_fields.assert_not_called()

    def test_plain_field_update(self, parts, make_order):
        service, order_repo, _, lifecycle, _ = parts
        order_repo.find_by_id.return_value = make_order()
        order_repo.update_fields.return_value = make_order(tracking_url="https://kurye.test/1")

        service.update_order("order-1", {"trackingUrl": "https://kurye.test/1", "bogus": 1})

        fields = order_repo.update_fields.call_args[0][1]
        assert fields["tracking_url"] == "https://kurye.test/1"
        assert "bogus" not in fields
        lifecycle.transition.assert_not_called()

    def test_update_unknown_order(self, parts):
        service, order_repo, _, _, _ = parts
        order_repo.find_by_id.return_value = None

        with pytest.raises(OrderNotFoundError):
            service.update_order("missing", {"notes": "x"})

    def test_delete_backs_up_first(self, parts, make_order):
        service, order_repo, _, _, _ = parts
        order_repo.find_by_id.return_value = make_order()
        order_repo.backup_deleted.return_value = True

        result = service.delete_order("order-1")

        assert result == {"success": True, "backed_up": True}
        order_repo.delete.assert_called_once_with("order-1")

    def test_restore_removes_backup(self, parts, make_order):
        service, order_repo, _, _, _ = parts
        data = make_order().model_dump()
        order_repo.find_deleted_backup.return_value = {"id": 7, "order_data": data}
        order_repo.create.side_effect = None
        order_repo.create.return_value = make_order()

        service.restore_order(7)

        fields = order_repo.create.call_args[0][0]
        assert fields["id"] == "order-1"
        order_repo.remove_deleted_backup.assert_called_once_with(7)


class TestTrackOrder:

    @pytest.mark.parametrize("number,vtype,value", [
        (None, "email", "a@b.com"),
        ("12", "email", "a@b.com"),
        ("100123", "sms", "a@b.com"),
        ("100123", "email", "  "),
    ])
    def test_bad_input_is_400(self, parts, number, vtype, value):
        service = parts[0]
        with pytest.raises(TrackingError) as exc:
            service.track_order(number, vtype, value)
        assert exc.value.status_code == 400

    def test_unknown_order_is_404(self, parts):
        service, order_repo, _, _, _ = parts
        order_repo.find_by_order_number.return_value = None

        with pytest.raises(TrackingError) as exc:
            service.track_order("100123", "email", "ayse@example.com")
        assert exc.value.status_code == 404

    def test_mismatch_is_403(self, parts, make_order):
        service, order_repo, _, _, _ = parts
        order_repo.find_by_order_number.return_value = make_order()

        with pytest.raises(TrackingError) as exc:
            service.track_order("100123", "email", "someone@example.com")
        assert exc.value.status_code == 403

    def test_email_match_is_case_insensitive(self, parts, make_order):
        service, order_repo, _, _, _ = parts
        order_repo.find_by_order_number.return_value = make_order(status="processing")

        result = service.track_order("100123", "email", " AYSE@example.com ")

        assert result["orderNumber"] == 100123
        assert result["status"] == "preparing"
        assert result["recipientPhone"] == "533 987 ** **"
        assert result["items"][0]["productId"] == 1
        assert result["total"] == 1500.0

    def test_recipient_phone_also_verifies(self, parts, make_order):
        service, order_repo, _, _, _ = parts
        order_repo.find_by_order_number.return_value = make_order()

        result = service.track_order(100123, "phone", "+90 533 987 65 43")

        assert result["id"] == "order-1"
