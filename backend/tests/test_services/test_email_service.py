"""
Unit tests for EmailService

SMTP is patched; no connection is ever opened.

Author: Vadiler
Date: 2025-11-08
"""
import smtplib
import socket
from decimal import Decimal
from unittest.mock import patch

import pytest

from vadiler.services.email_service import (
    EmailSendResult,
    EmailService,
    build_tracking_url,
    classify_email_error,
)


@pytest.fixture
def service():
    return EmailService(host="smtp.test", port=587, user="siparis@vadiler.test",
                        password="secret", secure=False)


class TestErrorClassification:

    def test_refused_recipient(self):
        error = smtplib.SMTPRecipientsRefused({"x@y.z": (550, b"No such user")})
        assert classify_email_error(error).error_code == "INVALID_EMAIL"

    def test_mailbox_hint_in_message(self):
        error = smtplib.SMTPDataError(451, b"Mailbox not found")
        assert classify_email_error(error).error_code == "INVALID_EMAIL"

    def test_connection_problems(self):
        assert classify_email_error(socket.timeout("timed out")).error_code == "CONNECTION_ERROR"
        assert classify_email_error(smtplib.SMTPServerDisconnected("gone")).error_code == "CONNECTION_ERROR"

    def test_other_5xx(self):
        error = smtplib.SMTPDataError(552, b"Message size exceeds limit")
        assert classify_email_error(error).error_code == "SMTP_ERROR"

    def test_unknown(self):
        result = classify_email_error(smtplib.SMTPException("weird"))
        assert result.to_dict() == {"success": False, "error": result.error, "errorCode": "UNKNOWN"}


class TestTrackingUrl:

    def test_with_verification(self):
        url = build_tracking_url(100123, "email", "ayse@example.com")
        assert url == "https://vadiler.test/siparis-takip?order=100123&vtype=email&v=ayse%40example.com"

    def test_without_verification(self):
        assert build_tracking_url(100123, "sms", "x") == "https://vadiler.test/siparis-takip?order=100123"


class TestSending:

    @patch("vadiler.services.email_service.smtplib.SMTP")
    def test_send_email_logs_in_and_quits(self, mock_smtp, service):
        server = mock_smtp.return_value

        result = service.send_email("ayse@example.com", "Merhaba", "<p>Merhaba</p>", text="Merhaba")

        assert result == EmailSendResult(success=True)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("siparis@vadiler.test", "secret")
        server.send_message.assert_called_once()
        server.quit.assert_called_once()

    @patch("vadiler.services.email_service.smtplib.SMTP")
    def test_send_failure_is_returned_not_raised(self, mock_smtp, service):
        mock_smtp.return_value.send_message.side_effect = smtplib.SMTPRecipientsRefused(
            {"bad@example.com": (550, b"User unknown")}
        )

        result = service.send_email("bad@example.com", "Merhaba", "<p>x</p>")

        assert result.success is False
        assert result.error_code == "INVALID_EMAIL"
        mock_smtp.return_value.quit.assert_called_once()

    def test_order_confirmation_content(self, service, make_order):
        order = make_order(discount=Decimal("100"), total=Decimal("1400"))

        with patch.object(service, "send_email", return_value=EmailSendResult(success=True)) as mock_send:
            assert service.send_order_confirmation(order) is True

        kwargs = mock_send.call_args.kwargs
        assert kwargs["to"] == "ayse@example.com"
        assert "#100123" in kwargs["subject"]
        assert "1.400,00" in kwargs["html"]
        assert "Kadıköy" in kwargs["html"]
        assert "siparis-takip?order=100123" in kwargs["text"]

    def test_confirmation_skipped_without_email(self, service, make_order):
        with patch.object(service, "send_email") as mock_send:
            assert service.send_order_confirmation(make_order(customer_email=None)) is False
        mock_send.assert_not_called()

    def test_refund_status_message(self, service, make_order):
        with patch.object(service, "send_email", return_value=EmailSendResult(success=True)) as mock_send:
            service.send_order_status_update(make_order(status="refunded"), "refunded",
                                             refund_amount=1500, refund_reason="Stok yok")

        text = mock_send.call_args.kwargs["text"]
        assert "İade tutarı: ₺1.500,00." in text
        assert "İade sebebi: Stok yok" in text

    def test_unknown_status_sends_nothing(self, service, make_order):
        with patch.object(service, "send_email") as mock_send:
            assert service.send_order_status_update(make_order(), "awaiting_payment") is False
        mock_send.assert_not_called()

    def test_failed_payment_reminder_subject(self, service, make_order):
        with patch.object(service, "send_email", return_value=EmailSendResult(success=True)) as mock_send:
            service.send_payment_reminder(make_order(status="payment_failed"), 1)

        assert mock_send.call_args.kwargs["subject"].startswith("❌ Ödemeniz başarısız oldu")
        assert "#payment-section" in mock_send.call_args.kwargs["html"]

    def test_otp_email(self, service):
        with patch.object(service, "send_email", return_value=EmailSendResult(success=True)) as mock_send:
            service.send_customer_otp("ayse@example.com", "123456", "register")

        assert "123456" in mock_send.call_args.kwargs["html"]
        assert "123456" in mock_send.call_args.kwargs["text"]
