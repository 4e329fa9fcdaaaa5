"""
API tests for /api/cron

Author: Vadiler
Date: 2025-11-08
"""
from unittest.mock import AsyncMock, patch

import pytest


class TestCronAuth:

    @pytest.mark.parametrize("path", ["/api/cron/verify-payments", "/api/cron/payment-reminders",
                                      "/api/cron/automation"])
    def test_requires_secret(self, client, path):
        assert client.get(path).status_code == 401
        assert client.get(path, headers={"Authorization": "Bearer wrong"}).status_code == 401


class TestCronJobs:

    @patch('vadiler.api.cron.OrderAutomationService')
    def test_automation(self, mock_service, client, cron_headers):
        mock_service.return_value.process_automated_updates = AsyncMock(
            return_value={"updated": 2, "failedPayments": 1, "details": []}
        )

        response = client.get('/api/cron/automation', headers=cron_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["updated"] == 2
        assert "timestamp" in body

    @patch('vadiler.api.cron.PaymentReminderService')
    def test_payment_reminders(self, mock_service, client, cron_headers):
        mock_service.return_value.send_payment_reminders.return_value = {"sent": 3, "skipped": 1}

        response = client.get('/api/cron/payment-reminders', headers=cron_headers)

        assert response.json()["sent"] == 3

    @patch('vadiler.api.cron.PaymentVerificationService')
    def test_verify_payments_failure_is_500(self, mock_service, client, cron_headers):
        mock_service.return_value.verify_pending_payments = AsyncMock(side_effect=RuntimeError("db down"))

        response = client.get('/api/cron/verify-payments', headers=cron_headers)

        assert response.status_code == 500
