"""
Unit tests for IyzicoConnector request signing

Author: Vadiler
Date: 2025-11-08
"""
import asyncio
import base64
import hashlib
import hmac
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vadiler.connectors.iyzico_connector import (
    CHECKOUT_FORM_RETRIEVE,
    IyzicoConfigurationError,
    IyzicoConnector,
)


@pytest.fixture
def connector():
    return IyzicoConnector(api_key="api-key", secret_key="secret-key",
                           base_url="https://sandbox-api.iyzipay.com/")


class TestSigning:

    def test_missing_credentials(self):
        with patch("vadiler.connectors.iyzico_connector.settings") as mock_settings:
            mock_settings.IYZICO_API_KEY = ""
            mock_settings.IYZICO_SECRET_KEY = ""
            mock_settings.IYZICO_BASE_URL = ""
            with pytest.raises(IyzicoConfigurationError):
                IyzicoConnector()

    def test_v2_header(self, connector):
        body = '{"locale":"tr"}'
        expected_signature = hmac.new(
            b"secret-key", f"123{CHECKOUT_FORM_RETRIEVE}{body}".encode(), hashlib.sha256
        ).hexdigest()

        header = connector.build_auth_header_v2(CHECKOUT_FORM_RETRIEVE, body, "123")

        assert header.startswith("IYZWSv2 ")
        decoded = base64.b64decode(header.split(" ", 1)[1]).decode()
        assert decoded == f"apiKey:api-key&randomKey:123&signature:{expected_signature}"

    def test_pki_string(self):
        request = {
            "locale": "tr",
            "price": "1500.00",
            "buyer": {"id": "cust-1", "name": "Ayşe"},
            "enabledInstallments": [1, 2, 3],
            "basketItems": [{"id": "1", "price": "750.00"}],
            "skipped": None,
            "flag": True,
        }

        assert IyzicoConnector.pki_string(request) == (
            "[locale=tr,price=1500.00,buyer=[id=cust-1,name=Ayşe],"
            "enabledInstallments=[1, 2, 3],basketItems=[[id=1,price=750.00]],flag=true]"
        )

    def test_v1_header(self, connector):
        request = {"locale": "tr"}
        digest = hashlib.sha1(b"api-key" + b"123" + b"secret-key" + b"[locale=tr]").digest()

        assert connector.build_auth_header_v1(request, "123") == \
            f"IYZWS api-key:{base64.b64encode(digest).decode()}"

    def test_environment(self, connector):
        assert connector.base_url == "https://sandbox-api.iyzipay.com"
        assert connector.environment == "sandbox"


class TestTransport:

    @patch("vadiler.connectors.iyzico_connector.httpx.AsyncClient")
    def test_retrieve_checkout_form_posts_signed_body(self, mock_client_cls, connector):
        # Arrange
        response = MagicMock()
        response.json.return_value = {"status": "success", "paymentStatus": "SUCCESS"}
        client = MagicMock()
        client.post = AsyncMock(return_value=response)
        mock_client_cls.return_value.__aenter__.return_value = client

        # Act
        result = asyncio.run(connector.retrieve_checkout_form("tok-1", "order-1"))

        # Assert
        assert result["paymentStatus"] == "SUCCESS"
        url = client.post.call_args[0][0]
        kwargs = client.post.call_args.kwargs
        assert url == f"https://sandbox-api.iyzipay.com{CHECKOUT_FORM_RETRIEVE}"
        assert json.loads(kwargs["content"]) == {"locale": "tr", "conversationId": "order-1", "token": "tok-1"}
        assert kwargs["headers"]["Authorization"].startswith("IYZWSv2 ")
        assert kwargs["headers"]["x-iyzi-rnd"]

    @patch("vadiler.connectors.iyzico_connector.httpx.AsyncClient")
    def test_business_failure_is_returned(self, mock_client_cls, connector):
        response = MagicMock()
        response.json.return_value = {"status": "failure", "errorCode": "5152", "errorMessage": "Test"}
        client = MagicMock()
        client.post = AsyncMock(return_value=response)
        mock_client_cls.return_value.__aenter__.return_value = client

        result = asyncio.run(connector.complete_threeds("pay-1", "order-1"))

        assert result["status"] == "failure"
