"""
iyzico Payment Gateway Connector
Handles all interactions with the iyzico REST API

Requests are signed with IYZWSv2:
    signature = HMAC-SHA256(secretKey, randomKey + uriPath + body) as hex
    Authorization: IYZWSv2 base64("apiKey:<k>&randomKey:<rnd>&signature:<hex>")
The legacy IYZWS v1 header is sent alongside for older gateway nodes.

Author: Vadiler
Date: 2025-11-02
"""
import base64
import hashlib
import hmac
import json
import logging
import random
import time
from typing import Any, Dict, Optional

import httpx

from vadiler.core.config import settings

logger = logging.getLogger(__name__)

CHECKOUT_FORM_INITIALIZE = "/payment/iyzipos/checkoutform/initialize/auth/ecom"
CHECKOUT_FORM_RETRIEVE = "/payment/iyzipos/checkoutform/auth/ecom/detail"
THREEDS_INITIALIZE = "/payment/3dsecure/initialize"
THREEDS_AUTH = "/payment/3dsecure/auth"
PAYMENT_DETAIL = "/payment/detail"

CLIENT_VERSION = "iyzipay-python-vadiler-1.0"


class IyzicoConfigurationError(Exception):
    """API key, secret key or base URL is missing"""


class IyzicoConnector:
    """
    Connector for the iyzico payment API

    Handles:
    - Checkout form (hosted payment page) initialize and retrieve
    - 3D Secure initialize and auth
    - Payment detail lookup
    """

    def __init__(self, api_key: str = None, secret_key: str = None, base_url: str = None):
        self.api_key = (api_key or settings.IYZICO_API_KEY or "").strip()
        self.secret_key = (secret_key or settings.IYZICO_SECRET_KEY or "").strip()
        self.base_url = (base_url or settings.IYZICO_BASE_URL or "").strip().rstrip("/")

        if not all([self.api_key, self.secret_key, self.base_url]):
            raise IyzicoConfigurationError(
                "Missing iyzico credentials. Set IYZICO_API_KEY, IYZICO_SECRET_KEY and IYZICO_BASE_URL"
            )

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    @staticmethod
    def generate_random_key() -> str:
        return f"{int(time.time() * 1000)}{random.randint(0, 999_999_999)}"

    def build_auth_header_v2(self, uri_path: str, body: str, random_key: str) -> str:
        sign_data = random_key + uri_path + body
        signature = hmac.new(
            self.secret_key.encode("utf-8"),
            sign_data.encode("utf-8"),
            hashlib.sha256
        ).hexdigest()

        auth_string = f"apiKey:{self.api_key}&randomKey:{random_key}&signature:{signature}"
        return "IYZWSv2 " + base64.b64encode(auth_string.encode("utf-8")).decode("ascii")

    @classmethod
    def pki_string(cls, value: Any) -> str:
        """
        SDK v1 request string: [key=value,key=[...]] with arrays joined by ', '.
        Keys keep insertion order.
        """
        if isinstance(value, dict):
            parts = [
                f"{key}={cls._pki_value(val)}"
                for key, val in value.items()
                if val is not None
            ]
            return "[" + ",".join(parts) + "]"
        if isinstance(value, list):
            return "[" + ", ".join(cls._pki_value(v) for v in value if v is not None) + "]"
        return cls._pki_value(value)

    @classmethod
    def _pki_value(cls, value: Any) -> str:
        if isinstance(value, (dict, list)):
            return cls.pki_string(value)
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def build_auth_header_v1(self, request: Dict[str, Any], random_key: str) -> str:
        digest = hashlib.sha1(
            (self.api_key + random_key + self.secret_key + self.pki_string(request)).encode("utf-8")
        ).digest()
        return f"IYZWS {self.api_key}:{base64.b64encode(digest).decode('ascii')}"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _make_request(self, endpoint: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a signed request and return the decoded JSON body

        iyzico answers business errors with HTTP 200 and status "failure";
        transport errors raise httpx exceptions to the caller.
        """
        body = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
        random_key = self.generate_random_key()

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": self.build_auth_header_v2(endpoint, body, random_key),
            "Authorization_Fallback": self.build_auth_header_v1(data, random_key),
            "x-iyzi-rnd": random_key,
            "x-iyzi-client-version": CLIENT_VERSION,
        }

        logger.info(f"iyzico request: {endpoint}")

        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self.base_url}{endpoint}",
                content=body.encode("utf-8"),
                headers=headers,
                timeout=30.0
            )

        result = response.json()

        if result.get("status") != "success":
            logger.error(
                f"iyzico error on {endpoint}: {result.get('errorMessage')} (code {result.get('errorCode')})"
            )
        return result

    # ------------------------------------------------------------------
    # API
    # ------------------------------------------------------------------

    async def initialize_checkout_form(self, request: Dict[str, Any]) -> Dict[str, Any]:
        return await self._make_request(CHECKOUT_FORM_INITIALIZE, request)

    async def retrieve_checkout_form(self, token: str,
                                     conversation_id: Optional[str] = None) -> Dict[str, Any]:
        request = {
            "locale": "tr",
            "conversationId": conversation_id or self.generate_random_key(),
            "token": token,
        }
        return await self._make_request(CHECKOUT_FORM_RETRIEVE, request)

    async def initialize_threeds(self, request: Dict[str, Any]) -> Dict[str, Any]:
        return await self._make_request(THREEDS_INITIALIZE, request)

    async def complete_threeds(self, payment_id: str,
                               conversation_id: Optional[str] = None) -> Dict[str, Any]:
        request = {
            "locale": "tr",
            "conversationId": conversation_id or self.generate_random_key(),
            "paymentId": payment_id,
        }
        return await self._make_request(THREEDS_AUTH, request)

    async def retrieve_payment(self, payment_id: str,
                               conversation_id: Optional[str] = None) -> Dict[str, Any]:
        request = {
            "locale": "tr",
            "conversationId": conversation_id or self.generate_random_key(),
            "paymentId": payment_id,
        }
        return await self._make_request(PAYMENT_DETAIL, request)

    @property
    def is_sandbox(self) -> bool:
        return "sandbox" in self.base_url

    @property
    def environment(self) -> str:
        return "sandbox" if self.is_sandbox else "production"


_connector: Optional[IyzicoConnector] = None


def get_iyzico_connector() -> IyzicoConnector:
    """Lazy singleton so missing credentials only fail payment routes"""
    global _connector
    if _connector is None:
        _connector = IyzicoConnector()
    return _connector
