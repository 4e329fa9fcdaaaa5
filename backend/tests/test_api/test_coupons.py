"""
API tests for /api/coupons

Author: Vadiler
Date: 2025-11-08
"""
from unittest.mock import patch

from vadiler.services.coupon_service import CouponError


class TestValidateCoupon:

    @patch('vadiler.api.coupons.CouponService')
    def test_valid(self, mock_service, client):
        mock_service.return_value.validate_and_apply.return_value = {
            "valid": True, "code": "GUL10", "discount": 150.0, "finalTotal": 1350.0,
        }

        response = client.post('/api/coupons/validate', json={"code": "gul10", "orderTotal": 1500})

        assert response.json()["discount"] == 150.0
        mock_service.return_value.validate_and_apply.assert_called_once_with("gul10", 1500)

    @patch('vadiler.api.coupons.CouponService')
    def test_rejected(self, mock_service, client):
        mock_service.return_value.validate_and_apply.side_effect = CouponError("Kupon süresi dolmuş")

        response = client.post('/api/coupons/validate', json={"code": "ESKI", "orderTotal": 1500})

        assert response.status_code == 400
        assert response.json()["detail"] == "Kupon süresi dolmuş"

    def test_list_requires_admin(self, client):
        assert client.get('/api/coupons/').status_code == 401
