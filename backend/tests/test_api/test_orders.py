"""
API tests for /api/orders

Services are patched where the router looks them up.

Author: Vadiler
Date: 2025-11-08
"""
from unittest.mock import patch

from vadiler.domain.order_status import InvalidTransitionError
from vadiler.services.checkout_service import CheckoutValidationError
from vadiler.services.order_service import OrderNotFoundError, TrackingError


class TestCreateOrder:

    @patch('vadiler.api.orders.OrderService')
    def test_created(self, mock_service, client, make_order):
        mock_service.return_value.create_order.return_value = make_order()

        response = client.post('/api/orders/', json={"products": [{"id": 1, "quantity": 2}],
                                                     "delivery": {"deliveryDate": "2025-11-10"}})

        assert response.status_code == 201
        data = response.json()
        assert data["order_number"] == 100123
        assert data["total"] == 1500.0

    @patch('vadiler.api.orders.OrderService')
    def test_validation_error_is_400(self, mock_service, client):
        mock_service.return_value.create_order.side_effect = CheckoutValidationError("Invalid product: 99")

        response = client.post('/api/orders/', json={"products": [{"id": 99}]})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid product: 99"


class TestAdminOrders:

    def test_list_requires_token(self, client):
        assert client.get('/api/orders/').status_code == 401

    @patch('vadiler.api.orders.OrderService')
    def test_list_envelope(self, mock_service, client, admin_headers, make_order):
        mock_service.return_value.list_orders.return_value = ([make_order()], 1)

        response = client.get('/api/orders/?status=confirmed&limit=10', headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert (body["total"], body["limit"], body["count"]) == (1, 10, 1)
        mock_service.return_value.list_orders.assert_called_once_with(
            customer_id=None, status="confirmed", search=None, limit=10, offset=0
        )

    @patch('vadiler.api.orders.OrderService')
    def test_invalid_transition_is_409(self, mock_service, client, admin_headers):
        mock_service.return_value.update_order.side_effect = InvalidTransitionError("delivered", "pending")

        response = client.put('/api/orders/order-1', json={"status": "pending"}, headers=admin_headers)

        assert response.status_code == 409

    @patch('vadiler.api.orders.OrderService')
    def test_unknown_order_is_404(self, mock_service, client, admin_headers):
        mock_service.return_value.get_order.side_effect = OrderNotFoundError("missing")

        assert client.get('/api/orders/missing', headers=admin_headers).status_code == 404

    @patch('vadiler.repositories.order_repository.get_db_connection_dict')
    def test_malformed_order_id_is_404(self, mock_get_conn, client, admin_headers):
        response = client.get('/api/orders/12345', headers=admin_headers)

        assert response.status_code == 404
        mock_get_conn.assert_not_called()

    @patch('vadiler.api.orders.OrderService')
    def test_delete_reports_backup(self, mock_service, client, admin_headers):
        mock_service.return_value.delete_order.return_value = {"success": True, "backed_up": True}

        response = client.delete('/api/orders/order-1', headers=admin_headers)

        assert response.json() == {"success": True, "backedUp": True}


class TestTracking:

    @patch('vadiler.api.orders.OrderService')
    def test_mismatch_is_403(self, mock_service, client):
        mock_service.return_value.track_order.side_effect = TrackingError("eşleşmiyor", status_code=403)

        response = client.post('/api/orders/track', json={"orderNumber": 100123, "verificationType": "email",
                                                          "verificationValue": "x@example.com"})

        assert response.status_code == 403

    @patch('vadiler.api.orders.OrderService')
    def test_found(self, mock_service, client):
        mock_service.return_value.track_order.return_value = {"orderNumber": 100123, "status": "preparing"}

        response = client.post('/api/orders/track', json={"orderNumber": "100123", "verificationType": "phone",
                                                          "verificationValue": "5339876543"})

        assert response.json()["status"] == "preparing"
        mock_service.return_value.track_order.assert_called_once_with("100123", "phone", "5339876543")
