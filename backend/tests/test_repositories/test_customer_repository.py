"""
Unit tests for CustomerRepository

Author: Vadiler
Date: 2025-11-08
"""
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from vadiler.repositories.customer_repository import CustomerRepository

CUSTOMER_ROW = {
    'id': 'cust-1',
    'email': 'ayse@example.com',
    'name': None,
    'phone': '5321234567',
    'password': '$2b$12$hash',
    'is_active': True,
    'addresses': None,
    'orders': None,
    'favorites': None,
    'tags': None,
    'order_count': None,
    'total_spent': None,
    'account_credit': Decimal('150.00'),
}


def _mock_db(mock_get_conn):
    mock_conn = MagicMock()
    mock_cursor = MagicMock()
    mock_get_conn.return_value = mock_conn
    mock_conn.cursor.return_value = mock_cursor
    return mock_conn, mock_cursor


class TestCustomerRepository:

    @patch('vadiler.repositories.customer_repository.get_db_connection_dict')
    def test_add_credit_increments_in_place(self, mock_get_conn):
        # Arrange
        mock_conn, mock_cursor = _mock_db(mock_get_conn)
        mock_cursor.fetchone.return_value = dict(CUSTOMER_ROW)

        # Act
        customer = CustomerRepository().add_credit('cust-1', Decimal('150'))

        # Assert
        sql, params = mock_cursor.execute.call_args[0]
        assert "account_credit = COALESCE(account_credit, 0) + %s" in sql
        assert params == (Decimal('150'), 'cust-1')
        assert customer.account_credit == Decimal('150.00')
        assert customer.name == ""
        mock_conn.commit.assert_called_once()

    @patch('vadiler.repositories.customer_repository.get_db_connection_dict')
    def test_add_credit_unknown_customer(self, mock_get_conn):
        _, mock_cursor = _mock_db(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        assert CustomerRepository().add_credit('missing', Decimal('10')) is None

    @patch('vadiler.repositories.customer_repository.get_db_connection_dict')
    def test_add_credit_rolls_back_on_error(self, mock_get_conn):
        mock_conn, mock_cursor = _mock_db(mock_get_conn)
        mock_cursor.execute.side_effect = RuntimeError("lock timeout")

        with pytest.raises(RuntimeError):
            CustomerRepository().add_credit('cust-1', Decimal('10'))
        mock_conn.rollback.assert_called_once()
        mock_conn.close.assert_called_once()
