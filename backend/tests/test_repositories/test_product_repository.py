"""
Unit tests for ProductRepository

These tests validate repository logic without requiring a database connection.

Author: Vadiler
Date: 2025-11-08
"""
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from vadiler.domain.product import Product
from vadiler.repositories.product_repository import ProductRepository

PRODUCT_ROW = {
    'id': 1,
    'name': 'Kırmızı Gül Buketi',
    'slug': 'kirmizi-gul-buketi',
    'sku': 'SKU-KIRMIZI-GUL-BUKETI',
    'description': '11 kırmızı gül',
    'long_description': None,
    'price': Decimal('750.00'),
    'old_price': Decimal('900.00'),
    'discount': None,
    'image': 'https://cdn.vadiler.test/gul.jpg',
    'hover_image': None,
    'gallery': None,
    'category': 'guller',
    'category_name': 'Güller',
    'occasion_tags': ['dogum-gunu-hediyeleri'],
    'tags': None,
    'in_stock': True,
    'stock_count': 20,
    'rating': Decimal('4.8'),
    'review_count': 12,
    'created_at': datetime(2025, 10, 1, 10, 0),
    'updated_at': None,
}


def _mock_db(mock_get_conn):
    mock_conn = MagicMock()
    mock_cursor = MagicMock()
    mock_get_conn.return_value = mock_conn
    mock_conn.cursor.return_value = mock_cursor
    return mock_conn, mock_cursor


class TestProductRepository:
    """Test ProductRepository methods"""

    @patch('vadiler.repositories.product_repository.get_db_connection_dict')
    def test_find_by_id_returns_product(self, mock_get_conn):
        """Test find_by_id returns a Product domain model"""
        # Arrange
        mock_conn, mock_cursor = _mock_db(mock_get_conn)
        mock_cursor.fetchone.return_value = dict(PRODUCT_ROW)

        # Act
        product = ProductRepository().find_by_id(1)

        # Assert
        assert isinstance(product, Product)
        assert product.slug == 'kirmizi-gul-buketi'
        assert product.gallery == []
        assert product.discount == 0
        assert product.has_discount is True
        mock_cursor.close.assert_called_once()
        mock_conn.close.assert_called_once()

    @patch('vadiler.repositories.product_repository.get_db_connection_dict')
    def test_find_by_id_returns_none_when_not_found(self, mock_get_conn):
        mock_conn, mock_cursor = _mock_db(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        assert ProductRepository().find_by_id(999) is None
        mock_conn.close.assert_called_once()

    @patch('vadiler.repositories.product_repository.get_db_connection_dict')
    def test_find_by_ids_uses_one_query(self, mock_get_conn):
        """Duplicate ids collapse and the lookup is keyed by id"""
        _, mock_cursor = _mock_db(mock_get_conn)
        mock_cursor.fetchall.return_value = [dict(PRODUCT_ROW)]

        result = ProductRepository().find_by_ids([1, "1", 2])

        assert list(result.keys()) == [1]
        mock_cursor.execute.assert_called_once()
        assert mock_cursor.execute.call_args[0][1] == ([1, 2],)

    @patch('vadiler.repositories.product_repository.get_db_connection_dict')
    def test_find_by_ids_empty_skips_database(self, mock_get_conn):
        assert ProductRepository().find_by_ids([]) == {}
        mock_get_conn.assert_not_called()

    @patch('vadiler.repositories.product_repository.get_db_connection_dict')
    def test_find_all_category_matches_occasion_tags(self, mock_get_conn):
        _, mock_cursor = _mock_db(mock_get_conn)
        mock_cursor.fetchone.return_value = {'total': 1}
        mock_cursor.fetchall.return_value = [dict(PRODUCT_ROW)]

        products, total = ProductRepository().find_all(category='dogum-gunu-hediyeleri',
                                                        sort='price-asc', limit=10)

        assert total == 1
        assert len(products) == 1
        count_sql, count_params = mock_cursor.execute.call_args_list[0][0]
        assert "ANY(occasion_tags)" in count_sql
        assert count_params == ['dogum-gunu-hediyeleri', 'dogum-gunu-hediyeleri']
        list_sql, list_params = mock_cursor.execute.call_args_list[1][0]
        assert "ORDER BY price ASC" in list_sql
        assert list_params[-2:] == [10, 0]

    @patch('vadiler.repositories.product_repository.get_db_connection_dict')
    def test_find_all_without_limit(self, mock_get_conn):
        _, mock_cursor = _mock_db(mock_get_conn)
        mock_cursor.fetchone.return_value = {'total': 0}
        mock_cursor.fetchall.return_value = []

        ProductRepository().find_all(limit=None)

        assert "LIMIT" not in mock_cursor.execute.call_args_list[1][0][0]

    @patch('vadiler.repositories.product_repository.get_db_connection_dict')
    def test_update_prices_rolls_back_on_error(self, mock_get_conn):
        mock_conn, mock_cursor = _mock_db(mock_get_conn)
        mock_cursor.execute.side_effect = [None, RuntimeError("deadlock")]

        with pytest.raises(RuntimeError):
            ProductRepository().update_prices([
                {'id': 1, 'price': 825, 'old_price': 990, 'discount': 17},
                {'id': 2, 'price': 110, 'old_price': 110, 'discount': 0},
            ])

        mock_conn.rollback.assert_called_once()
        mock_conn.commit.assert_not_called()
        mock_conn.close.assert_called_once()

    def test_insert_rejects_unknown_columns(self):
        with pytest.raises(ValueError):
            ProductRepository().insert({'id': 1, 'colour': 'red'})


class TestCategoryWrites:

    @patch('vadiler.repositories.product_repository.get_db_connection_dict')
    def test_insert_category_quotes_order_column(self, mock_get_conn):
        mock_conn, mock_cursor = _mock_db(mock_get_conn)
        mock_cursor.fetchone.return_value = {'id': 8, 'name': 'Orkideler', 'slug': 'orkideler',
                                             'description': '', 'image': '', 'is_active': True,
                                             'order': 5, 'updated_at': None}

        category = ProductRepository().insert_category({'id': 8, 'name': 'Orkideler', 'slug': 'orkideler',
                                                        'order': 5})

        sql, params = mock_cursor.execute.call_args[0]
        assert '"order"' in sql
        assert params == [8, 'Orkideler', 'orkideler', 5]
        assert category.order == 5
        mock_conn.commit.assert_called_once()

    @patch('vadiler.repositories.product_repository.get_db_connection_dict')
    def test_update_missing_category_returns_none(self, mock_get_conn):
        _, mock_cursor = _mock_db(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        assert ProductRepository().update_category(99, {'name': 'X'}) is None

    def test_category_rejects_unknown_columns(self):
        with pytest.raises(ValueError):
            ProductRepository().insert_category({'id': 1, 'product_count': 3})

    @patch('vadiler.repositories.product_repository.get_db_connection_dict')
    def test_slug_check_can_exclude_the_category_itself(self, mock_get_conn):
        _, mock_cursor = _mock_db(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        assert ProductRepository().category_slug_exists('guller', exclude_id=3) is False
        assert mock_cursor.execute.call_args[0][1] == ('guller', 3)
