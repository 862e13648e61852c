"""
Tests for the HTTP surface: health, ad-hoc parsing, sync and stored order listings.
Supabase and the ingestion worker are mocked.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fastapi.testclient import TestClient
from unittest.mock import Mock, patch

from app.main import app

client = TestClient(app)

TEST_USER_ID = "00000000-0000-0000-0000-000000000000"


class TestHealth:

    def test_root(self):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestParseEndpoint:

    def test_accepted_order(self):
        response = client.post("/parse", json={
            "sender": "auto-confirm@amazon.com",
            "subject": 'Your Amazon.com order of 2 x "Wireless Mouse" has shipped',
            "body": "Order #123-4567890-1234567\nOrder Total: $45.00",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["accepted"] is True
        assert data["order"]["order_number"] == "123-4567890-1234567"
        assert data["order"]["vendor"] == "Amazon"
        assert data["order"]["items"][0]["name"] == "Wireless Mouse"
        assert data["order"]["items"][0]["quantity"] == 2
        assert float(data["order"]["items"][0]["price"]) == 22.5
        assert data["confidence"]["overall"] > 0

    def test_rejected_order(self):
        response = client.post("/parse", json={
            "sender": "noreply@nike.com",
            "subject": "Order Confirmation",
            "body": "Thanks for your purchase.",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["accepted"] is False
        assert data["order"] is None
        assert data["reason"] == "missing order number"

    def test_empty_request(self):
        response = client.post("/parse", json={})

        assert response.status_code == 200
        assert response.json()["accepted"] is False


class TestSyncEndpoint:

    @patch('app.routers.sync.IngestionService')
    def test_sync(self, mock_ingestion_cls):
        mock_ingestion_cls.return_value.sync_orders.return_value = {
            'messages_checked': 2,
            'messages_processed': 2,
            'orders_created': 1,
            'orders': ['123-4567890-1234567'],
            'rejected': [{'message_id': 'm2', 'reason': 'no items'}],
            'errors': []
        }

        response = client.post("/sync", json={"user_id": TEST_USER_ID, "max_results": 2})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["orders_created"] == 1
        mock_ingestion_cls.return_value.sync_orders.assert_called_once_with(
            user_id=TEST_USER_ID, query=None, max_results=2
        )

    @patch('app.routers.sync.IngestionService')
    def test_sync_setup_failure(self, mock_ingestion_cls):
        mock_ingestion_cls.side_effect = RuntimeError("Supabase is not configured")

        response = client.post("/sync", json={"user_id": TEST_USER_ID})

        assert response.status_code == 500
        assert "Supabase is not configured" in response.json()["detail"]

    def test_sync_status(self):
        response = client.get("/sync/status")

        assert response.status_code == 200
        data = response.json()
        assert set(data["config"]) == {"gmail_configured", "supabase_connected"}
        assert "search_query" in data


class TestOrdersEndpoint:

    @patch('app.routers.orders.get_supabase_client')
    def test_list_orders(self, mock_supabase):
        mock_response = Mock()
        mock_response.data = [{
            'id': 'order-1',
            'user_id': TEST_USER_ID,
            'order_number': '123-4567890-1234567',
            'vendor': 'Amazon',
            'total': '45.00',
            'items': [{'name': 'Wireless Mouse', 'quantity': 2, 'price': '22.50'}],
            'order_date': '2024-03-01T12:00:00+00:00',
            'status': 'pending',
        }]
        mock_response.count = 1

        mock_client = Mock()
        (mock_client.table.return_value.select.return_value.eq.return_value.eq.return_value
         .order.return_value.range.return_value.execute.return_value) = mock_response
        mock_supabase.return_value = mock_client

        response = client.get("/orders", params={"user_id": TEST_USER_ID, "vendor": "Amazon"})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["total_pages"] == 1
        assert data["orders"][0]["vendor"] == "Amazon"
        mock_client.table.return_value.select.assert_called_once_with('*', count='exact')

    @patch('app.routers.orders.get_supabase_client')
    def test_list_orders_error(self, mock_supabase):
        mock_supabase.side_effect = RuntimeError("Supabase is not configured")

        response = client.get("/orders", params={"user_id": TEST_USER_ID})

        assert response.status_code == 500

    def test_list_orders_requires_user(self):
        response = client.get("/orders")
        assert response.status_code == 422

    @patch('app.routers.orders.get_supabase_client')
    def test_list_inventory(self, mock_supabase):
        mock_response = Mock()
        mock_response.data = [{
            'id': 'inv-1',
            'user_id': TEST_USER_ID,
            'item_key': 'wireless-mouse',
            'name': 'Wireless Mouse',
            'quantity': 5,
            'last_order_price': '22.50',
            'order_references': ['A', 'B'],
            'last_updated': '2024-03-01T12:00:00+00:00',
        }]

        mock_client = Mock()
        (mock_client.table.return_value.select.return_value.eq.return_value
         .order.return_value.execute.return_value) = mock_response
        mock_supabase.return_value = mock_client

        response = client.get("/orders/inventory", params={"user_id": TEST_USER_ID})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["quantity"] == 5
        assert data["items"][0]["order_references"] == ['A', 'B']
