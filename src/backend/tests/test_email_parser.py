"""
Test suite for the email-level parser.

Tests cover:
- Forwarded email detection and original sender recovery
- Item section scanning with partial items
- Whitelist pre-filter
- Gmail message headers
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.services.email_parser import (
    EmailParser,
    WhitelistConfig,
    extract_item_candidates,
    extract_original_sender,
    is_forwarded_subject,
)

FORWARDED_BODY = """---------- Forwarded message ---------
From: Amazon.com <auto-confirm@amazon.com>
Date: Mon, 4 Mar 2024 10:00:00 -0800
Subject: Your Amazon.com order of 2 x "Wireless Mouse" has shipped

Order #123-4567890-1234567
Order Total: $45.00
"""


@pytest.fixture
def email_parser():
    return EmailParser(whitelist=WhitelistConfig(), vendor_allowlist=["Amazon", "Nike"])


class TestForwarding:

    @pytest.mark.parametrize("subject,expected", [
        ("Fwd: Your order", True),
        ("FW: Invoice 42", True),
        ("Your order", False),
        (None, False),
    ])
    def test_is_forwarded_subject(self, subject, expected):
        assert is_forwarded_subject(subject) is expected

    def test_bracketed_address_preferred(self):
        assert extract_original_sender(FORWARDED_BODY) == "auto-confirm@amazon.com"

    def test_display_name_only(self):
        assert extract_original_sender("From: Corner Bakery\nThanks") == "Corner Bakery"

    def test_sender_label(self):
        assert extract_original_sender("Sender: <shop@example.org>") == "shop@example.org"

    def test_no_original_sender(self):
        assert extract_original_sender("Just some text") is None
        assert extract_original_sender(None) is None

    def test_forwarded_vendor_follows_original_sender(self, email_parser):
        parsed = email_parser.parse(
            "me@example.org",
            'Fwd: Your Amazon.com order of 2 x "Wireless Mouse" has shipped',
            FORWARDED_BODY
        )

        assert parsed.is_forwarded is True
        assert parsed.original_sender == "auto-confirm@amazon.com"
        assert parsed.vendor == "Amazon"
        assert parsed.order_number == "123-4567890-1234567"
        assert parsed.total == Decimal("45.00")
        assert parsed.confidence.vendor == 0.9


class TestItemCandidates:

    def test_lines_after_marker_only(self):
        body = "Price: $99.00\nItems:\nSKU: AB-123 Qty: 2 $4.00\nQty: 1\nThank you\n$3.50"
        items = extract_item_candidates(body)

        assert len(items) == 3
        assert items[0].sku == "AB-123"
        assert items[0].quantity == 2
        assert items[0].price == Decimal("4.00")
        assert items[1].quantity == 1
        assert items[1].price is None
        assert items[2].quantity is None
        assert items[2].price == Decimal("3.50")

    def test_no_marker(self):
        assert extract_item_candidates("Qty: 2 $4.00") == []

    def test_partial_items_lower_confidence(self, email_parser):
        body = "Order #A12345\nItems:\nQty: 3\nPrice: $9.99"
        parsed = email_parser.parse("shop@example.org", "Your order", body)

        assert len(parsed.items) == 2
        assert isinstance(parsed.items, tuple)
        assert parsed.confidence.items == 0.0
        assert parsed.vendor == "shop@example.org"
        assert parsed.confidence.vendor == 0.5


class TestWhitelist:

    def test_subject_terms(self, email_parser):
        assert email_parser.is_order_candidate("Your Order Confirmation", "x@example.org")
        assert email_parser.is_order_candidate("Purchase receipt", "x@example.org")
        assert not email_parser.is_order_candidate("Weekly newsletter", "x@example.org")

    def test_whitelisted_sender(self):
        parser = EmailParser(
            whitelist=WhitelistConfig(subjects=[], keywords=[], senders=["Shop@Example.org"]),
            vendor_allowlist=[]
        )
        assert parser.is_order_candidate("Hi there", "Shop <shop@example.org>")
        assert not parser.is_order_candidate("Hi there", "other@example.org")

    def test_whitelisted_forwarder(self):
        parser = EmailParser(
            whitelist=WhitelistConfig(subjects=[], keywords=[], forwarders=["me@example.org"]),
            vendor_allowlist=[]
        )
        assert parser.is_order_candidate("Fwd: receipt", "me@example.org")
        assert not parser.is_order_candidate("Lunch?", "me@example.org")

    def test_whitelisted_sender_counts_as_allowlisted_vendor(self):
        parser = EmailParser(
            whitelist=WhitelistConfig(senders=["shop@example.org"]),
            vendor_allowlist=[]
        )
        parsed = parser.parse("shop@example.org", "Your order", "Order #A12345")

        assert parsed.confidence.vendor == 0.9


class TestParseMessage:

    def test_headers_and_date(self, email_parser):
        message = {
            'id': 'msg-1',
            'internalDate': '1709575200000',
            'payload': {
                'headers': [
                    {'name': 'From', 'value': 'Amazon.com <auto-confirm@amazon.com>'},
                    {'name': 'Subject', 'value': 'Your Amazon.com order of "USB-C Cable" has shipped'},
                    {'name': 'Date', 'value': 'Mon, 4 Mar 2024 10:00:00 -0800'},
                ]
            }
        }
        parsed = email_parser.parse_message(message, body="Order #111-2222222-3333333")

        assert parsed.message_id == 'msg-1'
        assert parsed.vendor == "Amazon"
        assert parsed.original_sender == "auto-confirm@amazon.com"
        assert parsed.received_date == datetime(2024, 3, 4, 18, 0, tzinfo=timezone.utc)

    def test_falls_back_to_internal_date(self, email_parser):
        message = {'id': 'msg-2', 'internalDate': '1709575200000', 'payload': {'headers': []}}
        parsed = email_parser.parse_message(message)

        assert parsed.received_date == datetime.fromtimestamp(1709575200, tz=timezone.utc)
        assert parsed.order_number is None
