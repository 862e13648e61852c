"""
Order store backed by Supabase.
Idempotent order upserts, inventory accumulation and processed-message tracking.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set

from app.config import settings
from app.models.order import ConfidenceReport, LineItem, OrderRecord
from app.utils.supabase import get_supabase_client

logger = logging.getLogger(__name__)


class OrderStoreError(Exception):
    """Raised when an order or inventory write fails."""


def inventory_key(name: str) -> str:
    """
    Normalize an item name into its inventory key.

    Lower-cased, every run of non-alphanumeric characters collapsed into a
    single hyphen, no leading or trailing hyphens:
    'Wireless Mouse (Black)' -> 'wireless-mouse-black'.
    """
    key = re.sub(r'[^a-z0-9]+', '-', (name or '').lower())
    return key.strip('-')


def order_reference(order_number: str, vendor: str) -> str:
    """Identity of an order within inventory references: 'Nike:ORDER-1'."""
    return f"{vendor}:{order_number}"


def merge_items(items: Iterable[LineItem]) -> List[LineItem]:
    """
    Combine items of one order that share an inventory key.

    Quantities are summed; the name of the first item and the price of the
    last one are kept. Keys keep their first-seen order.
    """
    merged: Dict[str, LineItem] = {}
    for item in items:
        key = inventory_key(item.name)
        previous = merged.get(key)
        if previous is None:
            merged[key] = item
        else:
            merged[key] = LineItem(
                name=previous.name,
                quantity=previous.quantity + item.quantity,
                price=item.price,
            )
    return list(merged.values())


def _decimal_to_str(value) -> Optional[str]:
    """Supabase-py JSON encoder cannot serialize Decimal objects directly."""
    return str(value) if value is not None else None


class OrderStore:
    """Persists validated orders for a user account."""

    def __init__(self, supabase=None):
        self.supabase = supabase or get_supabase_client()
        self.orders_table = settings.ORDERS_TABLE
        self.inventory_table = settings.INVENTORY_TABLE
        self.processed_table = settings.PROCESSED_EMAILS_TABLE

    def get_processed_ids(self, user_id: str) -> Set[str]:
        """
        Get all message IDs that reached a terminal status for a user.

        One query per sync run instead of one per message.
        """
        try:
            response = self.supabase.table(self.processed_table).select('provider_message_id').eq(
                'user_id', user_id
            ).execute()

            message_ids = {row['provider_message_id'] for row in response.data}

            logger.debug("Fetched processed message IDs", extra={
                "user_id": user_id,
                "count": len(message_ids)
            })
            return message_ids

        except Exception:
            logger.error("Error fetching processed IDs", extra={"user_id": user_id}, exc_info=True)
            return set()

    def is_message_processed(self, user_id: str, message_id: str) -> bool:
        """Check whether a single message was already handled."""
        try:
            response = self.supabase.table(self.processed_table).select('id').eq(
                'user_id', user_id
            ).eq('provider_message_id', message_id).limit(1).execute()
            return len(response.data) > 0

        except Exception:
            logger.error("Failed to check message status", extra={
                "user_id": user_id,
                "message_id": message_id
            }, exc_info=True)
            return False

    def mark_message_processed(
        self,
        user_id: str,
        message_id: str,
        status: str,
        order_number: Optional[str] = None,
        failure_reason: Optional[str] = None
    ) -> bool:
        """
        Record the terminal status of a message (UPSERT).

        Args:
            user_id: Account the message belongs to
            message_id: Gmail message ID
            status: 'success', 'no_order', 'skipped' or 'failed'
            order_number: Stored order number on success
            failure_reason: Rejection reason or error text

        Returns:
            True if successful, False otherwise
        """
        data = {
            'user_id': user_id,
            'provider_message_id': message_id,
            'provider': 'gmail',
            'status': status,
        }
        if order_number:
            data['order_number'] = order_number
        if failure_reason:
            data['failure_reason'] = failure_reason

        try:
            self.supabase.table(self.processed_table).upsert(
                data,
                on_conflict='user_id,provider_message_id'
            ).execute()

            logger.debug("Marked message with final status", extra={
                "message_id": message_id,
                "user_id": user_id,
                "status": status
            })
            return True

        except Exception:
            logger.error("Error marking message as processed", extra={
                "message_id": message_id,
                "user_id": user_id,
                "status": status
            }, exc_info=True)
            return False

    def store_order(
        self,
        user_id: str,
        record: OrderRecord,
        source_message_id: Optional[str] = None,
        confidence: Optional[ConfidenceReport] = None
    ) -> Optional[str]:
        """
        Upsert an order keyed by (user_id, order_number, vendor) and apply its items to inventory.

        Inventory is applied once per order, identified by vendor and order
        number. Items of the order that share an inventory key are summed.

        Returns:
            Stored order ID, or None if the store returned no row

        Raises:
            OrderStoreError: if the order or inventory write fails
        """
        order_data = {
            'user_id': user_id,
            'order_number': record.order_number,
            'vendor': record.vendor,
            'total': _decimal_to_str(record.total),
            'items': [
                {
                    'name': item.name,
                    'quantity': item.quantity,
                    'price': _decimal_to_str(item.price)
                }
                for item in record.items
            ],
            'order_date': record.order_date.isoformat(),
            'status': 'pending',
            'source_message_id': source_message_id,
            'confidence': confidence.model_dump() if confidence else None,
        }

        try:
            response = self.supabase.table(self.orders_table).upsert(
                order_data,
                on_conflict='user_id,order_number,vendor'
            ).execute()
        except Exception as e:
            logger.error("Failed to store order", extra={
                "user_id": user_id,
                "order_number": record.order_number
            }, exc_info=True)
            raise OrderStoreError(f"Failed to store order {record.order_number}: {e}") from e

        reference = order_reference(record.order_number, record.vendor)
        if record.items and not self.inventory_applied(user_id, reference):
            for item in merge_items(record.items):
                self.apply_to_inventory(user_id, reference, item)
        elif record.items:
            logger.debug("Inventory already includes order", extra={
                "user_id": user_id,
                "order_reference": reference
            })

        logger.info("Stored order", extra={
            "user_id": user_id,
            "order_number": record.order_number,
            "vendor": record.vendor,
            "item_count": len(record.items)
        })

        if response.data:
            return response.data[0].get('id')
        return None

    def inventory_applied(self, user_id: str, reference: str) -> bool:
        """
        Check whether an order's items were already added to inventory.

        Raises:
            OrderStoreError: if the lookup fails
        """
        try:
            response = self.supabase.table(self.inventory_table).select('id').eq(
                'user_id', user_id
            ).contains('order_references', [reference]).limit(1).execute()
            return len(response.data) > 0

        except Exception as e:
            logger.error("Failed to check inventory references", extra={
                "user_id": user_id,
                "order_reference": reference
            }, exc_info=True)
            raise OrderStoreError(f"Failed to check inventory for {reference}: {e}") from e

    def apply_to_inventory(self, user_id: str, reference: str, item: LineItem) -> Dict:
        """
        Add an item's quantity to the inventory entry for its normalized name.

        Callers apply each order once (see inventory_applied); this method
        always adds the quantity and records the order reference.

        Returns:
            The inventory row as written

        Raises:
            OrderStoreError: if the inventory read or write fails
        """
        key = inventory_key(item.name)

        try:
            response = self.supabase.table(self.inventory_table).select('*').eq(
                'user_id', user_id
            ).eq('item_key', key).limit(1).execute()

            existing = response.data[0] if response.data else None
            current_quantity = int(existing.get('quantity') or 0) if existing else 0
            references = list(existing.get('order_references') or []) if existing else []
            if reference not in references:
                references.append(reference)

            row = {
                'user_id': user_id,
                'item_key': key,
                'name': item.name,
                'quantity': current_quantity + item.quantity,
                'last_order_price': _decimal_to_str(item.price),
                'order_references': references,
                'last_updated': datetime.now(timezone.utc).isoformat(),
            }

            self.supabase.table(self.inventory_table).upsert(
                row,
                on_conflict='user_id,item_key'
            ).execute()

            return row

        except Exception as e:
            logger.error("Failed to update inventory", extra={
                "user_id": user_id,
                "item_key": key
            }, exc_info=True)
            raise OrderStoreError(f"Failed to update inventory for {key}: {e}") from e
