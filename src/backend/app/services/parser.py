"""
Order parser service for extracting structured purchase orders from email text.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, Optional

from app.models.order import (
    ConfidenceReport,
    OrderRecord,
    ParseOutcome,
    Rejected,
    UNKNOWN_ORDER_NUMBER,
    UNKNOWN_VENDOR,
)
from app.services.extractors import (
    extract_line_items,
    extract_order_number,
    extract_subject_item,
    extract_total,
)
from app.services.vendors import ItemStrategy, VendorProfile, detect_vendor, get_vendor_profile
from app.utils.scoring import confidence_for_record

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def rejection_reason(record: OrderRecord, profile: Optional[VendorProfile] = None) -> Optional[str]:
    """
    Explain why a record is not usable, or return None when it is.

    Vendors using subject inference do not need a positive total: their
    confirmations often carry no total we can read reliably.
    """
    if not record.order_number or record.order_number == UNKNOWN_ORDER_NUMBER:
        return "missing order number"

    subject_only = profile is not None and profile.item_strategy == ItemStrategy.SUBJECT
    if not subject_only and record.total <= 0:
        return "missing total"

    if not record.items:
        return "no items"

    return None


def validate_order(record: OrderRecord, profile: Optional[VendorProfile] = None) -> bool:
    """
    Vendor-sensitive acceptance check.

    Args:
        record: Fully built order record
        profile: Vendor profile; looked up from record.vendor when omitted

    Returns:
        True if the record should be handed to the order store
    """
    if profile is None:
        profile = get_vendor_profile(record.vendor)
    return rejection_reason(record, profile) is None


class OrderParser:
    """Rule-based order extraction engine."""

    def __init__(
        self,
        now: Optional[Callable[[], datetime]] = None,
        vendor_allowlist: Optional[Iterable[str]] = None
    ):
        """
        Args:
            now: Clock used for order_date; defaults to UTC now
            vendor_allowlist: Vendor names that earn high vendor confidence
        """
        self._now = now or _utcnow
        if vendor_allowlist is None:
            from app.config import settings
            vendor_allowlist = settings.VENDOR_ALLOWLIST
        self.vendor_allowlist = tuple(vendor_allowlist)

    def extract(self, sender: Optional[str], subject: Optional[str], body: Optional[str]) -> OrderRecord:
        """
        Run every extractor and build the (unvalidated) order record.

        Absent inputs are treated as empty text. Unresolved fields are rendered
        as the "UNKNOWN" order number, the "Unknown" vendor and a zero total.
        """
        sender = sender or ''
        subject = subject or ''
        body = body or ''

        profile = detect_vendor(sender)
        logger.debug("Detected vendor", extra={
            "vendor": profile.name if profile else UNKNOWN_VENDOR
        })

        order_number = extract_order_number(subject, body, profile)
        total = extract_total(subject, body, profile)

        if profile is not None and profile.item_strategy == ItemStrategy.SUBJECT:
            items = extract_subject_item(subject, total, profile)
        else:
            items = extract_line_items(body, profile)

        return OrderRecord(
            order_number=order_number or UNKNOWN_ORDER_NUMBER,
            vendor=profile.name if profile else UNKNOWN_VENDOR,
            total=total if total is not None else Decimal('0'),
            items=items,
            order_date=self._now(),
        )

    def parse(self, sender: Optional[str], subject: Optional[str], body: Optional[str]) -> ParseOutcome:
        """
        Extract and validate an order.

        Args:
            sender: Decoded From address
            subject: Decoded subject line
            body: Decoded plain-text body (HTML already stripped)

        Returns:
            OrderRecord when the extraction is usable, otherwise Rejected
        """
        record = self.extract(sender, subject, body)
        reason = rejection_reason(record, get_vendor_profile(record.vendor))

        if reason is not None:
            logger.warning("Order validation failed", extra={
                "reason": reason,
                "vendor": record.vendor,
                "order_number": record.order_number,
                "item_count": len(record.items)
            })
            return Rejected(reason=reason, draft=record)

        logger.info("Parsed order", extra={
            "order_number": record.order_number,
            "vendor": record.vendor,
            "total": str(record.total),
            "item_count": len(record.items)
        })
        return record

    def confidence(self, record: OrderRecord) -> ConfidenceReport:
        """Advisory confidence for an accepted or draft record."""
        return confidence_for_record(record, self.vendor_allowlist)
