"""
Confidence scoring for parsed order emails.

Each function returns a score from 0.0 (no evidence) to 1.0 (best).
Scores are advisory: they are stored alongside orders for triage and never
decide whether an order is accepted.
"""

from typing import Iterable, Optional, Sequence

from app.models.order import ConfidenceReport, LineItem, ParsedItem, UNKNOWN_ORDER_NUMBER, UNKNOWN_VENDOR

__all__ = [
    'score_order_number', 'score_vendor', 'score_items',
    'calculate_confidence', 'confidence_for_record',
]

# Order ids at least this long are considered well-formed
ORDER_NUMBER_MIN_LENGTH = 5

ORDER_NUMBER_SCORES = {
    'long': 0.8,
    'short': 0.4,
}

VENDOR_SCORES = {
    'allowlisted': 0.9,
    'other': 0.5,
}


def score_order_number(order_number: Optional[str]) -> float:
    """Longer ids are more likely to be real order numbers."""
    if not order_number or order_number == UNKNOWN_ORDER_NUMBER:
        return 0.0
    if len(order_number) >= ORDER_NUMBER_MIN_LENGTH:
        return ORDER_NUMBER_SCORES['long']
    return ORDER_NUMBER_SCORES['short']


def score_vendor(vendor: Optional[str], allowlist: Iterable[str] = ()) -> float:
    """Allow-listed vendors score higher than anything else we could name."""
    if not vendor or vendor == UNKNOWN_VENDOR:
        return 0.0
    if vendor in set(allowlist):
        return VENDOR_SCORES['allowlisted']
    return VENDOR_SCORES['other']


def _is_complete(item) -> bool:
    if isinstance(item, LineItem):
        return bool(item.quantity and item.price and item.name)
    return bool(item.quantity and item.price and item.description)


def score_items(items: Sequence) -> float:
    """
    Fraction of items with quantity, price and description all populated.

    Accepts LineItem or ParsedItem values. A zero price counts as missing.
    """
    if not items:
        return 0.0
    complete = sum(1 for item in items if _is_complete(item))
    return complete / len(items)


def calculate_confidence(
    order_number: Optional[str],
    vendor: Optional[str],
    items: Sequence,
    allowlist: Iterable[str] = ()
) -> ConfidenceReport:
    """
    Build the per-field confidence report.

    Overall confidence is the unweighted mean of the three field scores.
    """
    order_score = score_order_number(order_number)
    vendor_score = score_vendor(vendor, allowlist)
    items_score = score_items(items)

    overall = (order_score + vendor_score + items_score) / 3

    return ConfidenceReport(
        order_number=round(order_score, 2),
        vendor=round(vendor_score, 2),
        items=round(items_score, 2),
        overall=round(overall, 2),
    )


def confidence_for_record(record, allowlist: Iterable[str] = ()) -> ConfidenceReport:
    """Confidence report for an OrderRecord (accepted or draft)."""
    return calculate_confidence(record.order_number, record.vendor, record.items, allowlist)
