"""
Field extractors and item assembly strategies for order emails.

Every extractor builds its candidate list as vendor patterns followed by the
generic fallbacks and returns the first capture it finds. Unresolved fields
come back as None; the order parser decides how to render them.
"""

import re
import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from app.models.order import LineItem
from app.services.vendors import GENERIC_PATTERNS, PatternSpec, VendorProfile
from app.utils.money import parse_money, round_price

logger = logging.getLogger(__name__)

# "2 x Wireless Mouse" or '2 x "Wireless Mouse"' inside a captured item name
NESTED_QUANTITY_RE = re.compile(r'^(\d+)\s*x\s*"?(.+?)"?$', re.IGNORECASE)

ZERO = Decimal('0')


def _layered(vendor: Sequence[PatternSpec], generic: Sequence[PatternSpec]) -> Tuple[PatternSpec, ...]:
    """Vendor patterns first, generic fallbacks after."""
    return tuple(vendor) + tuple(generic)


def _first_capture(specs: Iterable[PatternSpec], texts: Sequence[str]) -> Optional[Tuple[str, str]]:
    """
    Try each pattern against each text in order.

    Returns:
        (pattern_name, captured_text) for the first hit, or None
    """
    for spec in specs:
        for text in texts:
            if not text:
                continue
            match = spec.compiled.search(text)
            if match:
                captured = match.group(1) if match.groups() else match.group(0)
                return spec.name, captured
    return None


def extract_order_number(
    subject: str,
    body: str,
    profile: Optional[VendorProfile] = None
) -> Optional[str]:
    """
    Extract the order number, checking the subject before the body for each pattern.

    Returns:
        Order number string or None if nothing matched
    """
    specs = _layered(profile.order_number if profile else (), GENERIC_PATTERNS.order_number)
    hit = _first_capture(specs, (subject, body))
    if hit is None:
        logger.debug("No order number found")
        return None

    pattern_name, value = hit
    value = value.strip()
    logger.debug("Order number matched", extra={"pattern": pattern_name, "order_number": value})
    return value or None


def extract_total(
    subject: str,
    body: str,
    profile: Optional[VendorProfile] = None
) -> Optional[Decimal]:
    """
    Extract the order total as a Decimal.

    Thousands separators are stripped before parsing. A capture that does not
    parse is skipped and the next pattern is tried.

    Returns:
        Total amount or None if unresolved
    """
    specs = _layered(profile.total if profile else (), GENERIC_PATTERNS.total)

    for spec in specs:
        hit = _first_capture((spec,), (subject, body))
        if hit is None:
            continue
        amount = parse_money(hit[1])
        if amount is None:
            continue
        logger.debug("Total matched", extra={"pattern": spec.name, "total": str(amount)})
        return amount

    logger.debug("No total found")
    return None


def extract_quantity(line: str, profile: Optional[VendorProfile] = None) -> Optional[int]:
    """Extract a positive quantity from a single line."""
    specs = _layered(profile.quantity if profile else (), GENERIC_PATTERNS.quantity)
    hit = _first_capture(specs, (line,))
    if hit is None:
        return None
    try:
        quantity = int(hit[1])
    except ValueError:
        return None
    return quantity if quantity > 0 else None


def extract_price(line: str, profile: Optional[VendorProfile] = None) -> Optional[Decimal]:
    """Extract a non-negative price from a single line."""
    specs = _layered(profile.price if profile else (), GENERIC_PATTERNS.price)
    hit = _first_capture(specs, (line,))
    if hit is None:
        return None
    return parse_money(hit[1])


def extract_line_items(body: str, profile: Optional[VendorProfile] = None) -> List[LineItem]:
    """
    Assemble items by scanning the body line by line.

    Quantity and price are looked up independently on every line and merged
    into a running candidate. Once both are known and the price is non-zero
    the item is emitted, named after the line that completed it, and the
    candidate is reset. A quantity on one line and a price on a later line
    therefore form one item; a "$0.00" line such as free shipping never does.

    Args:
        body: Decoded plain-text email body
        profile: Detected vendor profile, if any

    Returns:
        Items in body order
    """
    items: List[LineItem] = []
    quantity: Optional[int] = None
    price: Optional[Decimal] = None

    for line in (body or '').split('\n'):
        line_price = extract_price(line, profile)
        line_quantity = extract_quantity(line, profile)

        if line_price is None and line_quantity is None:
            continue

        if line_price is not None:
            price = line_price
        if line_quantity is not None:
            quantity = line_quantity

        # A zero price stays pending until a later line supplies a real one
        if price is not None and price > ZERO and quantity is not None:
            items.append(LineItem(name=line.strip(), quantity=quantity, price=price))
            quantity = None
            price = None

    return items


def extract_subject_item(
    subject: str,
    total: Optional[Decimal],
    profile: VendorProfile
) -> List[LineItem]:
    """
    Infer a single item from a confirmation subject line.

    The vendor's item pattern supplies the name and, when it has one, the
    quantity (default 1). A name that itself starts with "N x " overrides
    both. The unit price is derived from the order total.

    Args:
        subject: Decoded subject line
        total: Extracted order total, None when unresolved
        profile: Vendor profile using subject inference

    Returns:
        A list with exactly one item, or empty when no pattern matches
    """
    if not subject:
        return []

    for spec in profile.item:
        match = spec.compiled.search(subject)
        if not match:
            continue

        groups = match.groupdict()
        name = groups.get('name')
        if name is None:
            name = match.group(1) if match.groups() else match.group(0)

        quantity = 1
        if groups.get('quantity'):
            quantity = int(groups['quantity'])

        nested = NESTED_QUANTITY_RE.match(name.strip())
        if nested:
            quantity = int(nested.group(1))
            name = nested.group(2)

        name = name.strip()
        if quantity <= 0 or not name:
            logger.debug("Subject item unusable", extra={"pattern": spec.name, "quantity": quantity})
            return []

        if total is not None and total > ZERO:
            price = round_price(total / Decimal(quantity))
        else:
            price = round_price(ZERO)

        logger.debug("Subject item matched", extra={
            "pattern": spec.name,
            "item": name,
            "quantity": quantity,
            "price": str(price)
        })
        return [LineItem(name=name, quantity=quantity, price=price)]

    return []
