"""
Vendor pattern registry and sender-based vendor detection.

Each vendor is plain configuration data: the domains its confirmation emails
come from and the regex groups used to pull order fields out of them. The
registry is built once at import time and never mutated, so it is shared
freely between concurrent parses.
"""

import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatternSpec:
    """A named regex pattern with example and notes for documentation."""
    name: str
    pattern: str
    example: str
    notes: Optional[str] = None
    flags: int = re.IGNORECASE
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern, self.flags))


class ItemStrategy(str, Enum):
    """How line items are assembled for a vendor."""
    LINE_SCAN = "line_scan"  # Scan body lines, flush once quantity and price are known
    SUBJECT = "subject"      # Single item inferred from the subject, price derived from total


@dataclass(frozen=True)
class VendorProfile:
    """Static extraction profile for one vendor."""
    name: str
    domains: Tuple[str, ...]
    order_number: Tuple[PatternSpec, ...] = ()
    total: Tuple[PatternSpec, ...] = ()
    item: Tuple[PatternSpec, ...] = ()
    quantity: Tuple[PatternSpec, ...] = ()
    price: Tuple[PatternSpec, ...] = ()
    item_strategy: ItemStrategy = ItemStrategy.LINE_SCAN


@dataclass(frozen=True)
class GenericPatterns:
    """Fallback patterns tried after any vendor-specific ones."""
    order_number: Tuple[PatternSpec, ...]
    total: Tuple[PatternSpec, ...]
    quantity: Tuple[PatternSpec, ...]
    price: Tuple[PatternSpec, ...]


AMAZON = VendorProfile(
    name='Amazon',
    domains=('amazon.com',),
    order_number=(
        PatternSpec(
            name='amazon_order_hash',
            pattern=r'Order #\s*(\d{3}-\d{7}-\d{7})',
            example='Order #123-4567890-1234567',
        ),
    ),
    total=(
        PatternSpec(
            name='amazon_order_total',
            pattern=r'Order Total:\s*\$\s*([\d,]+\.\d{2})',
            example='Order Total: $45.00',
        ),
    ),
    item=(
        PatternSpec(
            name='amazon_subject_qty_item',
            pattern=r'Your Amazon\.com order of (?P<quantity>\d+) x "(?P<name>[^"]+)"',
            example='Your Amazon.com order of 2 x "Wireless Mouse" has shipped',
        ),
        PatternSpec(
            name='amazon_subject_item',
            pattern=r'Your Amazon\.com order of "(?P<name>[^"]+)"',
            example='Your Amazon.com order of "USB-C Cable" has shipped',
            notes='No quantity group; quantity defaults to 1 unless the name carries an "N x" prefix',
        ),
    ),
    quantity=(
        PatternSpec(
            name='amazon_quantity',
            pattern=r'Quantity:\s*(\d+)',
            example='Quantity: 2',
        ),
    ),
    price=(
        PatternSpec(
            name='amazon_dollar_amount',
            pattern=r'\$\s*([\d,]+\.\d{2})',
            example='$22.50',
            flags=0,
        ),
    ),
    item_strategy=ItemStrategy.SUBJECT,
)

NIKE = VendorProfile(
    name='Nike',
    domains=('nike.com',),
    order_number=(
        PatternSpec(
            name='nike_order_number',
            pattern=r'Order Number:?\s*([A-Z0-9-]+)',
            example='Order Number: C01234567890',
        ),
        PatternSpec(
            name='nike_confirmation_number',
            pattern=r'Confirmation Number:?\s*([A-Z0-9-]+)',
            example='Confirmation Number: T1234-5678',
        ),
    ),
    total=(
        PatternSpec(
            name='nike_total',
            pattern=r'\bTotal:\s*\$\s*([\d,]+\.\d{2})',
            example='Total: $130.00',
            notes='Leading word boundary: "Subtotal: $110.00" precedes the total in Nike emails and must not be taken as it',
        ),
        PatternSpec(
            name='nike_amount',
            pattern=r'Amount:\s*\$\s*([\d,]+\.\d{2})',
            example='Amount: $130.00',
        ),
    ),
    item=(
        PatternSpec(
            name='nike_style',
            pattern=r'Style:\s*(.*?)(?=Size:|$)',
            example='Style: DV1234-001 Size: 10',
            flags=re.DOTALL,
        ),
    ),
    quantity=(
        PatternSpec(
            name='nike_quantity',
            pattern=r'Quantity:\s*(\d+)',
            example='Quantity: 1',
        ),
        PatternSpec(
            name='nike_qty',
            pattern=r'QTY:\s*(\d+)',
            example='QTY: 1',
        ),
    ),
    price=(
        PatternSpec(
            name='nike_price',
            pattern=r'Price:\s*\$\s*([\d,]+\.\d{2})',
            example='Price: $110.00',
        ),
        PatternSpec(
            name='nike_dollar_amount',
            pattern=r'\$\s*([\d,]+\.\d{2})',
            example='$110.00',
            flags=0,
        ),
    ),
    item_strategy=ItemStrategy.LINE_SCAN,
)

# Registry order matters: the first profile whose domain matches wins.
VENDOR_PROFILES: Tuple[VendorProfile, ...] = (AMAZON, NIKE)

# Order ids must contain at least one digit so that words like
# "Confirmation" are never captured as an id.
GENERIC_PATTERNS = GenericPatterns(
    order_number=(
        PatternSpec(
            name='hash_id',
            pattern=r'#\s*(?=[A-Z0-9-]*\d)([A-Z0-9-]{5,})',
            example='#A12345',
            notes='Digit lookahead: "Order Confirmation" must not yield the id "Confirmation"',
        ),
        PatternSpec(
            name='order_id',
            pattern=r'order[:\s#]+(?=[A-Z0-9-]*\d)([A-Z0-9-]{5,})',
            example='Order: 98765-AB',
            notes='Digit lookahead: the word after "Order" is only an id when it contains a digit',
        ),
        PatternSpec(
            name='confirmation_id',
            pattern=r'confirmation[:\s#]+(?=[A-Z0-9-]*\d)([A-Z0-9-]{5,})',
            example='Confirmation # XK-20931',
            notes='Digit lookahead: the word after "Confirmation" is only an id when it contains a digit',
        ),
    ),
    total=(
        PatternSpec(
            name='total_label',
            pattern=r'(?<!sub)total:?\s*\$\s*([\d,]+\.\d{2})',
            example='Total: $59.52',
            notes='(?<!sub) lookbehind: "Subtotal:" lines usually come first and would otherwise win',
        ),
        PatternSpec(
            name='amount_label',
            pattern=r'amount:?\s*\$\s*([\d,]+\.\d{2})',
            example='Amount: $59.52',
        ),
        PatternSpec(
            name='total_anywhere_on_line',
            pattern=r'(?<!sub)\btotal\b.*?\$\s*([\d,]+\.\d{2})',
            example='Total charged to Visa ending 1234 $59.52',
            notes='(?<!sub) lookbehind: "Subtotal ... $x" lines are not the order total',
        ),
        PatternSpec(
            name='bare_dollar_amount',
            pattern=r'\$\s*([\d,]+\.\d{2})',
            example='$59.52',
            notes='Last resort',
            flags=0,
        ),
    ),
    quantity=(
        PatternSpec(
            name='qty_label',
            pattern=r'qty:?\s*(\d+)',
            example='Qty: 3',
        ),
        PatternSpec(
            name='quantity_label',
            pattern=r'quantity:?\s*(\d+)',
            example='Quantity: 3',
        ),
        PatternSpec(
            name='count_times',
            pattern=r'\b(\d+)\s*x\b',
            example='2 x Widget',
        ),
        PatternSpec(
            name='multiplication_sign',
            pattern=r'×\s*(\d+)',
            example='Widget × 2',
        ),
    ),
    price=(
        PatternSpec(
            name='dollar_amount',
            pattern=r'\$\s*([\d,]+\.\d{2})',
            example='$9.99',
            flags=0,
        ),
        PatternSpec(
            name='price_label',
            pattern=r'price:?\s*\$\s*([\d,]+\.\d{2})',
            example='Price: $9.99',
        ),
    ),
)


def detect_vendor(sender_address: Optional[str]) -> Optional[VendorProfile]:
    """
    Map a sender address to a vendor profile.

    Matching is case-insensitive domain containment in registry order;
    'ORDERS@MAIL.AMAZON.COM' resolves to Amazon via 'amazon.com'.

    Args:
        sender_address: Raw From value (bare address or "Name <addr>")

    Returns:
        Matching VendorProfile or None
    """
    if not sender_address:
        return None

    sender = sender_address.lower()
    for profile in VENDOR_PROFILES:
        if any(domain in sender for domain in profile.domains):
            return profile

    return None


def get_vendor_profile(name: Optional[str]) -> Optional[VendorProfile]:
    """Look up a registered profile by vendor name."""
    if not name:
        return None
    for profile in VENDOR_PROFILES:
        if profile.name == name:
            return profile
    return None
