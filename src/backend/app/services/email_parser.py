"""
Email-level parser with forwarding awareness, whitelist filtering and confidence.

Where OrderParser produces a validated order, EmailParser describes what an
email looks like: who really sent it, which item lines were partially
recognised and how confident each field is. The result is advisory and is
used for triage, not for acceptance.
"""

import re
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, Iterable, List, Optional

from app.models.order import ParsedEmail, ParsedItem
from app.services.email import extract_sender_address
from app.services.extractors import extract_order_number, extract_price, extract_quantity, extract_total
from app.services.vendors import VendorProfile, detect_vendor
from app.utils.scoring import calculate_confidence

logger = logging.getLogger(__name__)

FORWARD_PREFIXES = ('fwd:', 'fw:')

ITEM_SECTION_MARKERS = ('items:', 'products:', 'order details:')

ORIGINAL_SENDER_PATTERNS = [
    re.compile(r'From:\s*([^\n<]+)?(?:<(.+?)>)?', re.IGNORECASE),
    re.compile(r'Sender:\s*([^\n<]+)?(?:<(.+?)>)?', re.IGNORECASE),
]

SKU_RE = re.compile(r'\b(?:sku|item\s*#|style)[:\s#]*([A-Z0-9-]{3,})', re.IGNORECASE)


@dataclass
class WhitelistConfig:
    """Terms and addresses that mark an email as a likely order confirmation."""
    subjects: List[str] = field(default_factory=lambda: ['order', 'confirmation', 'invoice'])
    senders: List[str] = field(default_factory=list)
    forwarders: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=lambda: ['order', 'purchase'])

    @classmethod
    def from_settings(cls) -> 'WhitelistConfig':
        from app.config import settings
        return cls(
            subjects=list(settings.WHITELIST_SUBJECTS),
            senders=list(settings.WHITELIST_SENDERS),
            forwarders=list(settings.WHITELIST_FORWARDERS),
            keywords=list(settings.WHITELIST_KEYWORDS),
        )


def is_forwarded_subject(subject: Optional[str]) -> bool:
    lowered = (subject or '').lower()
    return any(prefix in lowered for prefix in FORWARD_PREFIXES)


def extract_original_sender(body: Optional[str]) -> Optional[str]:
    """
    Recover the original sender from a forwarded body.

    The bracketed address is preferred over the display name.
    """
    if not body:
        return None

    for pattern in ORIGINAL_SENDER_PATTERNS:
        match = pattern.search(body)
        if match:
            sender = match.group(2) or match.group(1)
            if sender and sender.strip():
                return sender.strip()

    return None


def extract_item_candidates(body: Optional[str], profile: Optional[VendorProfile] = None) -> List[ParsedItem]:
    """
    Collect partially resolved item lines from the items section.

    Scanning starts after the first "Items:", "Products:" or "Order details:"
    line. Every non-empty line with a quantity or a price becomes one item;
    missing fields stay None.
    """
    items: List[ParsedItem] = []
    in_items_section = False

    for line in (body or '').split('\n'):
        lowered = line.lower()
        if any(marker in lowered for marker in ITEM_SECTION_MARKERS):
            in_items_section = True
            continue

        if not in_items_section or not line.strip():
            continue

        quantity = extract_quantity(line, profile)
        price = extract_price(line, profile)

        if quantity is None and price is None:
            continue

        sku_match = SKU_RE.search(line)
        items.append(ParsedItem(
            sku=sku_match.group(1) if sku_match else None,
            description=line.strip(),
            quantity=quantity,
            price=price,
        ))

    return items


def _get_header(headers: Iterable[Dict], name: str) -> str:
    for header in headers:
        if header.get('name', '').lower() == name.lower():
            return header.get('value') or ''
    return ''


def _received_date(date_header: str, message: Dict) -> Optional[datetime]:
    if date_header:
        try:
            return parsedate_to_datetime(date_header)
        except (TypeError, ValueError):
            logger.debug("Unparseable Date header", extra={"date_header": date_header})

    if 'internalDate' in message:
        try:
            return datetime.fromtimestamp(int(message['internalDate']) / 1000.0, tz=timezone.utc)
        except (TypeError, ValueError):
            return None

    return None


class EmailParser:
    """Describe an order email with forwarding context and confidence."""

    def __init__(
        self,
        whitelist: Optional[WhitelistConfig] = None,
        vendor_allowlist: Optional[Iterable[str]] = None
    ):
        self.whitelist = whitelist or WhitelistConfig()
        if vendor_allowlist is None:
            from app.config import settings
            vendor_allowlist = settings.VENDOR_ALLOWLIST
        self.vendor_allowlist = tuple(vendor_allowlist)

    def is_order_candidate(self, subject: Optional[str], sender: Optional[str]) -> bool:
        """
        Whitelist pre-filter applied before running the order parser.

        True when the subject carries a whitelisted term or keyword, the
        sender is whitelisted, or a whitelisted forwarder sent it on.
        """
        lowered = (subject or '').lower()
        terms = list(self.whitelist.subjects) + list(self.whitelist.keywords)
        if any(term.lower() in lowered for term in terms):
            return True

        address = extract_sender_address(sender).lower()
        if address and address in {s.lower() for s in self.whitelist.senders}:
            return True

        if is_forwarded_subject(subject) and address in {f.lower() for f in self.whitelist.forwarders}:
            return True

        return False

    def parse_message(self, message: Dict, body: Optional[str] = None) -> ParsedEmail:
        """
        Parse a Gmail API message.

        Args:
            message: Full Gmail message object (headers are read from its payload)
            body: Decoded, tag-free body text from the mail source

        Returns:
            ParsedEmail with forwarding context, partial items and confidence
        """
        headers = (message.get('payload') or {}).get('headers') or []
        subject = _get_header(headers, 'Subject')
        sender = _get_header(headers, 'From')
        date_header = _get_header(headers, 'Date')

        return self.parse(
            sender=sender,
            subject=subject,
            body=body or '',
            message_id=message.get('id'),
            received_date=_received_date(date_header, message),
        )

    def parse(
        self,
        sender: Optional[str],
        subject: Optional[str],
        body: Optional[str],
        message_id: Optional[str] = None,
        received_date: Optional[datetime] = None
    ) -> ParsedEmail:
        """Parse already-decoded email parts."""
        sender = sender or ''
        subject = subject or ''
        body = body or ''

        is_forwarded = is_forwarded_subject(subject)
        sender_address = extract_sender_address(sender)

        if is_forwarded:
            original_sender = extract_original_sender(body)
        else:
            original_sender = sender_address or None

        # Vendor detection follows the original sender for forwarded mail
        profile = detect_vendor(original_sender or sender)
        vendor = profile.name if profile else original_sender

        order_number = extract_order_number(subject, body, profile)
        total = extract_total(subject, body, profile)
        items = extract_item_candidates(body, profile)

        allowlist = set(self.vendor_allowlist) | set(self.whitelist.senders)
        confidence = calculate_confidence(order_number, vendor, items, allowlist)

        parsed = ParsedEmail(
            message_id=message_id,
            subject=subject,
            sender=sender,
            received_date=received_date,
            is_forwarded=is_forwarded,
            original_sender=original_sender,
            order_number=order_number,
            vendor=vendor,
            items=items,
            total=total,
            confidence=confidence,
        )

        logger.info("Parsed email", extra={
            "message_id": message_id,
            "order_number": order_number,
            "item_count": len(items),
            "overall_confidence": confidence.overall
        })

        return parsed
