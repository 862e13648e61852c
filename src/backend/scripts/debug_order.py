#!/usr/bin/env python3
"""
Debug script to see what the order parser extracts from a saved email.

Usage:
    python scripts/debug_order.py --sender auto-confirm@amazon.com \
        --subject 'Your Amazon.com order of 2 x "Wireless Mouse" has shipped' \
        --body-file email.txt
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.models.order import Rejected
from app.services.email_parser import EmailParser
from app.services.parser import OrderParser
from app.utils.money import format_money


def main():
    arg_parser = argparse.ArgumentParser(description="Run the order parser on one email")
    arg_parser.add_argument('--sender', default='', help='From address')
    arg_parser.add_argument('--subject', default='', help='Subject line')
    arg_parser.add_argument('--body-file', help='Path to the decoded plain-text body')
    args = arg_parser.parse_args()

    body = ''
    if args.body_file:
        with open(args.body_file, encoding='utf-8') as f:
            body = f.read()

    parser = OrderParser()
    outcome = parser.parse(args.sender, args.subject, body)
    record = outcome.draft if isinstance(outcome, Rejected) else outcome

    print("=" * 60)
    print("ORDER EXTRACTION")
    print("=" * 60)
    print(f"Vendor: {record.vendor}")
    print(f"Order Number: {record.order_number}")
    print(f"Total: {format_money(record.total)}")
    print(f"Items: {len(record.items)}")
    for item in record.items:
        print(f"  - {item.name} x{item.quantity} @ {format_money(item.price)}")

    if isinstance(outcome, Rejected):
        print(f"\n✗ Rejected: {outcome.reason}")
    else:
        print("\n✓ Accepted")

    confidence = parser.confidence(record)
    print(f"\nConfidence: order_number={confidence.order_number} vendor={confidence.vendor} "
          f"items={confidence.items} overall={confidence.overall}")

    parsed_email = EmailParser().parse(args.sender, args.subject, body)
    print("\n" + "=" * 60)
    print("EMAIL VIEW")
    print("=" * 60)
    print(f"Forwarded: {parsed_email.is_forwarded}")
    print(f"Original sender: {parsed_email.original_sender}")
    print(f"Item lines: {len(parsed_email.items)}")
    print(f"Overall confidence: {parsed_email.confidence.overall}")

    return 0 if not isinstance(outcome, Rejected) else 1


if __name__ == '__main__':
    sys.exit(main())
