"""
Order ingestion worker that combines the mail source, order parser and order store.
Each message is processed independently; one bad email never stops a sync run.
"""

import logging
from typing import Dict, Optional

from app.config import settings
from app.models.order import OrderRecord, Rejected
from app.services.email import EmailService
from app.services.email_parser import EmailParser, WhitelistConfig
from app.services.order_store import OrderStore
from app.services.parser import OrderParser

logger = logging.getLogger(__name__)


class IngestionService:
    """Service for turning order confirmation emails into stored orders."""

    def __init__(
        self,
        email_service: Optional[EmailService] = None,
        order_store: Optional[OrderStore] = None,
        parser: Optional[OrderParser] = None,
        email_parser: Optional[EmailParser] = None
    ):
        """Initialize ingestion service; collaborators default to live clients."""
        self.email_service = email_service or EmailService()
        self.order_store = order_store or OrderStore()
        self.parser = parser or OrderParser()
        self.email_parser = email_parser or EmailParser(whitelist=WhitelistConfig.from_settings())

    def process_message(self, message: Dict, user_id: str) -> Dict:
        """
        Process a single fetched message.

        State transitions: success | no_order | skipped | failed

        Args:
            message: Full Gmail message object
            user_id: Account the message belongs to

        Returns:
            Dictionary with processing results
        """
        message_id = message.get('id', '')
        result = {
            'message_id': message_id,
            'status': 'failed',
            'order_number': None,
            'order_id': None,
            'reason': None,
            'confidence': None,
        }

        try:
            metadata = self.email_service.extract_email_metadata(message)
            sender = metadata.get('from', '')
            subject = metadata.get('subject', '')

            if not self.email_parser.is_order_candidate(subject, sender):
                logger.debug("Skipping non-order email", extra={
                    "message_id": message_id,
                    "subject": subject
                })
                result['status'] = 'skipped'
                result['reason'] = 'not an order email'
                self.order_store.mark_message_processed(
                    user_id, message_id, 'skipped', failure_reason=result['reason']
                )
                return result

            body = self.email_service.normalize_body(message)

            logger.info("Processing email", extra={
                "message_id": message_id,
                "user_id": user_id,
                "subject": subject or 'No subject'
            })

            parsed_email = self.email_parser.parse_message(message, body=body)
            result['confidence'] = parsed_email.confidence.model_dump()

            # Forwarded mail is attributed to whoever originally sent it
            sender_for_parse = parsed_email.original_sender if parsed_email.is_forwarded else sender
            outcome = self.parser.parse(sender_for_parse or sender, subject, body)

            if isinstance(outcome, Rejected):
                logger.warning("Failed to parse email", extra={
                    "message_id": message_id,
                    "subject": subject,
                    "reason": outcome.reason
                })
                result['status'] = 'no_order'
                result['reason'] = outcome.reason
                self.order_store.mark_message_processed(
                    user_id, message_id, 'no_order', failure_reason=outcome.reason
                )
                return result

            record: OrderRecord = outcome
            confidence = self.parser.confidence(record)
            result['confidence'] = confidence.model_dump()

            result['order_id'] = self.order_store.store_order(
                user_id, record, source_message_id=message_id, confidence=confidence
            )
            result['order_number'] = record.order_number
            result['status'] = 'success'

            self.order_store.mark_message_processed(
                user_id, message_id, 'success', order_number=record.order_number
            )

            logger.info("Successfully parsed order", extra={
                "message_id": message_id,
                "order_number": record.order_number,
                "vendor": record.vendor,
                "item_count": len(record.items)
            })
            return result

        except Exception as e:
            error_msg = f"Error processing email: {str(e)}"
            logger.error(error_msg, extra={
                "message_id": message_id,
                "user_id": user_id
            }, exc_info=True)

            result['status'] = 'failed'
            result['reason'] = error_msg
            self.order_store.mark_message_processed(
                user_id, message_id, 'failed', failure_reason=error_msg
            )
            return result

    def sync_orders(
        self,
        user_id: str,
        query: Optional[str] = None,
        max_results: Optional[int] = None
    ) -> Dict:
        """
        Fetch, parse and store order emails for a user.

        Args:
            user_id: Account to sync
            query: Gmail search query (defaults to settings.ORDER_SEARCH_QUERY)
            max_results: Per-run cap (defaults to settings.MAX_EMAILS_PER_RUN)

        Returns:
            Summary of sync operation
        """
        query = query or settings.ORDER_SEARCH_QUERY
        max_results = max_results or settings.MAX_EMAILS_PER_RUN

        summary = {
            'messages_checked': 0,
            'messages_processed': 0,
            'orders_created': 0,
            'orders': [],
            'rejected': [],
            'errors': []
        }

        try:
            processed_ids = self.order_store.get_processed_ids(user_id)
            messages = self.email_service.search_messages(query, max_results=max_results)

            summary['messages_checked'] = len(messages)
            logger.info("Starting order sync", extra={
                "user_id": user_id,
                "found": len(messages),
                "already_processed": len(processed_ids)
            })

            for message in messages:
                if message.get('id') in processed_ids:
                    continue

                result = self.process_message(message, user_id)
                summary['messages_processed'] += 1

                if result['status'] == 'success':
                    summary['orders_created'] += 1
                    summary['orders'].append(result['order_number'])
                elif result['status'] == 'no_order':
                    summary['rejected'].append({
                        'message_id': result['message_id'],
                        'reason': result['reason']
                    })
                elif result['status'] == 'failed':
                    summary['errors'].append(result['reason'])

            logger.info("Order sync complete", extra={
                "user_id": user_id,
                "messages_checked": summary['messages_checked'],
                "messages_processed": summary['messages_processed'],
                "orders_created": summary['orders_created']
            })

            return summary

        except Exception as e:
            error_msg = f"Sync failed: {str(e)}"
            logger.error(error_msg, extra={"user_id": user_id}, exc_info=True)
            summary['errors'].append(error_msg)
            return summary
