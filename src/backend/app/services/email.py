"""
Mail source service for the Gmail API.
Fetches order confirmation emails and hands the engine decoded sender, subject and body text.
"""

import base64
import logging
import re
from typing import List, Dict, Optional, Tuple
from datetime import datetime, timezone
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
import html2text

from app.config import settings

logger = logging.getLogger(__name__)

SENDER_ADDRESS_RE = re.compile(r'<([^>]+)>|([^\s<>]+@[^\s<>]+)')


def extract_sender_address(sender: Optional[str]) -> str:
    """
    Pull the bare address out of a From value.

    "Amazon.com <auto-confirm@amazon.com>" -> "auto-confirm@amazon.com".
    Values without an address are returned stripped.
    """
    if not sender:
        return ''
    match = SENDER_ADDRESS_RE.search(sender)
    if match:
        return match.group(1) or match.group(2)
    return sender.strip()


def collapse_whitespace(text: str) -> str:
    """Collapse runs of spaces/tabs within lines and drop blank lines."""
    lines = (re.sub(r'[ \t\r\f\v]+', ' ', line).strip() for line in text.split('\n'))
    return '\n'.join(line for line in lines if line)


class EmailService:
    """Service for interacting with Gmail API."""

    def __init__(self, service=None):
        """
        Initialize Gmail service with OAuth credentials.

        Args:
            service: Prebuilt Gmail API resource (skips credential setup)
        """
        self.creds = None
        self.service = service
        if self.service is None:
            self._initialize_service()

    def _initialize_service(self):
        """Set up Gmail API service with credentials."""
        try:
            self.creds = Credentials(
                token=None,
                refresh_token=settings.GMAIL_REFRESH_TOKEN,
                token_uri="https://oauth2.googleapis.com/token",
                client_id=settings.GMAIL_CLIENT_ID,
                client_secret=settings.GMAIL_CLIENT_SECRET,
                scopes=['https://www.googleapis.com/auth/gmail.readonly']
            )

            self.service = build('gmail', 'v1', credentials=self.creds)
            logger.debug("Gmail service initialized successfully")

        except Exception:
            logger.error("Failed to initialize Gmail service", exc_info=True)
            raise

    def list_messages(self, query: str = "", max_results: int = 10) -> List[Dict]:
        """
        List messages matching a Gmail search query.

        Args:
            query: Gmail search query (e.g., 'from:auto-confirm@amazon.com')
            max_results: Maximum number of messages to return

        Returns:
            List of message stubs with id and threadId
        """
        try:
            results = self.service.users().messages().list(
                userId='me',
                q=query,
                maxResults=max_results
            ).execute()

            messages = results.get('messages', [])
            logger.debug("Listed messages from Gmail", extra={
                "count": len(messages),
                "query": query
            })
            return messages

        except HttpError as error:
            logger.error("Gmail API error listing messages", extra={
                "error": str(error)
            }, exc_info=True)
            return []

    def get_message(self, message_id: str) -> Optional[Dict]:
        """
        Get full message details by ID.

        Returns:
            Full message object with headers and body parts, or None on API error
        """
        try:
            return self.service.users().messages().get(
                userId='me',
                id=message_id,
                format='full'
            ).execute()

        except HttpError as error:
            logger.error("Error fetching message", extra={
                "message_id": message_id,
                "error": str(error)
            }, exc_info=True)
            return None

    def search_messages(self, query: str, max_results: int = 10) -> List[Dict]:
        """
        Search and fetch full messages, skipping any that fail to load.

        Args:
            query: Gmail search query
            max_results: Per-run cap on messages fetched

        Returns:
            Full message objects
        """
        logger.info("Searching emails", extra={"query": query, "max_results": max_results})

        messages = []
        for stub in self.list_messages(query=query, max_results=max_results):
            message = self.get_message(stub['id'])
            if message:
                messages.append(message)

        return messages

    def extract_email_body(self, message: Dict) -> Tuple[Optional[str], Optional[str]]:
        """
        Extract email body content (HTML and/or plain text).

        Args:
            message: Full Gmail message object

        Returns:
            Tuple of (html_body, text_body)
        """
        html_body = None
        text_body = None

        def get_body_from_part(part):
            """Recursively extract body from message parts."""
            nonlocal html_body, text_body

            mime_type = part.get('mimeType', '')
            body = part.get('body', {})

            if 'data' in body:
                try:
                    decoded = base64.urlsafe_b64decode(body['data']).decode('utf-8')

                    if mime_type == 'text/html':
                        html_body = html_body or decoded
                    elif mime_type == 'text/plain':
                        text_body = text_body or decoded
                except (ValueError, UnicodeDecodeError) as e:
                    logger.warning("Error decoding body part", extra={
                        "mime_type": mime_type,
                        "error": str(e)
                    })

            for subpart in part.get('parts', []):
                get_body_from_part(subpart)

        get_body_from_part(message.get('payload') or {})

        return html_body, text_body

    def convert_html_to_text(self, html_content: str) -> str:
        """
        Convert HTML email to clean text.

        Args:
            html_content: HTML string

        Returns:
            Plain text version with tags removed
        """
        try:
            h = html2text.HTML2Text()
            h.ignore_links = True
            h.ignore_images = True
            h.ignore_emphasis = True
            h.body_width = 0  # Don't wrap lines

            return h.handle(html_content)
        except Exception as e:
            logger.warning("Error converting HTML to text", extra={
                "error": str(e)
            })
            return re.sub(r'<[^>]*>', ' ', html_content)

    def normalize_body(self, message: Dict) -> str:
        """
        Decoded body text ready for the order parser.

        Plain text is preferred; HTML-only messages are converted to text.
        Whitespace is collapsed per line so line scanning still works.
        """
        html_body, text_body = self.extract_email_body(message)

        if text_body:
            body = text_body
        elif html_body:
            body = self.convert_html_to_text(html_body)
        else:
            return ''

        return collapse_whitespace(body)

    def extract_email_metadata(self, message: Dict) -> Dict:
        """
        Extract useful metadata from message headers.

        Args:
            message: Gmail message object

        Returns:
            Dictionary with subject, from, date, to, received_at
        """
        headers = (message.get('payload') or {}).get('headers', [])
        metadata = {
            'subject': '',
            'from': '',
            'date': '',
            'to': '',
            'received_at': None
        }

        for header in headers:
            name = header['name'].lower()
            if name in ('subject', 'from', 'date', 'to'):
                metadata[name] = header['value']

        # Gmail internalDate is milliseconds since epoch
        if 'internalDate' in message:
            try:
                timestamp_ms = int(message['internalDate'])
                metadata['received_at'] = datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc)
            except (ValueError, TypeError) as e:
                logger.warning("Error parsing internalDate", extra={
                    "message_id": message.get('id'),
                    "error": str(e)
                })
                metadata['received_at'] = datetime.now(timezone.utc)
        else:
            metadata['received_at'] = datetime.now(timezone.utc)

        return metadata
