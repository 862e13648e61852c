"""
Pydantic models for extracted orders.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Tuple, Union
from datetime import datetime
from decimal import Decimal


UNKNOWN_ORDER_NUMBER = "UNKNOWN"
UNKNOWN_VENDOR = "Unknown"


class LineItem(BaseModel):
    """One purchased item with a resolved quantity and unit price."""
    name: str
    quantity: int = Field(gt=0)
    price: Decimal = Field(ge=0)

    class Config:
        frozen = True


class OrderRecord(BaseModel):
    """Normalized order extracted from a single email."""
    order_number: str = UNKNOWN_ORDER_NUMBER
    vendor: str = UNKNOWN_VENDOR
    total: Decimal = Decimal('0')
    items: Tuple[LineItem, ...] = ()
    order_date: datetime

    class Config:
        frozen = True


class Rejected(BaseModel):
    """Outcome of an extraction that failed validation."""
    reason: str
    draft: OrderRecord

    class Config:
        frozen = True


ParseOutcome = Union[OrderRecord, Rejected]


class ConfidenceReport(BaseModel):
    """Advisory per-field confidence, each score in [0, 1]."""
    order_number: float = Field(0.0, ge=0.0, le=1.0)
    vendor: float = Field(0.0, ge=0.0, le=1.0)
    items: float = Field(0.0, ge=0.0, le=1.0)
    overall: float = Field(0.0, ge=0.0, le=1.0)


class ParsedItem(BaseModel):
    """Partially resolved item line from an email's items section."""
    sku: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[int] = None
    price: Optional[Decimal] = None


class ParsedEmail(BaseModel):
    """Email-level parse result with forwarding context and confidence."""
    message_id: Optional[str] = None
    subject: str = ""
    sender: str = ""
    received_date: Optional[datetime] = None
    is_forwarded: bool = False
    original_sender: Optional[str] = None
    order_number: Optional[str] = None
    vendor: Optional[str] = None
    items: Tuple[ParsedItem, ...] = ()
    total: Optional[Decimal] = None
    confidence: ConfidenceReport = Field(default_factory=ConfidenceReport)


class ParseRequest(BaseModel):
    """Request model for ad-hoc extraction."""
    sender: str = ""
    subject: str = ""
    body: str = ""


class ParseResponse(BaseModel):
    """Response model for ad-hoc extraction."""
    accepted: bool
    order: Optional[OrderRecord] = None
    reason: Optional[str] = None
    confidence: ConfidenceReport


class OrderResponse(BaseModel):
    """Model for stored order API responses."""
    id: str
    user_id: str
    order_number: str
    vendor: str
    total: Optional[Decimal] = None
    items: list = Field(default_factory=list)
    order_date: Optional[str] = None
    status: Optional[str] = None
    confidence: Optional[dict] = None
    source_message_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    class Config:
        from_attributes = True


class OrderList(BaseModel):
    """Model for paginated order list."""
    orders: list[OrderResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class InventoryItem(BaseModel):
    """Accumulated inventory entry for one normalized item name."""
    id: str
    user_id: str
    item_key: Optional[str] = None
    name: str
    quantity: int
    last_order_price: Optional[Decimal] = None
    order_references: List[str] = Field(default_factory=list)
    last_updated: Optional[str] = None

    class Config:
        from_attributes = True


class InventoryList(BaseModel):
    """Model for inventory listing."""
    items: list[InventoryItem]
    total: int
