"""
Orders API router for listing stored orders and accumulated inventory.
"""

from fastapi import APIRouter, HTTPException, Query
from typing import Optional
import math
import logging

from app.config import settings
from app.models.order import OrderList, InventoryList
from app.utils.supabase import get_supabase_client

router = APIRouter(prefix="/orders", tags=["orders"])
logger = logging.getLogger(__name__)


@router.get("", response_model=OrderList)
async def list_orders(
    user_id: str = Query(..., description="User ID"),
    vendor: Optional[str] = Query(None, description="Filter by vendor name"),
    order_number: Optional[str] = Query(None, description="Filter by order number"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page")
):
    """
    List stored orders for a user with optional filtering and pagination.

    Filters:
    - vendor: Exact vendor name (e.g. "Amazon")
    - order_number: Exact order number
    """
    try:
        supabase = get_supabase_client()

        query = supabase.table(settings.ORDERS_TABLE).select('*', count='exact')
        query = query.eq('user_id', user_id)

        if vendor:
            query = query.eq('vendor', vendor)

        if order_number:
            query = query.eq('order_number', order_number)

        offset = (page - 1) * page_size
        response = query.order('created_at', desc=True).range(offset, offset + page_size - 1).execute()

        total = response.count if getattr(response, 'count', None) is not None else len(response.data)
        total_pages = math.ceil(total / page_size) if total > 0 else 1

        return OrderList(
            orders=response.data,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages
        )

    except Exception as e:
        logger.error("Error listing orders", extra={"user_id": user_id}, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to list orders: {str(e)}")


@router.get("/inventory", response_model=InventoryList)
async def list_inventory(
    user_id: str = Query(..., description="User ID")
):
    """
    List accumulated inventory for a user, most recently updated first.
    """
    try:
        supabase = get_supabase_client()

        response = supabase.table(settings.INVENTORY_TABLE).select('*').eq(
            'user_id', user_id
        ).order('last_updated', desc=True).execute()

        return InventoryList(items=response.data, total=len(response.data))

    except Exception as e:
        logger.error("Error listing inventory", extra={"user_id": user_id}, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to list inventory: {str(e)}")
