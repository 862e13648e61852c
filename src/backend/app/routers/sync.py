"""
Order sync router for triggering manual email ingestion.
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import Optional

from app.services.ingestion import IngestionService

router = APIRouter(prefix="/sync", tags=["sync"])


class SyncRequest(BaseModel):
    """Request model for sync endpoint."""
    user_id: str
    query: Optional[str] = None
    max_results: Optional[int] = None


class SyncResponse(BaseModel):
    """Response model for sync endpoint."""
    success: bool
    messages_checked: int
    messages_processed: int
    orders_created: int
    orders: list
    rejected: list
    errors: list


@router.post("", response_model=SyncResponse)
async def sync_orders(request: SyncRequest):
    """
    Manually trigger order sync for a user.

    This endpoint:
    1. Searches the mailbox for order confirmations
    2. Parses each unprocessed email
    3. Stores accepted orders and updates inventory
    4. Records rejected emails as failed to parse

    Args:
        request: Sync request with user_id and optional query / per-run cap

    Returns:
        Summary of sync operation
    """
    try:
        ingestion = IngestionService()

        summary = ingestion.sync_orders(
            user_id=request.user_id,
            query=request.query,
            max_results=request.max_results
        )

        return SyncResponse(
            success=len(summary['errors']) == 0,
            **summary
        )

    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Sync failed: {str(e)}"
        )


@router.get("/status")
async def sync_status():
    """
    Check if order sync is configured and ready.

    Returns:
        Configuration status
    """
    from app.config import settings

    config_status = {
        "gmail_configured": bool(settings.GMAIL_CLIENT_ID and
                                settings.GMAIL_CLIENT_SECRET and
                                settings.GMAIL_REFRESH_TOKEN),
        "supabase_connected": bool(settings.SUPABASE_URL and
                                   settings.SUPABASE_SERVICE_KEY)
    }

    return {
        "ready": all(config_status.values()),
        "config": config_status,
        "search_query": settings.ORDER_SEARCH_QUERY,
        "max_emails_per_run": settings.MAX_EMAILS_PER_RUN
    }
