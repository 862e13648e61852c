"""
Parse router for running the order parser on a single email without storing it.
"""

from fastapi import APIRouter
import logging

from app.models.order import ParseRequest, ParseResponse, Rejected
from app.services.parser import OrderParser

router = APIRouter(prefix="/parse", tags=["parse"])
logger = logging.getLogger(__name__)

parser = OrderParser()


@router.post("", response_model=ParseResponse)
async def parse_email(request: ParseRequest):
    """
    Extract an order from a posted sender, subject and body.

    A rejected extraction is a normal outcome: the response carries
    accepted=False, the rejection reason and the confidence of the draft.
    """
    outcome = parser.parse(request.sender, request.subject, request.body)

    if isinstance(outcome, Rejected):
        return ParseResponse(
            accepted=False,
            reason=outcome.reason,
            confidence=parser.confidence(outcome.draft)
        )

    return ParseResponse(
        accepted=True,
        order=outcome,
        confidence=parser.confidence(outcome)
    )
