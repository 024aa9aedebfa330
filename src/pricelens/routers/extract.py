"""
Extraction API router.

Extraction failures are normal results (HTTP 200, ok=false); only
malformed request bodies are rejected (422).
"""

from fastapi import APIRouter
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional
from decimal import Decimal
import logging

from pricelens.config import settings
from pricelens.models.extraction import DebugPayload, ExtractionResult, PriceBreakdown
from pricelens.services.evidence import generate_debug_payload, log_extraction_result
from pricelens.services.heuristics import extract_price_heuristically
from pricelens.utils.money import ParseMoneyOptions, parse_money

router = APIRouter(prefix="/extract", tags=["extract"])
logger = logging.getLogger(__name__)


class PriceRequest(BaseModel):
    html: str
    options: Optional[Dict[str, Any]] = None


class DebugPayloadRequest(PriceRequest):
    url: Optional[str] = None


class MoneyRequest(BaseModel):
    text: str
    default_currency: str = Field(default_factory=lambda: settings.DEFAULT_CURRENCY)
    expected_currency: Optional[str] = None

    @field_validator("default_currency", "expected_currency")
    @classmethod
    def _upper_currency(cls, value):
        return value.strip().upper() if value else value


class MoneyResponse(BaseModel):
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    confidence: int = 0
    warnings: List[str] = []
    is_from_price: bool = False
    is_per_night: bool = False
    is_per_person: bool = False


def _extract(request: PriceRequest, url: Optional[str] = None) -> ExtractionResult:
    options = dict(request.options or {})
    if url and 'url' not in options:
        options['url'] = url
    result = extract_price_heuristically(request.html, options)
    log_extraction_result(result)
    return result


@router.post("/price", response_model=ExtractionResult[PriceBreakdown])
async def extract_price(request: PriceRequest):
    """
    Extract the total price from an HTML document.

    Args:
        request: HTML plus optional heuristic options

    Returns:
        ExtractionResult with breakdown, confidence and evidence
    """
    return _extract(request)


@router.post("/money", response_model=MoneyResponse)
async def extract_money(request: MoneyRequest):
    """Parse a single price string."""
    parsed = parse_money(request.text, ParseMoneyOptions(
        default_currency=request.default_currency,
        expected_currency=request.expected_currency,
    ))
    return MoneyResponse(
        amount=parsed.money.amount if parsed.money else None,
        currency=parsed.money.currency if parsed.money else None,
        confidence=parsed.confidence,
        warnings=parsed.warnings,
        is_from_price=parsed.is_from_price,
        is_per_night=parsed.is_per_night,
        is_per_person=parsed.is_per_person,
    )


@router.post("/debug-payload", response_model=DebugPayload)
async def extract_debug_payload(request: DebugPayloadRequest):
    """Run an extraction and return the sanitized debug report for it."""
    result = _extract(request, request.url)
    return generate_debug_payload(result, request.url)
