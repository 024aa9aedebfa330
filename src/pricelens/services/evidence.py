"""
Evidence recording and privacy-safe debug reporting.

Evidence is attached to every result, success or failure, so a correction
UI or a bug report always knows what was seen and why it was (not) chosen.
"""

from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import parse_qsl, urlparse
import logging
import re

from pricelens.config import settings
from pricelens.models.extraction import (
    CandidateScore,
    DebugCandidate,
    DebugPayload,
    Evidence,
    ExtractionResult,
)
from pricelens.utils.candidates import ScoredCandidate
from pricelens.utils.dom import get_dom_path

logger = logging.getLogger(__name__)

CANDIDATE_TEXT_LIMIT = 100
DEBUG_TEXT_LIMIT = 50
DEBUG_REASON_LIMIT = 3
URL_VALUE_LIMIT = 50

NEARBY_LABEL_PREFIX = '+30: Label'

SENSITIVE_PARAMS = {
    'token', 'auth', 'session', 'key', 'secret', 'password',
    'api_key', 'apikey', 'access_token', 'email', 'phone',
    'name', 'address', 'card', 'cc', 'cvv', 'exp',
}

EMAIL_PATTERN = re.compile(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}')
CARD_PATTERN = re.compile(r'\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b')
PHONE_PATTERN = re.compile(r'\+?[\d\s\-().]{10,}')
TITLED_NAME_PATTERN = re.compile(r'\b(?:Mr|Mrs|Ms|Dr|Prof)\.?\s+[A-Z][a-z]+\s+[A-Z][a-z]+\b')


def truncate_text(text: str, max_length: int) -> str:
    """Cut text to max_length, ending in "..." when shortened."""
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + '...'


def candidate_scores(ranked: List[ScoredCandidate], limit: Optional[int] = None) -> List[CandidateScore]:
    """Top candidates as evidence entries (text truncated to 100 chars)."""
    limit = settings.MAX_EVIDENCE_CANDIDATES if limit is None else limit
    return [
        CandidateScore(
            text=c.text[:CANDIDATE_TEXT_LIMIT],
            value=c.amount,
            score=c.score,
            reasons=list(c.reasons),
            penalties=list(c.penalties),
        )
        for c in ranked[:limit]
    ]


def build_evidence(best: ScoredCandidate, ranked: List[ScoredCandidate], url: Optional[str] = None) -> Evidence:
    """
    Evidence for the winning candidate.

    Args:
        best: Winning candidate
        ranked: All candidates sorted by score
        url: Page URL, recorded sanitized when given

    Returns:
        Evidence with matched text, value, DOM path, nearby labels,
        top candidate scores and qualifier warnings
    """
    money = best.parsed.money

    warnings: List[str] = []
    if best.parsed.is_from_price:
        warnings.append('Detected as "from" price - may not be final total')
    if best.parsed.is_per_night:
        warnings.append('Detected as per-night price')

    return Evidence(
        matched_text=best.text,
        normalized_value=money.amount if money else None,
        currency=money.currency if money else None,
        url=sanitize_url(url) if url else None,
        hostname=urlparse(url).hostname if url else None,
        dom_path=get_dom_path(best.element),
        labels_nearby=[r for r in best.reasons if r.startswith(NEARBY_LABEL_PREFIX)],
        candidate_scores=candidate_scores(ranked),
        warnings=warnings,
    )


def sanitize_url(url: str) -> str:
    """
    Strip sensitive query params and truncate long values.

    Examples:
        >>> sanitize_url("https://x.com/book?token=abc&hotel=42")
        'https://x.com/book?hotel=42'
    """
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return parsed.hostname or ''

    params = []
    for key, value in parse_qsl(parsed.query, keep_blank_values=True):
        if key.lower() in SENSITIVE_PARAMS:
            continue
        if len(value) > URL_VALUE_LIMIT:
            value = '[truncated]'
        params.append(f'{key}={value}')

    base = f'{parsed.scheme}://{parsed.netloc}{parsed.path}'
    return f"{base}?{'&'.join(params)}" if params else base


def _redact_phone(match: re.Match) -> str:
    digits = re.sub(r'\D', '', match.group(0))
    return '[PHONE]' if len(digits) >= 10 else match.group(0)


def redact_pii(text: str) -> str:
    """Replace emails, card numbers, phone numbers and titled names with placeholders."""
    text = EMAIL_PATTERN.sub('[EMAIL]', text)
    text = CARD_PATTERN.sub('[CARD]', text)
    text = PHONE_PATTERN.sub(_redact_phone, text)
    return TITLED_NAME_PATTERN.sub('[NAME]', text)


def generate_debug_payload(result: ExtractionResult, url: Optional[str] = None) -> DebugPayload:
    """
    Build a sanitized, copyable report for a bug ticket.

    Only the top 5 candidates are kept, each with text cut to 50 chars and
    its first 3 reasons. Query params that may carry credentials or PII
    are dropped from the URL.
    """
    diagnostics = result.diagnostics
    evidence = result.evidence

    top_candidates = [
        DebugCandidate(
            text=truncate_text(redact_pii(c.text), DEBUG_TEXT_LIMIT),
            score=c.score,
            reasons=c.reasons[:DEBUG_REASON_LIMIT],
        )
        for c in evidence.candidate_scores[:settings.MAX_EVIDENCE_CANDIDATES]
    ]

    return DebugPayload(
        timestamp=datetime.now(timezone.utc).isoformat(),
        hostname=urlparse(url).hostname if url else evidence.hostname,
        url_pattern=sanitize_url(url) if url else evidence.url,
        tiers_attempted=list(diagnostics.tiers_attempted) if diagnostics else [],
        successful_tier=diagnostics.successful_tier if diagnostics else None,
        confidence=result.confidence,
        selector_attempts=[evidence.selector] if evidence.selector else [],
        top_candidates=top_candidates,
        warnings=list(evidence.warnings),
        latency_ms=result.latency_ms,
    )


def log_extraction_result(result: ExtractionResult, level: int = logging.INFO) -> None:
    """Log a one-line, privacy-safe summary of a result."""
    total = getattr(result.value, 'total', None) if result.value is not None else None
    amount = f'{total.currency} {total.amount:.2f}' if total is not None else 'N/A'
    tier = result.diagnostics.successful_tier if result.diagnostics else None

    logger.log(
        level,
        "Extraction ok=%s confidence=%s method=%s tier=%s amount=%s latency=%.0fms warnings=%d",
        result.ok, result.confidence.value, result.method.value, tier, amount,
        result.latency_ms, len(result.evidence.warnings)
    )

    if result.errors:
        logger.warning("Extraction errors: %s", result.errors)
        for i, c in enumerate(result.evidence.candidate_scores[:3], 1):
            logger.debug("  %d. %r (score: %d)", i, truncate_text(c.text, 40), c.score)
