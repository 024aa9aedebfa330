"""
Site-agnostic total price extraction.

Scanner -> scorer -> rank -> confidence (top two) -> breakdown -> evidence.
extract_price_heuristically never raises: every failure comes back as an
ok=False result that still carries evidence.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import urlparse
import logging
import time

from bs4 import BeautifulSoup, Tag
from pydantic import ValidationError
from soupsieve import SelectorSyntaxError

from pricelens.config import settings
from pricelens.models.extraction import (
    CandidateScore,
    Confidence,
    Evidence,
    ExtractionDiagnostics,
    ExtractionMethod,
    ExtractionResult,
    HeuristicOptions,
    PriceRange,
    create_failed_result,
    create_success_result,
)
from pricelens.services.breakdown import extract_breakdown
from pricelens.services.confidence import ConfidenceContext, determine_confidence
from pricelens.services.evidence import build_evidence, candidate_scores, sanitize_url
from pricelens.services.scanner import find_price_candidates
from pricelens.utils.dom import parse_document
from pricelens.utils.scoring import rank_candidates, score_candidates

logger = logging.getLogger(__name__)

HEURISTIC_TIER = 3

FLIGHT_PRICE_RANGE = PriceRange(min=Decimal('50'), max=Decimal('50000'))
STAY_PRICE_RANGE = PriceRange(min=Decimal('50'), max=Decimal('100000'))

Document = Union[str, BeautifulSoup, Tag]
OptionsInput = Union[HeuristicOptions, Dict[str, Any], None]


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def coerce_options(options: OptionsInput, **overrides) -> HeuristicOptions:
    """
    Validate options at the boundary.

    Raises:
        ValidationError: if a dict does not describe valid HeuristicOptions
    """
    if options is None:
        options = HeuristicOptions()
    elif isinstance(options, dict):
        options = HeuristicOptions.model_validate(options)
    if overrides:
        options = options.model_copy(update=overrides)
    return options


def resolve_container(document: Document, container: Any = None) -> Tuple[Optional[Tag], Optional[str]]:
    """
    Turn the document (and optional container) into the Tag to scan.

    Returns:
        (tag, None) on success, (None, error message) otherwise
    """
    root = parse_document(document) if isinstance(document, str) else document
    if not isinstance(root, Tag):
        return None, f"Unsupported document type: {type(document).__name__}"

    if container is None:
        return root, None
    if isinstance(container, Tag):
        return container, None
    if isinstance(container, str):
        try:
            match = root.select_one(container)
        except SelectorSyntaxError:
            return None, f"Invalid container selector: {container}"
        if match is None:
            return None, f"Container not found: {container}"
        return match, None
    return None, f"Unsupported container type: {type(container).__name__}"


def extract_price_heuristically(document: Document, options: OptionsInput = None) -> ExtractionResult:
    """
    Extract the total price from a page using heuristic scoring.

    Args:
        document: HTML string, BeautifulSoup document or Tag
        options: HeuristicOptions or an equivalent dict

    Returns:
        ExtractionResult[PriceBreakdown]; ok=False with errors and evidence
        when nothing trustworthy was found
    """
    start = time.perf_counter()
    evidence = Evidence()

    try:
        opts = coerce_options(options)
    except ValidationError as e:
        return create_failed_result(
            [f"Invalid heuristic options: {e.errors(include_url=False)}"],
            evidence,
            _elapsed_ms(start),
        )

    if opts.url:
        evidence.url = sanitize_url(opts.url)
        evidence.hostname = urlparse(opts.url).hostname

    try:
        container, error = resolve_container(document, opts.container)
        if container is None:
            return create_failed_result([error], evidence, _elapsed_ms(start))

        raw_candidates = find_price_candidates(container, opts)
        if opts.debug:
            logger.debug("Found %d raw candidates", len(raw_candidates))

        if not raw_candidates:
            return create_failed_result(
                ['No price candidates found on page'],
                evidence,
                _elapsed_ms(start),
                ExtractionDiagnostics(
                    confidence_reasons=['No elements containing price patterns found'],
                    missing_signals=['Price-like text content'],
                    tiers_attempted=[HEURISTIC_TIER],
                ),
            )

        ranked = rank_candidates(score_candidates(raw_candidates, opts.page_type, opts.debug))
        evidence.candidate_scores = candidate_scores(ranked)

        best = ranked[0]
        if best.score < settings.MIN_CANDIDATE_SCORE or best.parsed.money is None:
            return create_failed_result(
                ['No candidate met minimum score threshold'],
                evidence,
                _elapsed_ms(start),
                ExtractionDiagnostics(
                    confidence_reasons=['Best candidate score too low'],
                    missing_signals=['Strong total price indicators'],
                    tiers_attempted=[HEURISTIC_TIER],
                ),
            )

        breakdown = extract_breakdown(best, ranked)

        second_best = ranked[1] if len(ranked) > 1 else None
        confidence = determine_confidence(best, len(ranked), second_best, ConfidenceContext(
            page_type=opts.page_type,
            expected_currency=opts.expected_currency,
            detected_currency=best.parsed.money.currency,
            stability_info=opts.stability_info,
        ))

        evidence = build_evidence(best, ranked, opts.url)

        if confidence == Confidence.NONE:
            return create_failed_result(
                ['Best candidate did not reach minimum confidence'],
                evidence,
                _elapsed_ms(start),
                ExtractionDiagnostics(
                    confidence_reasons=list(best.reasons),
                    conflicts=list(best.penalties),
                    missing_signals=['Strong total price indicators'],
                    tiers_attempted=[HEURISTIC_TIER],
                ),
            )

        return create_success_result(
            breakdown,
            confidence,
            ExtractionMethod.HEURISTIC,
            evidence,
            _elapsed_ms(start),
            ExtractionDiagnostics(
                confidence_reasons=list(best.reasons),
                conflicts=list(best.penalties),
                successful_tier=HEURISTIC_TIER,
                tiers_attempted=[HEURISTIC_TIER],
            ),
        )

    except (AttributeError, TypeError, ValueError, ArithmeticError, RecursionError) as e:
        logger.warning("Error extracting price heuristically", exc_info=True)
        return create_failed_result(
            [f"Heuristic extraction error: {e}"],
            evidence,
            _elapsed_ms(start),
        )


def extract_flight_price(document: Document, options: OptionsInput = None) -> ExtractionResult:
    """Heuristic extraction with a flight fare range (50 - 50,000)."""
    try:
        opts = coerce_options(options, price_range=FLIGHT_PRICE_RANGE)
    except ValidationError:
        return extract_price_heuristically(document, options)
    return extract_price_heuristically(document, opts)


def extract_stay_price(document: Document, options: OptionsInput = None) -> ExtractionResult:
    """Heuristic extraction with a hotel/stay range (50 - 100,000)."""
    try:
        opts = coerce_options(options, price_range=STAY_PRICE_RANGE)
    except ValidationError:
        return extract_price_heuristically(document, options)
    return extract_price_heuristically(document, opts)


def has_extractable_price(document: Document, options: OptionsInput = None) -> bool:
    """Quick check: is there any price we would accept on this page?"""
    result = extract_price_heuristically(document, options)
    return result.ok and result.confidence != Confidence.NONE


def get_all_price_candidates(document: Document, options: OptionsInput = None) -> List[CandidateScore]:
    """Top scored candidates (for debugging and review UIs)."""
    try:
        opts = coerce_options(options, debug=False)
    except ValidationError:
        return []
    return extract_price_heuristically(document, opts).evidence.candidate_scores
