"""
Confidence classification for the winning price candidate.

A layered gate, evaluated in a fixed order:
1. Anchor count (total label, semantic total, summary container,
   checkout button, checkout/booking page)
2. Disqualifying qualifiers (per-night, "from", per-person) floor at LOW
3. Multi-price grid cap at MEDIUM
4. Ambiguity between the winner and the runner-up
5. Page-intent gate on search/availability pages
6. Base thresholds
7. Currency-mismatch demotion
8. Stability promotion/demotion (single steps)

determine_confidence is pure: same inputs, same level.
"""

from dataclasses import dataclass
from typing import Optional
import re

from pricelens.models.extraction import Confidence, PageType, StabilityInfo
from pricelens.utils.candidates import ScoredCandidate
from pricelens.utils.dom import get_nearby_text

# Thresholds
HIGH_MIN_SCORE = 85
HIGH_MIN_GAP = 12
HIGH_MIN_ANCHORS = 3
MEDIUM_ANCHORED_MIN_SCORE = 65
MEDIUM_ANCHORED_MIN_ANCHORS = 2
MEDIUM_ANCHORED_MIN_GAP = 8
MEDIUM_LABELLED_MIN_SCORE = 60
MEDIUM_SEMANTIC_MIN_SCORE = 55
LOW_MIN_SCORE = 40

QUALIFIER_OVERRIDE_MIN_SCORE = 70
QUALIFIER_OVERRIDE_MIN_GAP = 15
QUALIFIER_LOW_MIN_SCORE = 35

MULTI_PRICE_MEDIUM_MIN_SCORE = 60

NO_RUNNER_UP_GAP = 999

STABLE_READS = 2
STABLE_DURATION_MS = 700
VERY_STABLE_READS = 3
VERY_STABLE_DURATION_MS = 1000

CONVERSION_WORDING = re.compile(r'converted|approx|≈|~|usd|eur|gbp|in your currency', re.IGNORECASE)

EXPLICIT_TOTAL_PATTERNS = [
    re.compile(r'total\s+for\s+\d+\s*(?:night|day)', re.IGNORECASE),
    re.compile(r'total\s+(?:before|including)\s+tax', re.IGNORECASE),
    re.compile(r'\d+\s*night.*total', re.IGNORECASE),
]

CHECKOUT_PAGES = {PageType.CHECKOUT, PageType.BOOKING}
INTENT_GATED_PAGES = {PageType.SEARCH, PageType.AVAILABILITY}


@dataclass
class ConfidenceContext:
    """Page-level inputs to the classifier."""
    page_type: PageType = PageType.UNKNOWN
    expected_currency: Optional[str] = None
    detected_currency: Optional[str] = None
    stability_info: Optional[StabilityInfo] = None


def count_anchors(best: ScoredCandidate, page_type: PageType = PageType.UNKNOWN) -> int:
    """Number of independent signals that best is a genuine total."""
    return sum([
        best.has_total_label,
        best.has_semantic_total,
        best.is_in_summary_container,
        best.is_near_checkout_button,
        page_type in CHECKOUT_PAGES,
    ])


def is_ambiguous(total_candidates: int, gap: int) -> bool:
    """Many candidates with a small lead means we are not sure which one is the total."""
    return (total_candidates >= 3 and gap < 10) or (total_candidates >= 6 and gap < 15)


def has_currency_mismatch(best: ScoredCandidate, context: ConfidenceContext) -> bool:
    if not (context.expected_currency and context.detected_currency):
        return False
    if context.expected_currency == context.detected_currency:
        return False
    return not CONVERSION_WORDING.search(best.text)


def page_intent_blocks_high(best: ScoredCandidate, page_type: PageType) -> bool:
    """On search/availability pages HIGH needs explicit "total for N nights" style wording."""
    if page_type not in INTENT_GATED_PAGES:
        return False
    nearby = get_nearby_text(best.element, 2)
    return not any(p.search(nearby) for p in EXPLICIT_TOTAL_PATTERNS)


def stability_adjustment(stability: Optional[StabilityInfo], anchors: int) -> int:
    """
    +1 (LOW -> MEDIUM), +2 (also MEDIUM -> HIGH), -1 (HIGH -> MEDIUM) or 0.
    """
    if stability is None:
        return 0
    if stability.price_was_unstable:
        return -1

    promotion = 0
    if (stability.stable_read_count >= STABLE_READS
            and stability.stable_duration_ms >= STABLE_DURATION_MS
            and anchors >= 1):
        promotion = 1
    if (stability.stable_read_count >= VERY_STABLE_READS
            and stability.stable_duration_ms >= VERY_STABLE_DURATION_MS
            and anchors >= 2):
        promotion = 2
    return promotion


def determine_confidence(
    best: ScoredCandidate,
    total_candidates: int,
    second_best: Optional[ScoredCandidate] = None,
    context: Optional[ConfidenceContext] = None
) -> Confidence:
    """
    Classify the winning candidate into HIGH / MEDIUM / LOW / NONE.

    Floors and caps are applied before the base thresholds; currency and
    stability adjustments after them.

    Args:
        best: Top-ranked candidate
        total_candidates: Number of scored candidates
        second_best: Runner-up, if any
        context: Page type, currencies and stability observation

    Returns:
        Confidence level
    """
    context = context or ConfidenceContext()
    page_type = PageType(context.page_type)

    score = best.score
    gap = best.score - second_best.score if second_best is not None else NO_RUNNER_UP_GAP

    has_total_label = best.has_total_label
    has_semantic_total = best.has_semantic_total
    in_summary = best.is_in_summary_container
    near_checkout = best.is_near_checkout_button
    is_checkoutish = page_type in CHECKOUT_PAGES

    anchors = count_anchors(best, page_type)
    ambiguous = is_ambiguous(total_candidates, gap)

    # Disqualifying qualifiers: never HIGH
    if best.has_bad_qualifier:
        if (score >= QUALIFIER_OVERRIDE_MIN_SCORE
                and has_total_label
                and (in_summary or has_semantic_total)
                and not ambiguous
                and gap >= QUALIFIER_OVERRIDE_MIN_GAP):
            return Confidence.MEDIUM
        return Confidence.LOW if score >= QUALIFIER_LOW_MIN_SCORE else Confidence.NONE

    # Price grid / list cell
    is_multi_price = best.contains_multiple_prices and best.price_count_in_element >= 2
    grid_override = has_total_label and (in_summary or is_checkoutish)
    if is_multi_price and not grid_override:
        if score >= MULTI_PRICE_MEDIUM_MIN_SCORE and anchors >= 1:
            return Confidence.MEDIUM
        return Confidence.LOW

    intent_blocked = page_intent_blocks_high(best, page_type)
    currency_mismatch = has_currency_mismatch(best, context)

    if (score >= HIGH_MIN_SCORE
            and ((anchors >= HIGH_MIN_ANCHORS and has_total_label)
                 or (has_total_label and (in_summary or has_semantic_total or is_checkoutish)))
            and gap >= HIGH_MIN_GAP
            and not ambiguous
            and not intent_blocked):
        confidence = Confidence.HIGH
    elif (score >= MEDIUM_ANCHORED_MIN_SCORE
            and anchors >= MEDIUM_ANCHORED_MIN_ANCHORS
            and gap >= MEDIUM_ANCHORED_MIN_GAP
            and not ambiguous):
        confidence = Confidence.MEDIUM
    elif score >= MEDIUM_LABELLED_MIN_SCORE and has_total_label and (in_summary or has_semantic_total or near_checkout):
        confidence = Confidence.MEDIUM
    elif score >= MEDIUM_SEMANTIC_MIN_SCORE and has_semantic_total:
        confidence = Confidence.MEDIUM
    elif score >= LOW_MIN_SCORE:
        confidence = Confidence.LOW
    else:
        confidence = Confidence.NONE

    if currency_mismatch and confidence == Confidence.HIGH:
        confidence = Confidence.MEDIUM

    adjustment = stability_adjustment(context.stability_info, anchors)
    if adjustment > 0:
        if confidence == Confidence.LOW:
            confidence = Confidence.MEDIUM
        elif confidence == Confidence.MEDIUM and adjustment >= 2:
            # Stability never lifts past a gate that forbids HIGH
            if not (ambiguous or intent_blocked or currency_mismatch):
                confidence = Confidence.HIGH
    elif adjustment < 0 and confidence == Confidence.HIGH:
        confidence = Confidence.MEDIUM

    return confidence
