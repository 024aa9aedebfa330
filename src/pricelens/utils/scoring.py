"""
Scoring functions for price candidates.

Each candidate starts at BASE_SCORE and collects additive bonuses and
penalties. Every contribution is recorded verbatim ("+25: In
summary/checkout container", "-35: Per-night indicator ...") so the
evidence shows exactly why a candidate won or lost.
"""

from typing import List
import logging
import re

from bs4 import Tag

from pricelens.models.extraction import PageType, PriceLabel
from pricelens.utils.candidates import RawCandidate, ScoredCandidate
from pricelens.utils.dom import closest, get_nearby_text, resolve_style
from pricelens.utils.money import count_price_substrings

__all__ = [
    'score_candidate', 'score_candidates', 'rank_candidates', 'select_top_candidates',
    'TOTAL_KEYWORDS', 'TAXES_FEES_KEYWORDS', 'PER_NIGHT_KEYWORDS',
    'FROM_KEYWORDS', 'PER_PERSON_KEYWORDS', 'STRIKETHROUGH_KEYWORDS',
]

logger = logging.getLogger(__name__)

TOTAL_KEYWORDS = [
    'total', 'trip total', 'grand total', 'amount due', 'pay now', 'due today',
    'your total', 'order total', 'booking total', 'reservation total',
    'final price', 'final total', 'total cost', 'total price',
    'checkout total', 'purchase total',
]

TAXES_FEES_KEYWORDS = [
    'tax', 'taxes', 'fee', 'fees', 'taxes & fees', 'taxes and fees',
    'service fee', 'booking fee', 'resort fee', 'cleaning fee',
]

PER_NIGHT_KEYWORDS = ['/night', 'per night', 'nightly', 'per n', '/ night', 'night)', '/nt']

FROM_KEYWORDS = ['from', 'starting at', 'starts at', 'as low as', 'base fare', 'base rate']

PER_PERSON_KEYWORDS = [
    '/person', 'per person', '/pax', 'per pax', 'each',
    'per adult', 'per traveler', 'per guest',
]

STRIKETHROUGH_KEYWORDS = ['was', 'originally', 'regular', 'compare at', 'list price']

CHECKOUT_BUTTON_TEXT = re.compile(r'book|checkout|continue|pay|confirm|complete', re.IGNORECASE)

# Score deltas
BASE_SCORE = 50
SUMMARY_CONTAINER_BONUS = 25
TOTAL_LABEL_NEARBY_BONUS = 30
TOTAL_IN_TEXT_BONUS = 20
ARIA_TOTAL_BONUS = 20
TEST_ID_BONUS = 15
LARGE_FONT_BONUS = 10
EXTRA_LARGE_FONT_BONUS = 5
BOLD_BONUS = 8
HIGHER_AMOUNT_BONUS = 5
SUBSTANTIAL_AMOUNT_BONUS = 3
CHECKOUT_SUMMARY_BONUS = 15
CHECKOUT_BUTTON_BONUS = 12

PER_NIGHT_PENALTY = 35
FROM_PENALTY = 30
PER_PERSON_PENALTY = 25
TAXES_FEES_PENALTY = 20
STRIKETHROUGH_TEXT_PENALTY = 40
STRIKETHROUGH_STYLE_PENALTY = 45
SMALL_FONT_PENALTY = 10
LOW_OPACITY_PENALTY = 15
MULTIPLE_PRICES_PENALTY = 20
TOO_MANY_CHILDREN_PENALTY = 15
NOT_VISIBLE_PENALTY = 30
LOW_PARSE_CONFIDENCE_PENALTY = 10

# Thresholds
LARGE_FONT_PX = 18
EXTRA_LARGE_FONT_PX = 24
BOLD_WEIGHT = 600
HIGHER_AMOUNT = 200
SUBSTANTIAL_AMOUNT = 500
SMALL_FONT_PX = 12
LOW_OPACITY = 0.7
MAX_CHILDREN = 5
MIN_PARSE_CONFIDENCE = 70


def _num(value: float) -> str:
    """Render 20.0 as "20" and 18.72 as "18.72"."""
    return f'{value:g}'


def _is_button(tag: Tag) -> bool:
    return tag.name == 'button' or tag.get('role') == 'button'


def _find_nearby_button(element: Tag):
    button = closest(element, _is_button)
    if button is None and element.parent is not None:
        button = element.parent.find(_is_button)
    return button


def score_candidate(raw: RawCandidate, page_type: PageType = PageType.UNKNOWN, debug: bool = False) -> ScoredCandidate:
    """
    Score a raw candidate.

    Positive signals: summary container, nearby/in-text "total", aria-label
    and data-testid, large/bold font, higher amount, checkout page, nearby
    checkout button.

    Negative signals: per-night/from/per-person qualifiers, taxes/fees
    labels, strikethrough (textual and styled), small font, low opacity,
    multiple prices in one element, container-like elements, invisibility,
    low parse confidence.

    Args:
        raw: RawCandidate from the scanner
        page_type: Caller's page classification
        debug: Log the per-candidate breakdown

    Returns:
        ScoredCandidate with score clamped to >= 0
    """
    score = BASE_SCORE
    reasons: List[str] = []
    penalties: List[str] = []
    label = PriceLabel.UNKNOWN

    has_total_keyword_nearby = False
    has_total_keyword_in_text = False
    has_aria_total = False
    has_test_id_total = False
    is_near_checkout_button = False
    is_per_night = False
    is_from_price = False
    is_per_person = False

    text = raw.text.lower()
    element = raw.element
    page_type = PageType(page_type)

    # Positive signals

    if raw.is_in_summary_container:
        score += SUMMARY_CONTAINER_BONUS
        reasons.append(f'+{SUMMARY_CONTAINER_BONUS}: In summary/checkout container')

    nearby_text = get_nearby_text(element, 3)
    nearby = nearby_text.lower()

    for keyword in TOTAL_KEYWORDS:
        if keyword in nearby:
            score += TOTAL_LABEL_NEARBY_BONUS
            reasons.append(f'+{TOTAL_LABEL_NEARBY_BONUS}: Label "{keyword}" nearby')
            label = PriceLabel.TOTAL
            has_total_keyword_nearby = True
            break

    if 'total' in text:
        score += TOTAL_IN_TEXT_BONUS
        reasons.append(f'+{TOTAL_IN_TEXT_BONUS}: Contains "total" text')
        label = PriceLabel.TOTAL
        has_total_keyword_in_text = True

    aria_label = (element.get('aria-label') or '').lower()
    if 'total' in aria_label:
        score += ARIA_TOTAL_BONUS
        reasons.append(f'+{ARIA_TOTAL_BONUS}: aria-label contains "total"')
        has_aria_total = True

    test_id = (element.get('data-testid') or '').lower()
    if 'total' in test_id or 'price' in test_id:
        score += TEST_ID_BONUS
        reasons.append(f'+{TEST_ID_BONUS}: data-testid "{test_id}"')
        if 'total' in test_id:
            has_test_id_total = True

    style = resolve_style(element)
    font_size = style.font_size
    if font_size >= LARGE_FONT_PX:
        score += LARGE_FONT_BONUS
        reasons.append(f'+{LARGE_FONT_BONUS}: Large font ({_num(font_size)}px)')
    if font_size >= EXTRA_LARGE_FONT_PX:
        score += EXTRA_LARGE_FONT_BONUS
        reasons.append(f'+{EXTRA_LARGE_FONT_BONUS}: Extra large font')

    if style.font_weight >= BOLD_WEIGHT:
        score += BOLD_BONUS
        reasons.append(f'+{BOLD_BONUS}: Bold text')

    amount = raw.amount
    if amount > HIGHER_AMOUNT:
        score += HIGHER_AMOUNT_BONUS
        reasons.append(f'+{HIGHER_AMOUNT_BONUS}: Higher amount (${amount:.0f})')
    if amount > SUBSTANTIAL_AMOUNT:
        score += SUBSTANTIAL_AMOUNT_BONUS
        reasons.append(f'+{SUBSTANTIAL_AMOUNT_BONUS}: Substantial amount')

    if page_type == PageType.CHECKOUT and raw.is_in_summary_container:
        score += CHECKOUT_SUMMARY_BONUS
        reasons.append(f'+{CHECKOUT_SUMMARY_BONUS}: Checkout page + summary container')

    button = _find_nearby_button(element)
    if button is not None and CHECKOUT_BUTTON_TEXT.search(button.get_text(' ', strip=True)):
        score += CHECKOUT_BUTTON_BONUS
        reasons.append(f'+{CHECKOUT_BUTTON_BONUS}: Near checkout button')
        is_near_checkout_button = True

    # Negative signals

    for keyword in PER_NIGHT_KEYWORDS:
        if keyword in text or keyword in nearby:
            score -= PER_NIGHT_PENALTY
            penalties.append(f'-{PER_NIGHT_PENALTY}: Per-night indicator "{keyword}"')
            label = PriceLabel.PER_NIGHT
            is_per_night = True
            break

    for keyword in FROM_KEYWORDS:
        if keyword in text or keyword in nearby:
            score -= FROM_PENALTY
            penalties.append(f'-{FROM_PENALTY}: "From" price indicator "{keyword}"')
            label = PriceLabel.FROM
            is_from_price = True
            break

    for keyword in PER_PERSON_KEYWORDS:
        if keyword in text or keyword in nearby:
            score -= PER_PERSON_PENALTY
            penalties.append(f'-{PER_PERSON_PENALTY}: Per-person indicator "{keyword}"')
            label = PriceLabel.PER_PERSON
            is_per_person = True
            break

    for keyword in TAXES_FEES_KEYWORDS:
        if keyword in nearby and 'total' not in nearby:
            score -= TAXES_FEES_PENALTY
            penalties.append(f'-{TAXES_FEES_PENALTY}: Taxes/fees indicator "{keyword}"')
            label = PriceLabel.TAXES_FEES
            break

    for keyword in STRIKETHROUGH_KEYWORDS:
        if keyword in nearby:
            score -= STRIKETHROUGH_TEXT_PENALTY
            penalties.append(f'-{STRIKETHROUGH_TEXT_PENALTY}: Strikethrough indicator "{keyword}"')
            break

    if 'line-through' in style.text_decoration:
        score -= STRIKETHROUGH_STYLE_PENALTY
        penalties.append(f'-{STRIKETHROUGH_STYLE_PENALTY}: Has strikethrough style')

    if font_size < SMALL_FONT_PX:
        score -= SMALL_FONT_PENALTY
        penalties.append(f'-{SMALL_FONT_PENALTY}: Small font ({_num(font_size)}px)')

    if style.opacity < LOW_OPACITY:
        score -= LOW_OPACITY_PENALTY
        penalties.append(f'-{LOW_OPACITY_PENALTY}: Low opacity ({_num(style.opacity)})')

    price_count = count_price_substrings(raw.text)
    contains_multiple_prices = price_count > 1
    if contains_multiple_prices:
        score -= MULTIPLE_PRICES_PENALTY
        penalties.append(f'-{MULTIPLE_PRICES_PENALTY}: Multiple prices in element ({price_count})')

    child_count = len(element.find_all(True, recursive=False))
    if child_count > MAX_CHILDREN:
        score -= TOO_MANY_CHILDREN_PENALTY
        penalties.append(f'-{TOO_MANY_CHILDREN_PENALTY}: Too many children ({child_count})')

    if not raw.is_visible:
        score -= NOT_VISIBLE_PENALTY
        penalties.append(f'-{NOT_VISIBLE_PENALTY}: Element not visible')

    if raw.parsed.confidence < MIN_PARSE_CONFIDENCE:
        score -= LOW_PARSE_CONFIDENCE_PENALTY
        penalties.append(f'-{LOW_PARSE_CONFIDENCE_PENALTY}: Low parse confidence ({raw.parsed.confidence})')

    score = max(0, score)

    if debug:
        logger.debug(
            "Scored candidate %r: amount=%s score=%d reasons=%s penalties=%s",
            text[:50], amount, score, reasons, penalties
        )

    return ScoredCandidate(
        element=element,
        text=raw.text,
        parsed=raw.parsed,
        score=score,
        reasons=reasons,
        penalties=penalties,
        label=label,
        nearby_text=nearby_text,
        is_in_summary_container=raw.is_in_summary_container,
        has_total_keyword_nearby=has_total_keyword_nearby,
        has_total_keyword_in_text=has_total_keyword_in_text,
        has_aria_total=has_aria_total,
        has_test_id_total=has_test_id_total,
        is_near_checkout_button=is_near_checkout_button,
        is_per_night=is_per_night or raw.parsed.is_per_night,
        is_from_price=is_from_price or raw.parsed.is_from_price,
        is_per_person=is_per_person or raw.parsed.is_per_person,
        contains_multiple_prices=contains_multiple_prices,
        price_count_in_element=price_count,
    )


def score_candidates(
    raw_candidates: List[RawCandidate],
    page_type: PageType = PageType.UNKNOWN,
    debug: bool = False
) -> List[ScoredCandidate]:
    """Score every raw candidate, keeping scan order."""
    return [score_candidate(raw, page_type, debug) for raw in raw_candidates]


def rank_candidates(scored: List[ScoredCandidate]) -> List[ScoredCandidate]:
    """
    Sort candidates by score, highest first.

    The sort is stable, so equal scores keep scan (document) order.
    """
    return sorted(scored, key=lambda c: c.score, reverse=True)


def select_top_candidates(scored: List[ScoredCandidate], top_n: int = 5) -> List[ScoredCandidate]:
    """Top N candidates by score for evidence and review UIs."""
    return rank_candidates(scored)[:top_n]
