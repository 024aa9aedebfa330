"""
Candidate scanner: walks text nodes under a container and keeps the ones
that parse as an in-range price.

The walk is bounded by MAX_NODES_TO_SCAN accepted text nodes. Hitting the
cap is not an error: scanning stops and whatever was found is returned.
"""

from decimal import Decimal
from typing import List, Optional
import logging

from bs4 import Tag

from pricelens.config import settings
from pricelens.models.extraction import HeuristicOptions
from pricelens.utils.candidates import RawCandidate
from pricelens.utils.dom import (
    find_summary_containers,
    get_rect,
    is_element_visible,
    is_in_viewport,
    is_inside_any,
    iter_text_nodes,
)
from pricelens.utils.money import ParseMoneyOptions, looks_like_price, parse_money

logger = logging.getLogger(__name__)

MIN_NODE_TEXT = 2
MAX_NODE_TEXT = 200


def _has_digit(text: str) -> bool:
    return any(ch.isdigit() for ch in text)


def find_price_candidates(
    container: Tag,
    options: Optional[HeuristicOptions] = None,
    max_nodes: Optional[int] = None
) -> List[RawCandidate]:
    """
    Find price-like text nodes under container.

    Per accepted text node: dedupe by exact text, cheap price filter,
    parse, range check, visibility, viewport (unless include_offscreen)
    and summary-container membership.

    Args:
        container: BeautifulSoup document or Tag to scan
        options: Heuristic options (range, currency, offscreen)
        max_nodes: Override for the accepted-node budget

    Returns:
        Raw candidates in document order
    """
    options = options or HeuristicOptions()
    max_nodes = settings.MAX_NODES_TO_SCAN if max_nodes is None else max_nodes

    price_range = options.price_range
    parse_options = ParseMoneyOptions(
        default_currency=options.expected_currency or settings.DEFAULT_CURRENCY,
        min_amount=price_range.min if price_range.min is not None else Decimal('0'),
        max_amount=price_range.max,
    )

    summary_containers = find_summary_containers(container)

    candidates: List[RawCandidate] = []
    seen_texts = set()
    accepted = 0

    for node in iter_text_nodes(container):
        text = node.strip()
        if len(text) < MIN_NODE_TEXT or len(text) > MAX_NODE_TEXT or not _has_digit(text):
            continue

        accepted += 1
        if accepted > max_nodes:
            logger.debug("Scan budget of %d text nodes reached; using %d candidates found so far",
                         max_nodes, len(candidates))
            break

        if text in seen_texts:
            continue
        seen_texts.add(text)

        if not looks_like_price(text):
            continue

        parsed = parse_money(text, parse_options)
        if parsed.money is None:
            continue

        amount = parsed.money.amount
        if price_range.min is not None and amount < price_range.min:
            continue
        if price_range.max is not None and amount > price_range.max:
            continue

        element = node.parent
        if not isinstance(element, Tag):
            continue

        rect = get_rect(element)
        visible = is_element_visible(element)
        if not options.include_offscreen and not is_in_viewport(element):
            continue

        candidates.append(RawCandidate(
            element=element,
            text=text,
            parsed=parsed,
            is_in_summary_container=is_inside_any(element, summary_containers),
            is_visible=visible,
            rect=rect,
        ))

    logger.debug("Found %d price candidates", len(candidates))
    return candidates
