"""
Candidate dataclasses for price scoring.

A RawCandidate is a visible, in-range price found by the scanner.
A ScoredCandidate adds the score, the human-readable reasons behind it
and the boolean signals the confidence classifier reads.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from bs4 import Tag

from pricelens.models.extraction import PriceLabel
from pricelens.utils.dom import Rect
from pricelens.utils.money import ParseMoneyResult


@dataclass
class RawCandidate:
    """Price-like element found by the scanner."""
    element: Tag
    text: str
    parsed: ParseMoneyResult
    is_in_summary_container: bool = False
    is_visible: bool = True
    rect: Optional[Rect] = None

    @property
    def amount(self) -> Decimal:
        return self.parsed.money.amount if self.parsed.money else Decimal('0')


@dataclass
class ScoredCandidate:
    """
    Candidate with score and contributing signals.

    Scoring flags:
    - has_total_keyword_nearby: a total keyword in the surrounding labels
    - has_total_keyword_in_text: "total" inside the element's own text
    - has_aria_total / has_test_id_total: semantic total markers
    - is_near_checkout_button: a book/pay/checkout button close by
    - is_per_night / is_from_price / is_per_person: disqualifying qualifiers
    - contains_multiple_prices: the element shows 2+ prices (grid/list cell)
    """
    element: Tag
    text: str
    parsed: ParseMoneyResult
    score: int = 0
    reasons: List[str] = field(default_factory=list)
    penalties: List[str] = field(default_factory=list)
    label: PriceLabel = PriceLabel.UNKNOWN
    nearby_text: str = ""

    is_in_summary_container: bool = False
    has_total_keyword_nearby: bool = False
    has_total_keyword_in_text: bool = False
    has_aria_total: bool = False
    has_test_id_total: bool = False
    is_near_checkout_button: bool = False
    is_per_night: bool = False
    is_from_price: bool = False
    is_per_person: bool = False
    contains_multiple_prices: bool = False
    price_count_in_element: int = 0

    @property
    def amount(self) -> Decimal:
        return self.parsed.money.amount if self.parsed.money else Decimal('0')

    @property
    def has_total_label(self) -> bool:
        return (
            self.label == PriceLabel.TOTAL
            or self.has_total_keyword_nearby
            or self.has_total_keyword_in_text
        )

    @property
    def has_semantic_total(self) -> bool:
        return self.has_aria_total or self.has_test_id_total

    @property
    def has_bad_qualifier(self) -> bool:
        return self.is_per_night or self.is_from_price or self.is_per_person
