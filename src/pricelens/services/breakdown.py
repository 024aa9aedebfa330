"""
Breakdown assembly: combine the winning candidate with supporting
candidates (taxes/fees, per-night rate) into a PriceBreakdown.
"""

from typing import List, Optional
import re

from pricelens.models.extraction import Money, PriceBreakdown, PriceLabel
from pricelens.utils.candidates import ScoredCandidate

NIGHTS_PATTERN = re.compile(r'\b(\d{1,2})\s*nights?\b', re.IGNORECASE)
GUESTS_PATTERN = re.compile(r'\b(\d{1,2})\s*(?:guests?|adults?|travell?ers?|people|persons?)\b', re.IGNORECASE)


def _first_int(pattern: re.Pattern, text: str) -> Optional[int]:
    match = pattern.search(text or '')
    if not match:
        return None
    value = int(match.group(1))
    return value if value > 0 else None


def extract_breakdown(best: ScoredCandidate, all_candidates: List[ScoredCandidate]) -> PriceBreakdown:
    """
    Build a PriceBreakdown around the winning candidate.

    - total (or per_night when the winner is a per-night price)
    - taxes_fees from the first taxes/fees candidate, and base = total - taxes_fees
      when both share a currency
    - per_night from another per-night candidate when not already set
    - is_from_price / per_person from the winner's parse flags
    - nights / guest_count from wording near the winner ("3 nights", "2 adults")
    """
    total: Optional[Money] = None
    per_night: Optional[Money] = None
    taxes_fees: Optional[Money] = None
    base: Optional[Money] = None

    money = best.parsed.money
    if money is not None:
        if best.label == PriceLabel.PER_NIGHT:
            per_night = money
        else:
            total = money

    for candidate in all_candidates:
        if candidate is best or candidate.parsed.money is None:
            continue

        if candidate.label == PriceLabel.TAXES_FEES and taxes_fees is None:
            taxes_fees = candidate.parsed.money
            if total is not None and taxes_fees.currency == total.currency:
                base = Money(amount=total.amount - taxes_fees.amount, currency=total.currency)

        if candidate.label == PriceLabel.PER_NIGHT and per_night is None:
            per_night = candidate.parsed.money

    context = f'{best.text} {best.nearby_text}'

    return PriceBreakdown(
        base=base,
        taxes_fees=taxes_fees,
        total=total,
        per_night=per_night,
        nights=_first_int(NIGHTS_PATTERN, context),
        is_from_price=True if best.parsed.is_from_price else None,
        per_person=True if best.parsed.is_per_person else None,
        guest_count=_first_int(GUESTS_PATTERN, context),
    )
