"""
Test suite for extraction result models.

Tests cover:
- ok/confidence/value invariants
- Confidence helpers and result merging
- Option validation
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from pricelens.models.extraction import (
    Confidence,
    Evidence,
    ExtractionMethod,
    ExtractionResult,
    HeuristicOptions,
    Money,
    PageType,
    PriceBreakdown,
    PriceRange,
    StabilityInfo,
    confidence_to_number,
    create_failed_result,
    create_success_result,
    is_successful_extraction,
    meets_confidence,
    merge_results,
)
from pydantic import ValidationError
from decimal import Decimal
import pytest


def _success(confidence, latency=1.0):
    breakdown = PriceBreakdown(total=Money(amount=Decimal('100'), currency='USD'))
    return create_success_result(breakdown, confidence, ExtractionMethod.HEURISTIC, Evidence(), latency)


class TestResultInvariants:
    """ok=True needs a value and a real confidence; ok=False has neither."""

    def test_failed_result(self):
        result = create_failed_result(['boom'])
        assert result.ok is False
        assert result.confidence == Confidence.NONE
        assert result.value is None
        assert result.evidence == Evidence()

    def test_success_without_value_rejected(self):
        with pytest.raises(ValidationError):
            ExtractionResult(ok=True, confidence=Confidence.HIGH)

    def test_success_with_none_confidence_rejected(self):
        with pytest.raises(ValidationError):
            ExtractionResult(ok=True, value=PriceBreakdown(), confidence=Confidence.NONE)

    def test_failure_with_confidence_rejected(self):
        with pytest.raises(ValidationError):
            ExtractionResult(ok=False, confidence=Confidence.LOW)

    def test_money_is_frozen(self):
        money = Money(amount=Decimal('1'), currency='USD')
        with pytest.raises(ValidationError):
            money.amount = Decimal('2')


class TestConfidenceHelpers:
    """Ordering and numeric mapping."""

    def test_meets_confidence(self):
        assert meets_confidence(Confidence.HIGH, Confidence.MEDIUM) is True
        assert meets_confidence(Confidence.LOW, Confidence.MEDIUM) is False
        assert meets_confidence(Confidence.NONE, Confidence.NONE) is True

    def test_confidence_to_number(self):
        assert [confidence_to_number(c) for c in Confidence] == [100, 66, 33, 0]

    def test_is_successful_extraction(self):
        assert is_successful_extraction(_success(Confidence.LOW)) is True
        assert is_successful_extraction(_success(Confidence.LOW), Confidence.MEDIUM) is False
        assert is_successful_extraction(create_failed_result(['x'])) is False

    def test_merge_results(self):
        low = _success(Confidence.LOW)
        fast_medium = _success(Confidence.MEDIUM, 1.0)
        slow_medium = _success(Confidence.MEDIUM, 5.0)
        assert merge_results([low, slow_medium, fast_medium]) is fast_medium
        assert merge_results([]) is None


class TestOptions:
    """HeuristicOptions validation."""

    def test_defaults(self):
        options = HeuristicOptions()
        assert options.page_type == PageType.UNKNOWN
        assert options.price_range.min == Decimal('50')
        assert options.price_range.max == Decimal('100000')
        assert options.expected_currency == 'USD'
        assert options.include_offscreen is False

    def test_from_dict(self):
        options = HeuristicOptions.model_validate({
            'page_type': 'search',
            'price_range': {'min': '10', 'max': '500'},
            'stability_info': {'stable_read_count': 3, 'stable_duration_ms': 1200},
        })
        assert options.page_type == PageType.SEARCH
        assert options.price_range.max == Decimal('500')
        assert options.stability_info.stable_read_count == 3

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError):
            PriceRange(min=Decimal('500'), max=Decimal('10'))

    def test_negative_stability_rejected(self):
        with pytest.raises(ValidationError):
            StabilityInfo(stable_read_count=-1)

    def test_expected_currency_upper_cased(self):
        options = HeuristicOptions.model_validate({'expected_currency': ' eur'})
        assert options.expected_currency == 'EUR'
