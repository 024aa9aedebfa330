"""
Test suite for end-to-end heuristic extraction.

Tests cover:
- A checkout summary extracted with HIGH confidence and a full breakdown
- Failure results (no candidates, low scores, bad options, bad containers)
- Search-page near ties and per-night winners never reaching HIGH
- Hidden and offscreen elements
- Flight/stay range helpers and candidate listing
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from pricelens.models.extraction import Confidence, HeuristicOptions, PageType
from pricelens.services.heuristics import (
    extract_flight_price,
    extract_price_heuristically,
    extract_stay_price,
    get_all_price_candidates,
    has_extractable_price,
)
from pricelens.utils.dom import parse_document
from decimal import Decimal
import pytest


CHECKOUT_HTML = """
<div class="checkout-summary">
  <section><div><div><span>Taxes and fees</span><span>$50</span></div></div></section>
  <div><span style="font-size:20px;font-weight:bold">Total: $450</span></div>
</div>
"""

SEARCH_HTML = """
<div class="results">
  <div class="card"><span>$320</span></div>
  <div class="card"><span>$325</span></div>
  <div class="card"><span>$330</span></div>
</div>
"""


class TestCheckoutSummary:
    """Well-labelled checkout total."""

    @pytest.fixture
    def result(self):
        return extract_price_heuristically(CHECKOUT_HTML, {'page_type': 'checkout'})

    def test_high_confidence(self, result):
        assert result.ok is True
        assert result.confidence == Confidence.HIGH

    def test_breakdown(self, result):
        assert result.value.total.amount == Decimal('450')
        assert result.value.total.currency == 'USD'
        assert result.value.taxes_fees.amount == Decimal('50')
        assert result.value.base.amount == Decimal('400')

    def test_evidence(self, result):
        assert result.evidence.matched_text == 'Total: $450'
        assert result.evidence.normalized_value == Decimal('450')
        assert result.evidence.dom_path == 'div.checkout-summary > div > span'
        assert result.evidence.labels_nearby == ['+30: Label "total" nearby']
        assert [c.text for c in result.evidence.candidate_scores] == ['Total: $450', '$50']

    def test_diagnostics(self, result):
        assert result.diagnostics.successful_tier == 3
        assert result.diagnostics.tiers_attempted == [3]
        assert '+25: In summary/checkout container' in result.diagnostics.confidence_reasons

    def test_lowercase_expected_currency_keeps_high(self):
        result = extract_price_heuristically(CHECKOUT_HTML, {'page_type': 'checkout', 'expected_currency': 'usd'})
        assert result.confidence == Confidence.HIGH

    def test_accepts_parsed_document(self):
        soup = parse_document(CHECKOUT_HTML)
        result = extract_price_heuristically(soup, HeuristicOptions(page_type=PageType.CHECKOUT))
        assert result.confidence == Confidence.HIGH

    def test_url_recorded_sanitized(self):
        result = extract_price_heuristically(CHECKOUT_HTML, {
            'page_type': 'checkout',
            'url': 'https://hotel.example.com/checkout?session=abc&room=2',
        })
        assert result.evidence.url == 'https://hotel.example.com/checkout?room=2'
        assert result.evidence.hostname == 'hotel.example.com'


class TestFailures:
    """Failures are results, not exceptions."""

    def test_no_candidates(self):
        result = extract_price_heuristically('<p>Nothing for sale here</p>')
        assert result.ok is False
        assert result.confidence == Confidence.NONE
        assert result.value is None
        assert result.errors == ['No price candidates found on page']
        assert result.diagnostics.missing_signals == ['Price-like text content']

    def test_below_score_threshold(self):
        html = '<div><s style="font-size:10px;opacity:0.5">from $99 per person</s></div>'
        result = extract_price_heuristically(html)
        assert result.ok is False
        assert result.errors == ['No candidate met minimum score threshold']
        assert len(result.evidence.candidate_scores) == 1

    def test_invalid_options(self):
        result = extract_price_heuristically(CHECKOUT_HTML, {'price_range': {'min': 500, 'max': 10}})
        assert result.ok is False
        assert result.errors[0].startswith('Invalid heuristic options')

    def test_unknown_page_type(self):
        result = extract_price_heuristically(CHECKOUT_HTML, {'page_type': 'homepage'})
        assert result.ok is False
        assert result.errors[0].startswith('Invalid heuristic options')

    def test_invalid_container_selector(self):
        result = extract_price_heuristically(CHECKOUT_HTML, {'container': '[['})
        assert result.errors == ['Invalid container selector: [[']

    def test_missing_container(self):
        result = extract_price_heuristically(CHECKOUT_HTML, {'container': '#cart'})
        assert result.errors == ['Container not found: #cart']

    def test_unsupported_document(self):
        result = extract_price_heuristically(42)
        assert result.ok is False
        assert result.errors == ['Unsupported document type: int']


class TestNeverHigh:
    """Situations that must not produce HIGH."""

    def test_search_page_near_ties(self):
        result = extract_price_heuristically(SEARCH_HTML, {'page_type': 'search'})
        assert result.ok is True
        assert result.confidence in (Confidence.LOW, Confidence.MEDIUM)

    def test_per_night_winner(self):
        html = """
        <div class="price-summary">
          <span style="font-size:24px;font-weight:bold">$99/night</span>
          <button>Book now</button>
        </div>
        """
        result = extract_price_heuristically(html)
        assert result.ok is True
        assert result.confidence != Confidence.HIGH
        assert result.value.per_night.amount == Decimal('99')
        assert result.value.total is None
        assert 'Detected as per-night price' in result.evidence.warnings

    def test_from_price_winner_still_reports_total(self):
        html = '<div class="price-summary"><span>Starting at $450</span></div>'
        result = extract_price_heuristically(html)
        assert result.ok is True
        assert result.confidence != Confidence.HIGH
        assert result.value.total.amount == Decimal('450')
        assert result.value.is_from_price is True

    def test_per_person_winner_still_reports_total(self):
        html = '<div class="price-summary"><span>$450 per person</span></div>'
        result = extract_price_heuristically(html)
        assert result.ok is True
        assert result.value.total.amount == Decimal('450')
        assert result.value.per_person is True


class TestVisibility:
    """Hidden and offscreen prices."""

    def test_hidden_price_loses(self):
        html = '<div><span style="display:none">$999</span><span>Total: $450</span></div>'
        result = extract_price_heuristically(html)
        assert result.value.total.amount == Decimal('450')
        hidden = next(c for c in result.evidence.candidate_scores if c.text == '$999')
        assert '-30: Element not visible' in hidden.penalties

    def test_offscreen_ignored_by_default(self):
        html = '<div><span style="position:absolute;top:5000px">Total: $450</span></div>'
        assert extract_price_heuristically(html).ok is False

    def test_offscreen_included_on_request(self):
        html = '<div><span style="position:absolute;top:5000px">Total: $450</span></div>'
        result = extract_price_heuristically(html, {'include_offscreen': True})
        assert result.ok is True
        assert result.value.total.amount == Decimal('450')


class TestContainer:
    """Narrowing the scan to part of the page."""

    HTML = """
    <div id="ads"><span>Total: $9,999</span></div>
    <div id="cart"><span>Total: $450</span></div>
    """

    def test_selector_container(self):
        result = extract_price_heuristically(self.HTML, {'container': '#cart'})
        assert result.evidence.matched_text == 'Total: $450'

    def test_tag_container(self):
        soup = parse_document(self.HTML)
        result = extract_price_heuristically(soup, HeuristicOptions(container=soup.select_one('#cart')))
        assert result.evidence.matched_text == 'Total: $450'


class TestHelpers:
    """Convenience wrappers."""

    HTML = '<div><span>Total: $60,000</span></div>'

    def test_flight_range_rejects_large_fare(self):
        assert extract_flight_price(self.HTML).ok is False

    def test_stay_range_accepts_it(self):
        result = extract_stay_price(self.HTML)
        assert result.ok is True
        assert result.value.total.amount == Decimal('60000')

    def test_has_extractable_price(self):
        assert has_extractable_price(CHECKOUT_HTML, {'page_type': 'checkout'}) is True
        assert has_extractable_price('<p>Nothing for sale here</p>') is False

    def test_get_all_price_candidates(self):
        candidates = get_all_price_candidates(CHECKOUT_HTML, {'page_type': 'checkout'})
        assert [c.text for c in candidates] == ['Total: $450', '$50']
        assert candidates[0].score > candidates[1].score

    def test_get_all_price_candidates_bad_options(self):
        assert get_all_price_candidates(CHECKOUT_HTML, {'page_type': 'homepage'}) == []
