"""
Test suite for breakdown assembly and evidence reporting.

Tests cover:
- Base/taxes/per-night decomposition and nights/guest wording
- DOM paths for evidence
- URL sanitizing and PII redaction
- Debug payload trimming
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from pricelens.models.extraction import (
    CandidateScore,
    Confidence,
    Evidence,
    ExtractionDiagnostics,
    PriceLabel,
    create_failed_result,
)
from pricelens.services.breakdown import extract_breakdown
from pricelens.services.evidence import (
    build_evidence,
    generate_debug_payload,
    redact_pii,
    sanitize_url,
    truncate_text,
)
from pricelens.utils.candidates import ScoredCandidate
from pricelens.utils.dom import get_dom_path, parse_document
from pricelens.utils.money import parse_money
from decimal import Decimal
import pytest


def _candidate(text, label=PriceLabel.UNKNOWN, score=50, nearby_text='', reasons=None):
    element = parse_document(f'<span>{text}</span>').span
    return ScoredCandidate(
        element=element,
        text=text,
        parsed=parse_money(text),
        score=score,
        label=label,
        nearby_text=nearby_text,
        reasons=reasons or [],
    )


class TestBreakdown:
    """extract_breakdown around the winning candidate."""

    def test_total_taxes_and_base(self):
        best = _candidate('$450', PriceLabel.TOTAL, 120)
        taxes = _candidate('$50', PriceLabel.TAXES_FEES, 60)
        breakdown = extract_breakdown(best, [best, taxes])

        assert breakdown.total.amount == Decimal('450')
        assert breakdown.taxes_fees.amount == Decimal('50')
        assert breakdown.base.amount == Decimal('400')
        assert breakdown.base.currency == 'USD'

    def test_first_taxes_candidate_wins(self):
        best = _candidate('$450', PriceLabel.TOTAL, 120)
        breakdown = extract_breakdown(best, [
            best,
            _candidate('$50', PriceLabel.TAXES_FEES, 60),
            _candidate('$20', PriceLabel.TAXES_FEES, 55),
        ])
        assert breakdown.taxes_fees.amount == Decimal('50')

    def test_per_night_from_other_candidate(self):
        best = _candidate('$450', PriceLabel.TOTAL, 120)
        nightly = _candidate('$150', PriceLabel.PER_NIGHT, 40)
        breakdown = extract_breakdown(best, [best, nightly])
        assert breakdown.per_night.amount == Decimal('150')
        assert breakdown.base is None

    def test_per_night_winner(self):
        best = _candidate('$99/night', PriceLabel.PER_NIGHT, 75)
        breakdown = extract_breakdown(best, [best])
        assert breakdown.total is None
        assert breakdown.per_night.amount == Decimal('99')

    def test_nights_and_guests_from_nearby_text(self):
        best = _candidate('$450', PriceLabel.TOTAL, 120, nearby_text='Total for 3 nights, 2 adults')
        breakdown = extract_breakdown(best, [best])
        assert breakdown.nights == 3
        assert breakdown.guest_count == 2

    def test_taxes_in_other_currency_leave_base_unset(self):
        best = _candidate('$450', PriceLabel.TOTAL, 120)
        taxes = _candidate('€50', PriceLabel.TAXES_FEES, 60)
        breakdown = extract_breakdown(best, [best, taxes])
        assert breakdown.taxes_fees.currency == 'EUR'
        assert breakdown.base is None

    def test_qualifier_flags(self):
        best = _candidate('from $99 per person', PriceLabel.FROM, 40)
        breakdown = extract_breakdown(best, [best])
        assert breakdown.is_from_price is True
        assert breakdown.per_person is True

    @pytest.mark.parametrize('text,label', [
        ('Starting at $450', PriceLabel.FROM),
        ('$450 per person', PriceLabel.PER_PERSON),
        ('$450', PriceLabel.TAXES_FEES),
    ])
    def test_non_nightly_winner_sets_total(self, text, label):
        best = _candidate(text, label, 40)
        breakdown = extract_breakdown(best, [best])
        assert breakdown.total.amount == Decimal('450')
        assert breakdown.per_night is None

    def test_plain_total_leaves_flags_unset(self):
        best = _candidate('$450', PriceLabel.TOTAL, 120)
        breakdown = extract_breakdown(best, [best])
        assert breakdown.is_from_price is None
        assert breakdown.per_person is None
        assert breakdown.nights is None


class TestDomPath:
    """Short CSS-like paths."""

    def test_path_stops_at_body(self):
        soup = parse_document(
            '<html><body><div class="summary box"><span id="total">$450</span></div></body></html>'
        )
        assert get_dom_path(soup.select_one('#total')) == 'div.summary.box > span#total'

    def test_obfuscated_classes_skipped(self):
        soup = parse_document('<div class="abcdefghijklmnopqrstuv"><span>$450</span></div>')
        assert get_dom_path(soup.span) == 'div > span'

    def test_path_length_capped(self):
        soup = parse_document('<a><b><i><u><em><span>$1</span></em></u></i></b></a>')
        assert get_dom_path(soup.span) == 'b > i > u > em > span'


class TestBuildEvidence:
    """Evidence for the winning candidate."""

    def test_evidence_fields(self):
        best = _candidate('$450', PriceLabel.TOTAL, 120, reasons=[
            '+30: Label "total" nearby', '+5: Higher amount ($450)',
        ])
        other = _candidate('$50', PriceLabel.TAXES_FEES, 60)
        evidence = build_evidence(best, [best, other], 'https://shop.example.com/cart?session=abc')

        assert evidence.matched_text == '$450'
        assert evidence.normalized_value == Decimal('450')
        assert evidence.currency == 'USD'
        assert evidence.labels_nearby == ['+30: Label "total" nearby']
        assert [c.text for c in evidence.candidate_scores] == ['$450', '$50']
        assert evidence.url == 'https://shop.example.com/cart'
        assert evidence.hostname == 'shop.example.com'
        assert evidence.dom_path == 'span'

    def test_qualifier_warnings(self):
        best = _candidate('from $99/night', PriceLabel.PER_NIGHT, 40)
        evidence = build_evidence(best, [best])
        assert evidence.warnings == [
            'Detected as "from" price - may not be final total',
            'Detected as per-night price',
        ]


class TestSanitizeUrl:
    """Query params that may carry secrets or PII are dropped."""

    def test_drops_sensitive_params(self):
        assert sanitize_url('https://x.com/book?token=abc&hotel=42') == 'https://x.com/book?hotel=42'

    def test_truncates_long_values(self):
        url = 'https://x.com/s?q=' + 'a' * 60
        assert sanitize_url(url) == 'https://x.com/s?q=[truncated]'

    def test_all_params_dropped(self):
        assert sanitize_url('https://x.com/book?email=a@b.co') == 'https://x.com/book'

    def test_unparseable_url(self):
        assert sanitize_url('not a url') == ''


class TestRedactPii:
    """Placeholders for personal data."""

    def test_email(self):
        assert redact_pii('Contact jane@example.com') == 'Contact [EMAIL]'

    def test_card(self):
        assert redact_pii('Card 4111 1111 1111 1111') == 'Card [CARD]'

    def test_phone(self):
        assert redact_pii('Call +1 (555) 123-4567') == 'Call [PHONE]'

    def test_titled_name(self):
        assert redact_pii('Guest: Mr. John Smith') == 'Guest: [NAME]'

    def test_prices_untouched(self):
        assert redact_pii('Total: $1,234.56') == 'Total: $1,234.56'


class TestDebugPayload:
    """Sanitized report of one extraction attempt."""

    def _result(self):
        long_text = 'Booked by jane@example.com for a total of $450 including all taxes and fees'
        evidence = Evidence(
            url='https://x.com/book',
            hostname='x.com',
            candidate_scores=[
                CandidateScore(text=long_text, score=90, reasons=['a', 'b', 'c', 'd', 'e']),
            ] + [CandidateScore(text=f'${i}', score=i) for i in range(10)],
            warnings=['Detected as per-night price'],
        )
        return create_failed_result(
            ['No candidate met minimum score threshold'],
            evidence,
            12.5,
            ExtractionDiagnostics(tiers_attempted=[3]),
        )

    def test_candidates_trimmed_and_redacted(self):
        payload = generate_debug_payload(self._result())
        first = payload.top_candidates[0]

        assert len(payload.top_candidates) == 5
        assert '[EMAIL]' in first.text
        assert '@' not in first.text
        assert len(first.text) == 50
        assert first.text.endswith('...')
        assert first.reasons == ['a', 'b', 'c']

    def test_url_sanitized(self):
        payload = generate_debug_payload(self._result(), 'https://x.com/book?token=abc&hotel=42')
        assert payload.hostname == 'x.com'
        assert payload.url_pattern == 'https://x.com/book?hotel=42'

    def test_falls_back_to_evidence_url(self):
        payload = generate_debug_payload(self._result())
        assert payload.url_pattern == 'https://x.com/book'
        assert payload.hostname == 'x.com'

    def test_result_fields(self):
        payload = generate_debug_payload(self._result())
        assert payload.confidence == Confidence.NONE
        assert payload.tiers_attempted == [3]
        assert payload.successful_tier is None
        assert payload.warnings == ['Detected as per-night price']
        assert payload.latency_ms == 12.5


class TestTruncateText:
    """truncate_text."""

    def test_short_text_unchanged(self):
        assert truncate_text('abc', 10) == 'abc'

    def test_long_text_ellipsis(self):
        assert truncate_text('abcdefghij', 8) == 'abcde...'
