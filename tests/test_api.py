"""
Test suite for the HTTP API.

Tests cover:
- Root and health endpoints
- Price extraction (success, failure, bad request)
- Single-string money parsing
- Debug payload generation
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from fastapi.testclient import TestClient
from decimal import Decimal
import pytest

from pricelens.main import app


CHECKOUT_HTML = """
<div class="checkout-summary">
  <section><div><div><span>Taxes and fees</span><span>$50</span></div></div></section>
  <div><span style="font-size:20px;font-weight:bold">Total: $450</span></div>
</div>
"""


@pytest.fixture
def client():
    return TestClient(app)


class TestStatusEndpoints:
    """Root and health check."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client):
        response = client.get("/health")
        assert response.json() == {"status": "healthy"}


class TestExtractPrice:
    """POST /extract/price"""

    def test_checkout_total(self, client):
        response = client.post("/extract/price", json={
            "html": CHECKOUT_HTML,
            "options": {"page_type": "checkout"},
        })
        data = response.json()

        assert response.status_code == 200
        assert data["ok"] is True
        assert data["confidence"] == "HIGH"
        assert data["method"] == "HEURISTIC"
        assert Decimal(data["value"]["total"]["amount"]) == Decimal("450")
        assert Decimal(data["value"]["base"]["amount"]) == Decimal("400")
        assert data["evidence"]["matched_text"] == "Total: $450"

    def test_no_price_is_not_an_http_error(self, client):
        response = client.post("/extract/price", json={"html": "<p>nothing here</p>"})
        data = response.json()

        assert response.status_code == 200
        assert data["ok"] is False
        assert data["confidence"] == "NONE"
        assert data["value"] is None
        assert data["errors"] == ["No price candidates found on page"]

    def test_bad_options_reported_in_result(self, client):
        response = client.post("/extract/price", json={
            "html": CHECKOUT_HTML,
            "options": {"page_type": "homepage"},
        })
        assert response.status_code == 200
        assert response.json()["errors"][0].startswith("Invalid heuristic options")

    def test_missing_html_rejected(self, client):
        response = client.post("/extract/price", json={})
        assert response.status_code == 422


class TestExtractMoney:
    """POST /extract/money"""

    def test_european_format(self, client):
        response = client.post("/extract/money", json={"text": "€1.234,56"})
        data = response.json()

        assert response.status_code == 200
        assert Decimal(data["amount"]) == Decimal("1234.56")
        assert data["currency"] == "EUR"

    def test_expected_currency_warning(self, client):
        response = client.post("/extract/money", json={"text": "€100", "expected_currency": "USD"})
        assert "Expected USD but detected EUR" in response.json()["warnings"]

    def test_lowercase_expected_currency(self, client):
        data = client.post("/extract/money", json={"text": "€100", "expected_currency": "eur"}).json()
        assert data["currency"] == "EUR"
        assert data["warnings"] == []

    def test_unparseable(self, client):
        data = client.post("/extract/money", json={"text": "free"}).json()
        assert data["amount"] is None
        assert data["currency"] is None
        assert data["warnings"] == ["Could not extract numeric amount"]

    def test_qualifier_flags(self, client):
        data = client.post("/extract/money", json={"text": "$99/night"}).json()
        assert data["is_per_night"] is True


class TestDebugPayload:
    """POST /extract/debug-payload"""

    def test_payload(self, client):
        response = client.post("/extract/debug-payload", json={
            "html": CHECKOUT_HTML,
            "options": {"page_type": "checkout"},
            "url": "https://hotel.example.com/checkout?token=secret&room=2",
        })
        data = response.json()

        assert response.status_code == 200
        assert data["confidence"] == "HIGH"
        assert data["hostname"] == "hotel.example.com"
        assert data["url_pattern"] == "https://hotel.example.com/checkout?room=2"
        assert data["tiers_attempted"] == [3]
        assert data["successful_tier"] == 3
        assert [c["text"] for c in data["top_candidates"]] == ["Total: $450", "$50"]
        assert "secret" not in response.text
