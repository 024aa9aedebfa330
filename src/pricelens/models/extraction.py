"""
Pydantic models for price extraction results.

Every extraction attempt, successful or not, is returned as an
ExtractionResult carrying its Evidence, so a correction UI or a bug
report always has something to show.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Dict, Generic, List, Optional, TypeVar
from decimal import Decimal
from enum import Enum


class Confidence(str, Enum):
    """Discrete confidence levels for an extracted value."""
    HIGH = "HIGH"      # Multiple strong anchors agree, clear winner
    MEDIUM = "MEDIUM"  # Good signals but some ambiguity
    LOW = "LOW"        # Plausible number, needs verification
    NONE = "NONE"      # No valid extraction


class ExtractionMethod(str, Enum):
    """How a value was extracted (ordered roughly by reliability)."""
    SELECTOR_PRIMARY = "SELECTOR_PRIMARY"
    SELECTOR_FALLBACK = "SELECTOR_FALLBACK"
    SEMANTIC = "SEMANTIC"
    HEURISTIC = "HEURISTIC"
    USER_CONFIRMED = "USER_CONFIRMED"
    LLM = "LLM"
    MANUAL = "MANUAL"


class PageType(str, Enum):
    """Caller's classification of the page being scanned."""
    SEARCH = "search"
    DETAILS = "details"
    CHECKOUT = "checkout"
    BOOKING = "booking"
    AVAILABILITY = "availability"
    UNKNOWN = "unknown"


class PriceLabel(str, Enum):
    """What a candidate price appears to represent."""
    TOTAL = "total"
    PER_NIGHT = "perNight"
    PER_PERSON = "perPerson"
    SUBTOTAL = "subtotal"
    TAXES_FEES = "taxesFees"
    DUE_TODAY = "dueToday"
    FROM = "from"
    UNKNOWN = "unknown"


CONFIDENCE_ORDER = {
    Confidence.HIGH: 3,
    Confidence.MEDIUM: 2,
    Confidence.LOW: 1,
    Confidence.NONE: 0,
}


class Money(BaseModel):
    """A monetary amount in major units (dollars, not cents)."""
    amount: Decimal
    currency: str
    raw_text: Optional[str] = None

    class Config:
        frozen = True


class PriceBreakdown(BaseModel):
    """Decomposition of a price into its components."""
    base: Optional[Money] = None
    taxes_fees: Optional[Money] = None
    total: Optional[Money] = None
    per_night: Optional[Money] = None
    nights: Optional[int] = None
    is_from_price: Optional[bool] = None
    per_person: Optional[bool] = None
    guest_count: Optional[int] = None


class CandidateScore(BaseModel):
    """Score entry for one heuristic candidate, kept in evidence."""
    text: str
    value: Decimal = Decimal("0")
    score: int
    reasons: List[str] = []
    penalties: List[str] = []


class Evidence(BaseModel):
    """Audit record attached to every extraction attempt."""
    matched_text: str = ""
    normalized_value: Optional[Decimal] = None
    currency: Optional[str] = None
    selector: Optional[str] = None
    url: Optional[str] = None
    hostname: Optional[str] = None
    dom_path: Optional[str] = None
    labels_nearby: List[str] = []
    candidate_scores: List[CandidateScore] = []
    warnings: List[str] = []
    debug_info: Optional[Dict[str, Any]] = None


class ExtractionDiagnostics(BaseModel):
    """Why confidence is what it is, and which tiers ran."""
    confidence_reasons: List[str] = []
    missing_signals: List[str] = []
    conflicts: List[str] = []
    suggestions: List[str] = []
    successful_tier: Optional[int] = None
    tiers_attempted: List[int] = []
    used_selector: Optional[str] = None


T = TypeVar("T")


class ExtractionResult(BaseModel, Generic[T]):
    """
    Generic extraction result wrapper.

    ok=False always carries confidence NONE and no value; ok=True always
    carries a value and a confidence other than NONE.
    """
    ok: bool
    value: Optional[T] = None
    confidence: Confidence
    method: ExtractionMethod = ExtractionMethod.HEURISTIC
    evidence: Evidence = Field(default_factory=Evidence)
    errors: Optional[List[str]] = None
    latency_ms: float = 0.0
    diagnostics: Optional[ExtractionDiagnostics] = None

    @model_validator(mode="after")
    def _check_ok_invariants(self):
        if self.ok:
            if self.value is None:
                raise ValueError("successful result requires a value")
            if self.confidence == Confidence.NONE:
                raise ValueError("successful result cannot have NONE confidence")
        else:
            if self.value is not None:
                raise ValueError("failed result cannot carry a value")
            if self.confidence != Confidence.NONE:
                raise ValueError("failed result must have NONE confidence")
        return self


class StabilityInfo(BaseModel):
    """Observation supplied by an external stability watcher."""
    stable_read_count: int = Field(0, ge=0)
    stable_duration_ms: float = Field(0, ge=0)
    price_was_unstable: bool = False


class PriceRange(BaseModel):
    """Accepted amount range for candidates."""
    min: Optional[Decimal] = Decimal("50")
    max: Optional[Decimal] = Decimal("100000")

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"price_range min {self.min} exceeds max {self.max}")
        return self


class HeuristicOptions(BaseModel):
    """
    Options for heuristic price extraction.

    container may be a BeautifulSoup Tag or a CSS selector string that
    narrows the scan to a subtree of the supplied document. url is only
    recorded (sanitized) in the evidence; nothing is fetched.
    """
    page_type: PageType = PageType.UNKNOWN
    price_range: PriceRange = Field(default_factory=PriceRange)
    expected_currency: Optional[str] = "USD"
    container: Optional[Any] = None
    include_offscreen: bool = False
    debug: bool = False
    stability_info: Optional[StabilityInfo] = None
    url: Optional[str] = None

    @field_validator("expected_currency")
    @classmethod
    def _upper_currency(cls, value):
        return value.strip().upper() if value else value

    class Config:
        arbitrary_types_allowed = True


class DebugCandidate(BaseModel):
    """Trimmed candidate entry for a shareable debug report."""
    text: str
    score: int
    reasons: List[str] = []


class DebugPayload(BaseModel):
    """Sanitized, copyable report of one extraction attempt."""
    timestamp: str
    hostname: Optional[str] = None
    url_pattern: Optional[str] = None
    tiers_attempted: List[int] = []
    successful_tier: Optional[int] = None
    confidence: Confidence
    selector_attempts: List[str] = []
    top_candidates: List[DebugCandidate] = []
    warnings: List[str] = []
    latency_ms: float = 0.0


def create_failed_result(
    errors: List[str],
    evidence: Optional[Evidence] = None,
    latency_ms: float = 0.0,
    diagnostics: Optional[ExtractionDiagnostics] = None,
    method: ExtractionMethod = ExtractionMethod.HEURISTIC,
) -> ExtractionResult:
    """Create a failed extraction result (confidence NONE, no value)."""
    return ExtractionResult(
        ok=False,
        confidence=Confidence.NONE,
        method=method,
        evidence=evidence or Evidence(),
        errors=errors,
        latency_ms=latency_ms,
        diagnostics=diagnostics,
    )


def create_success_result(
    value: Any,
    confidence: Confidence,
    method: ExtractionMethod,
    evidence: Evidence,
    latency_ms: float,
    diagnostics: Optional[ExtractionDiagnostics] = None,
) -> ExtractionResult:
    """Create a successful extraction result."""
    return ExtractionResult(
        ok=True,
        value=value,
        confidence=confidence,
        method=method,
        evidence=evidence,
        latency_ms=latency_ms,
        diagnostics=diagnostics,
    )


def meets_confidence(confidence: Confidence, minimum: Confidence) -> bool:
    """Check if a confidence level meets a minimum requirement."""
    return CONFIDENCE_ORDER[confidence] >= CONFIDENCE_ORDER[minimum]


def confidence_to_number(confidence: Confidence) -> int:
    """Numeric confidence value for sorting and display."""
    return {
        Confidence.HIGH: 100,
        Confidence.MEDIUM: 66,
        Confidence.LOW: 33,
        Confidence.NONE: 0,
    }[confidence]


def is_successful_extraction(
    result: ExtractionResult,
    min_confidence: Confidence = Confidence.LOW
) -> bool:
    """True if the result succeeded with at least min_confidence."""
    return (
        result.ok
        and result.value is not None
        and meets_confidence(result.confidence, min_confidence)
    )


def merge_results(results: List[ExtractionResult]) -> Optional[ExtractionResult]:
    """Pick the result with the highest confidence, then the lowest latency."""
    if not results:
        return None

    ranked = sorted(
        results,
        key=lambda r: (-confidence_to_number(r.confidence), r.latency_ms)
    )
    return ranked[0]
