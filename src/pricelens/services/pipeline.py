"""
Tiered price extraction.

Site-specific extractors (tiers 1-2) run first, the heuristic engine runs
as tier 3. The best acceptable result wins; a HIGH result stops the run.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable
import logging
import time

from bs4 import Tag

from pricelens.models.extraction import (
    Confidence,
    ExtractionDiagnostics,
    ExtractionResult,
    Evidence,
    HeuristicOptions,
    confidence_to_number,
    create_failed_result,
    meets_confidence,
)
from pricelens.services.heuristics import (
    HEURISTIC_TIER,
    Document,
    OptionsInput,
    coerce_options,
    extract_price_heuristically,
)
from pricelens.utils.dom import parse_document

logger = logging.getLogger(__name__)


@runtime_checkable
class PriceExtractor(Protocol):
    """
    Protocol for site-specific price extractors.

    Returns an ExtractionResult, or None when the extractor does not apply
    to the page.
    """
    tier: int

    def extract(self, document: Tag, options: HeuristicOptions) -> Optional[ExtractionResult]: ...


class HeuristicExtractor:
    """The site-agnostic engine as a pipeline tier."""
    tier = HEURISTIC_TIER

    def extract(self, document: Tag, options: HeuristicOptions) -> Optional[ExtractionResult]:
        return extract_price_heuristically(document, options)


class PipelineResult(ExtractionResult):
    """ExtractionResult plus a record of which tiers ran."""
    tiers_attempted: List[int] = []
    successful_tier: Optional[int] = None
    tier_results: Dict[int, ExtractionResult] = {}


def _is_better(candidate: ExtractionResult, current: Optional[ExtractionResult]) -> bool:
    if current is None:
        return True
    diff = confidence_to_number(candidate.confidence) - confidence_to_number(current.confidence)
    if diff != 0:
        return diff > 0
    return candidate.latency_ms < current.latency_ms


class ExtractionPipeline:
    """
    Run extractors in tier order and keep the best acceptable result.

    An extractor that raises is logged and recorded as a failed tier; the
    run continues with the next tier.
    """

    def __init__(
        self,
        extractors: Optional[List[PriceExtractor]] = None,
        min_confidence: Confidence = Confidence.LOW,
        enable_heuristics: bool = True,
        skip_tiers: Optional[List[int]] = None
    ):
        self.extractors = list(extractors or [])
        self.min_confidence = min_confidence
        self.enable_heuristics = enable_heuristics
        self.skip_tiers = set(skip_tiers or [])

        if enable_heuristics and not any(e.tier == HEURISTIC_TIER for e in self.extractors):
            self.extractors.append(HeuristicExtractor())

        self.extractors.sort(key=lambda e: e.tier)

    def _run_tier(self, extractor: PriceExtractor, document: Tag, options: HeuristicOptions) -> Optional[ExtractionResult]:
        start = time.perf_counter()
        try:
            return extractor.extract(document, options)
        except Exception as e:
            logger.warning("Tier %d extractor %s failed", extractor.tier, type(extractor).__name__, exc_info=True)
            return create_failed_result(
                [f"Tier {extractor.tier} extractor error: {e}"],
                latency_ms=(time.perf_counter() - start) * 1000,
            )

    def run(self, document: Document, options: OptionsInput = None) -> PipelineResult:
        """
        Extract a price from document, trying tiers in order.

        Args:
            document: HTML string, BeautifulSoup document or Tag
            options: HeuristicOptions or an equivalent dict

        Returns:
            PipelineResult with tiers_attempted, successful_tier and tier_results
        """
        start = time.perf_counter()
        tiers_attempted: List[int] = []
        tier_results: Dict[int, ExtractionResult] = {}

        try:
            opts = coerce_options(options)
        except ValueError as e:
            failed = create_failed_result([f"Invalid heuristic options: {e}"])
            return self._build(failed, tiers_attempted, None, tier_results, start)

        root = parse_document(document) if isinstance(document, str) else document

        best: Optional[ExtractionResult] = None
        best_tier: Optional[int] = None
        last_evidence: Optional[Evidence] = None

        for extractor in self.extractors:
            if extractor.tier in self.skip_tiers:
                continue

            result = self._run_tier(extractor, root, opts)
            if result is None:
                continue

            tiers_attempted.append(extractor.tier)
            tier_results[extractor.tier] = result
            last_evidence = result.evidence
            logger.debug("Tier %d result: ok=%s confidence=%s", extractor.tier, result.ok, result.confidence.value)

            if result.ok and meets_confidence(result.confidence, self.min_confidence) and _is_better(result, best):
                best, best_tier = result, extractor.tier
                if result.confidence == Confidence.HIGH:
                    break

        if best is None:
            best = create_failed_result(
                ['All extraction tiers failed'],
                last_evidence,
                diagnostics=ExtractionDiagnostics(missing_signals=['No valid price found on page']),
            )

        return self._build(best, tiers_attempted, best_tier, tier_results, start)

    @staticmethod
    def _build(
        result: ExtractionResult,
        tiers_attempted: List[int],
        successful_tier: Optional[int],
        tier_results: Dict[int, ExtractionResult],
        start: float
    ) -> PipelineResult:
        diagnostics = (result.diagnostics or ExtractionDiagnostics()).model_copy(update={
            'successful_tier': successful_tier,
            'tiers_attempted': list(tiers_attempted),
        })
        return PipelineResult(
            ok=result.ok,
            value=result.value,
            confidence=result.confidence,
            method=result.method,
            evidence=result.evidence,
            errors=result.errors,
            latency_ms=(time.perf_counter() - start) * 1000,
            diagnostics=diagnostics,
            tiers_attempted=list(tiers_attempted),
            successful_tier=successful_tier,
            tier_results=tier_results,
        )


def run_extraction_pipeline(
    document: Document,
    options: OptionsInput = None,
    extractors: Optional[List[PriceExtractor]] = None,
    min_confidence: Confidence = Confidence.LOW
) -> PipelineResult:
    """One-shot helper around ExtractionPipeline.run."""
    return ExtractionPipeline(extractors, min_confidence).run(document, options)


def get_extraction_summary(result: ExtractionResult) -> Dict[str, Any]:
    """Compact summary for badges and logs."""
    value = result.value
    money = None
    if value is not None:
        money = getattr(value, 'total', None) or getattr(value, 'per_night', None)

    tier = getattr(result, 'successful_tier', None)
    if tier is None and result.diagnostics:
        tier = result.diagnostics.successful_tier

    return {
        'success': result.ok,
        'confidence': result.confidence.value,
        'amount': money.amount if money else None,
        'currency': money.currency if money else None,
        'method': result.method.value,
        'tier': tier,
        'warnings': list(result.evidence.warnings),
    }
