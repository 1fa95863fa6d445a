"""
Trust Pipeline — Orchestrates the full analysis flow.

WHAT THIS DOES:
Coordinates all Trust Layer services to turn a block of text into a scored
TrustState. This is the "brain" that ties claim extraction, rule scanning,
citation verification, grounding and scoring together.

WHY THIS EXISTS:
- Keeps API routes thin and focused on HTTP concerns
- Makes the pipeline testable in isolation (every oracle is injectable)
- Single place to understand the full flow and its failure rules

PIPELINE STAGES (strictly in this order, no going back):
1. Init
2. Claim Extraction        — oracle call, FATAL on failure
3. Rule Scan               — deterministic, can't fail
4. Citation Verification   — concurrent lookups, failures become unverified records
5. Web Grounding           — optional, failures are logged and skipped
6. Base Scoring            — pure arithmetic
7. Deep Review             — optional oracle call, FATAL on failure
8. Complete

Before each stage the pipeline calls on_progress(label) so a UI can show
what's happening during the slow steps.

USAGE:
    pipeline = TrustPipeline()
    try:
        state = await pipeline.run(
            text="Experts say the cure works 100% of the time.",
            enable_web_grounding=True,
            on_progress=print,
        )
    finally:
        await pipeline.close()
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from app.models.schemas import (
    Claim,
    CitationRecord,
    RedFlagFinding,
    TrustState,
    WebEvidence,
)
from app.services.trust.citation_verifier import CitationVerifier
from app.services.trust.claim_extractor import ClaimExtractor
from app.services.trust.deep_reviewer import DeepReviewer
from app.services.trust.protocols import (
    BaseClaimExtractor,
    BaseDeepReviewer,
    BaseWebGrounder,
)
from app.services.trust.rule_engine import RuleEngine
from app.services.trust.trust_scorer import BASE_RISK, TrustScorer, trust_level_for
from app.services.trust.web_grounder import WebGrounder, build_web_evidence

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


class PipelineStage:
    """Human-readable progress labels, one per stage."""
    INIT = "Initializing Analysis State..."
    CLAIM_EXTRACTION = "Extracting Claims..."
    RULE_SCAN = "Scanning Linguistic Red Flags..."
    CITATION_VERIFICATION = "Verifying Citations (CrossRef/Semantic Scholar)..."
    WEB_GROUNDING = "Consulting Web Grounding..."
    BASE_SCORING = "Calculating Base Trust Metrics..."
    DEEP_REVIEW = "Running Deep Review..."
    COMPLETE = "Complete"


@dataclass
class PipelineResult:
    """Intermediate result tracking through the pipeline."""

    # Input
    text: str
    enable_web_grounding: bool
    enable_deep_thinking: bool

    # Claim extraction stage
    claims: list[Claim] = field(default_factory=list)

    # Rule scan stage
    findings: list[RedFlagFinding] = field(default_factory=list)

    # Citation verification stage
    citations: list[CitationRecord] = field(default_factory=list)

    # Web grounding stage (0 or 1 entries)
    web_results: list[WebEvidence] = field(default_factory=list)

    # Scoring stages
    risk_score: int = BASE_RISK
    trust_score: int = 0
    trust_level: str = "Low"
    explanation: str = ""

    processing_step: str = ""

    def snapshot(self) -> TrustState:
        """Freeze the current progress into an immutable TrustState."""
        return TrustState(
            raw_text=self.text,
            claims=list(self.claims),
            hallucination_flags=list(self.findings),
            citation_results=list(self.citations),
            web_results=list(self.web_results),
            risk_score=self.risk_score,
            trust_score=self.trust_score,
            trust_level=self.trust_level,
            explanation=self.explanation,
            processing_step=self.processing_step,
        )


class TrustPipeline:
    """
    Orchestrates one analysis from raw text to TrustState.

    Every collaborator can be injected; anything left out gets the default
    OpenAI / CrossRef / Semantic Scholar implementation. A pipeline instance
    keeps no per-run state, so it can serve concurrent runs.
    """

    def __init__(
        self,
        claim_extractor: Optional[BaseClaimExtractor] = None,
        citation_verifier: Optional[CitationVerifier] = None,
        web_grounder: Optional[BaseWebGrounder] = None,
        deep_reviewer: Optional[BaseDeepReviewer] = None,
    ):
        self.claim_extractor = claim_extractor or ClaimExtractor()
        self.citation_verifier = citation_verifier or CitationVerifier()
        self.web_grounder = web_grounder or WebGrounder()
        self.deep_reviewer = deep_reviewer or DeepReviewer()
        self.rule_engine = RuleEngine()
        self.scorer = TrustScorer()

    async def run(
        self,
        text: str,
        enable_web_grounding: bool = False,
        enable_deep_thinking: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> TrustState:
        """
        Run the full pipeline and return a TrustState.

        Args:
            text: The text to analyze
            enable_web_grounding: Search the web for the weakest claim
            enable_deep_thinking: Run the deep review pass
            on_progress: Called with a stage label before each stage

        Returns:
            Frozen TrustState with processing_step == "Complete"

        Raises:
            ClaimExtractionError: If claims can't be extracted
            DeepReviewError: If deep review was requested and failed
        """
        logger.info(
            f"Pipeline starting: {len(text)} chars "
            f"(web_grounding={enable_web_grounding}, deep_thinking={enable_deep_thinking})"
        )

        result = PipelineResult(
            text=text,
            enable_web_grounding=enable_web_grounding,
            enable_deep_thinking=enable_deep_thinking,
        )
        self._advance(result, PipelineStage.INIT, on_progress)

        # Stage 1: Claim extraction (fatal on failure)
        await self._stage_claim_extraction(result, on_progress)

        # Stage 2: Deterministic red flags
        self._stage_rule_scan(result, on_progress)

        # Stage 3: Citation verification
        await self._stage_citation_verification(result, on_progress)

        # Stage 4: Web grounding (optional, never fatal)
        if result.enable_web_grounding and result.claims:
            await self._stage_web_grounding(result, on_progress)

        # Stage 5: Base scoring
        self._stage_base_scoring(result, on_progress)

        # Stage 6: Deep review (optional, fatal on failure)
        if result.enable_deep_thinking:
            await self._stage_deep_review(result, on_progress)
        else:
            result.explanation = self.scorer.standard_explanation(
                result.claims, result.findings, result.citations
            )

        self._advance(result, PipelineStage.COMPLETE, on_progress)
        state = result.snapshot()

        logger.info(
            f"Pipeline complete: trust={state.trust_score} ({state.trust_level}), "
            f"risk={state.risk_score}, claims={len(state.claims)}, "
            f"flags={len(state.hallucination_flags)}, citations={len(state.citation_results)}"
        )
        return state

    def _advance(
        self,
        result: PipelineResult,
        stage: str,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        """Record the stage and tell the caller about it."""
        result.processing_step = stage
        if on_progress is None:
            return
        try:
            on_progress(stage)
        except Exception as e:
            # A broken progress sink must not break the analysis
            logger.warning(f"Progress callback failed at '{stage}': {e}")

    # =========================================================================
    # STAGE 1: CLAIM EXTRACTION
    # =========================================================================

    async def _stage_claim_extraction(
        self,
        result: PipelineResult,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        """Ask the oracle for claims. Errors propagate — the run is over."""
        self._advance(result, PipelineStage.CLAIM_EXTRACTION, on_progress)
        result.claims = list(await self.claim_extractor.extract(result.text))
        logger.info(f"Extracted {len(result.claims)} claims")

    # =========================================================================
    # STAGE 2: RULE SCAN
    # =========================================================================

    def _stage_rule_scan(
        self,
        result: PipelineResult,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        self._advance(result, PipelineStage.RULE_SCAN, on_progress)
        result.findings = self.rule_engine.scan(result.text)
        logger.info(f"Found {len(result.findings)} red flag(s)")

    # =========================================================================
    # STAGE 3: CITATION VERIFICATION
    # =========================================================================

    async def _stage_citation_verification(
        self,
        result: PipelineResult,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        """Lookup failures are already folded into unverified records."""
        self._advance(result, PipelineStage.CITATION_VERIFICATION, on_progress)
        result.citations = await self.citation_verifier.extract_and_verify(result.text)

        unverified = [c.citation for c in result.citations if not c.verified]
        if unverified:
            logger.warning(f"Unverified citations: {unverified}")

    # =========================================================================
    # STAGE 4: WEB GROUNDING
    # =========================================================================

    async def _stage_web_grounding(
        self,
        result: PipelineResult,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        """
        Search the web for the lowest-confidence claim.

        min() returns the first of equal minimums, so ties go to the claim
        that was extracted first.
        """
        self._advance(result, PipelineStage.WEB_GROUNDING, on_progress)
        weakest = min(result.claims, key=lambda claim: claim.confidence_score)

        try:
            grounding = await self.web_grounder.search(weakest.text)
            evidence = build_web_evidence(weakest.text, grounding)
        except Exception as e:
            logger.warning(f"Web grounding failed, skipping: {e}")
            return

        result.web_results.append(evidence)
        logger.info(
            f"Web grounding: evidence_found={evidence.evidence_found}, "
            f"{len(evidence.credible_sources)} source(s)"
        )

    # =========================================================================
    # STAGE 5: BASE SCORING
    # =========================================================================

    def _stage_base_scoring(
        self,
        result: PipelineResult,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        self._advance(result, PipelineStage.BASE_SCORING, on_progress)
        scores = self.scorer.score(
            result.claims, result.findings, result.citations, result.web_results
        )
        result.risk_score = scores.risk_score
        result.trust_score = scores.trust_score
        result.trust_level = scores.trust_level

    # =========================================================================
    # STAGE 6: DEEP REVIEW
    # =========================================================================

    async def _stage_deep_review(
        self,
        result: PipelineResult,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        """Send the base-scored state to the reviewer. Errors propagate."""
        self._advance(result, PipelineStage.DEEP_REVIEW, on_progress)

        review = await self.deep_reviewer.review(result.snapshot().model_dump_json())

        original = result.trust_score
        result.trust_score = self.scorer.apply_adjustment(original, review.score_adjustment)
        result.trust_level = trust_level_for(result.trust_score)
        result.explanation = review.explanation
        logger.info(f"Deep review adjusted trust: {original} → {result.trust_score}")

    async def close(self):
        """Release the citation verifier's HTTP client."""
        await self.citation_verifier.close()


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

async def run_trust_pipeline(
    text: str,
    enable_web_grounding: bool = False,
    enable_deep_thinking: bool = False,
    on_progress: Optional[ProgressCallback] = None,
) -> TrustState:
    """
    Convenience function to run the trust pipeline.

    Example:
        state = await run_trust_pipeline(
            "Studies show this supplement always works.",
            enable_web_grounding=True,
        )
    """
    pipeline = TrustPipeline()
    try:
        return await pipeline.run(
            text=text,
            enable_web_grounding=enable_web_grounding,
            enable_deep_thinking=enable_deep_thinking,
            on_progress=on_progress,
        )
    finally:
        await pipeline.close()
