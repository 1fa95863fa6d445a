"""
Tests for the trust pipeline orchestration.

Every oracle and the citation verifier are replaced by in-memory stand-ins,
so these tests exercise stage order, failure isolation and scoring without
touching the network.
Run with: pytest backend/tests/test_pipeline.py -v
"""

import json

import pytest
from pydantic import ValidationError

from app.models.schemas import CitationMetadata, CitationRecord, Claim, DeepReviewResult
from app.services.pipeline import PipelineStage, TrustPipeline
from app.services.trust.errors import ClaimExtractionError, DeepReviewError
from app.services.trust.protocols import (
    BaseClaimExtractor,
    BaseDeepReviewer,
    BaseWebGrounder,
    GroundingResult,
    GroundingSource,
)

NEUTRAL_TEXT = "Nothing notable here."
EXPERTS_TEXT = "Experts say the cure works 100% of the time."


# =============================================================================
# STAND-INS
# =============================================================================

def make_claim(claim_id, confidence, text=None):
    return Claim(
        id=claim_id,
        text=text or f"Claim {claim_id}",
        plausibility="medium",
        confidence_score=confidence,
        reasoning="stand-in",
    )


class StaticClaimExtractor(BaseClaimExtractor):
    def __init__(self, claims=None, error=None):
        self.claims = claims or []
        self.error = error
        self.calls = []

    async def extract(self, text):
        self.calls.append(text)
        if self.error:
            raise self.error
        return self.claims


class StaticWebGrounder(BaseWebGrounder):
    def __init__(self, result=None, error=None):
        self.result = result or GroundingResult(text="No evidence.", sources=[])
        self.error = error
        self.queries = []

    async def search(self, claim_text):
        self.queries.append(claim_text)
        if self.error:
            raise self.error
        return self.result


class StaticDeepReviewer(BaseDeepReviewer):
    def __init__(self, adjustment=0.0, explanation="Reviewed.", error=None):
        self.adjustment = adjustment
        self.explanation = explanation
        self.error = error
        self.inputs = []

    async def review(self, state_json):
        self.inputs.append(state_json)
        if self.error:
            raise self.error
        return DeepReviewResult(explanation=self.explanation, score_adjustment=self.adjustment)


class StaticCitationVerifier:
    def __init__(self, records=None):
        self.records = records or []
        self.closed = False

    async def extract_and_verify(self, text):
        return self.records

    async def close(self):
        self.closed = True


def make_pipeline(
    claims=None,
    extractor=None,
    citations=None,
    grounder=None,
    reviewer=None,
):
    return TrustPipeline(
        claim_extractor=extractor or StaticClaimExtractor(claims),
        citation_verifier=StaticCitationVerifier(citations),
        web_grounder=grounder or StaticWebGrounder(),
        deep_reviewer=reviewer or StaticDeepReviewer(),
    )


# =============================================================================
# HAPPY PATH
# =============================================================================

@pytest.mark.asyncio
async def test_base_run_scores_the_experts_scenario():
    """
    Flags: absolute "100%" (+10), "experts say" (+15), bare "100%" (+15)
    risk = 50 + 40 = 90; mean(80, 40) = 60
    trust = round(60 * 0.6 + 10 * 0.4) = 40 → Low
    """
    pipeline = make_pipeline(claims=[make_claim("claim_1", 80), make_claim("claim_2", 40)])

    state = await pipeline.run(EXPERTS_TEXT)

    assert state.raw_text == EXPERTS_TEXT
    assert len(state.claims) == 2
    assert len(state.hallucination_flags) == 3
    assert state.risk_score == 90
    assert state.trust_score == 40
    assert state.trust_level == "Low"
    assert state.processing_step == "Complete"
    assert state.web_results == []


@pytest.mark.asyncio
async def test_standard_explanation_without_deep_review():
    citations = [
        CitationRecord(citation="10.1038/nature12373", source_type="DOI", verified=True),
        CitationRecord(
            citation="Jones (2022)",
            source_type="Author-Year",
            verified=False,
            metadata=CitationMetadata(error="No matching work found"),
        ),
    ]
    pipeline = make_pipeline(claims=[make_claim("claim_1", 70)], citations=citations)

    state = await pipeline.run(EXPERTS_TEXT)

    assert state.explanation == (
        "Standard analysis completed. 1 claims processed. "
        "1/2 citations verified. Linguistic risk: 3 flags found."
    )
    # 50 + 40 (flags) - 5 + 15 = 100
    assert state.risk_score == 100


@pytest.mark.asyncio
async def test_zero_claims_uses_neutral_confidence():
    pipeline = make_pipeline(claims=[])

    state = await pipeline.run(NEUTRAL_TEXT, enable_web_grounding=True)

    assert state.claims == []
    assert state.risk_score == 50
    assert state.trust_score == 50
    assert state.trust_level == "Medium"
    assert pipeline.web_grounder.queries == [], "Nothing to ground without claims"


@pytest.mark.asyncio
async def test_progress_labels_in_stage_order():
    stages = []
    pipeline = make_pipeline(claims=[make_claim("claim_1", 50)])

    await pipeline.run(NEUTRAL_TEXT, on_progress=stages.append)

    assert stages == [
        PipelineStage.INIT,
        PipelineStage.CLAIM_EXTRACTION,
        PipelineStage.RULE_SCAN,
        PipelineStage.CITATION_VERIFICATION,
        PipelineStage.BASE_SCORING,
        PipelineStage.COMPLETE,
    ]


@pytest.mark.asyncio
async def test_progress_labels_with_optional_stages():
    stages = []
    pipeline = make_pipeline(claims=[make_claim("claim_1", 50)])

    await pipeline.run(
        NEUTRAL_TEXT,
        enable_web_grounding=True,
        enable_deep_thinking=True,
        on_progress=stages.append,
    )

    assert stages == [
        PipelineStage.INIT,
        PipelineStage.CLAIM_EXTRACTION,
        PipelineStage.RULE_SCAN,
        PipelineStage.CITATION_VERIFICATION,
        PipelineStage.WEB_GROUNDING,
        PipelineStage.BASE_SCORING,
        PipelineStage.DEEP_REVIEW,
        PipelineStage.COMPLETE,
    ]
    assert stages[-1] == "Complete"


@pytest.mark.asyncio
async def test_broken_progress_callback_does_not_break_the_run():
    def explode(stage):
        raise RuntimeError("UI went away")

    pipeline = make_pipeline(claims=[make_claim("claim_1", 50)])

    state = await pipeline.run(NEUTRAL_TEXT, on_progress=explode)

    assert state.processing_step == "Complete"


@pytest.mark.asyncio
async def test_result_is_frozen():
    pipeline = make_pipeline(claims=[make_claim("claim_1", 50)])
    state = await pipeline.run(NEUTRAL_TEXT)

    with pytest.raises(ValidationError):
        state.trust_score = 100


# =============================================================================
# WEB GROUNDING
# =============================================================================

@pytest.mark.asyncio
async def test_web_grounding_checks_lowest_confidence_claim():
    """Ties go to the claim extracted first."""
    claims = [
        make_claim("claim_1", 70, "Water boils at 100C at sea level"),
        make_claim("claim_2", 30, "The moon is made of cheese"),
        make_claim("claim_3", 30, "Cats are reptiles"),
    ]
    grounder = StaticWebGrounder()
    pipeline = make_pipeline(claims=claims, grounder=grounder)

    await pipeline.run(NEUTRAL_TEXT, enable_web_grounding=True)

    assert grounder.queries == ["The moon is made of cheese"]


@pytest.mark.asyncio
async def test_web_evidence_found_lowers_risk():
    """
    mean(70, 30) = 50; risk = 50 - 10 = 40
    trust = round(50 * 0.6 + 60 * 0.4) = 54
    """
    grounder = StaticWebGrounder(GroundingResult(
        text="Confirmed by NASA.",
        sources=[
            GroundingSource(title="NASA Moon Facts", url="https://science.nasa.gov/moon"),
            GroundingSource(title="", url="https://example.com/moon"),
        ],
    ))
    pipeline = make_pipeline(
        claims=[make_claim("claim_1", 70), make_claim("claim_2", 30)],
        grounder=grounder,
    )

    state = await pipeline.run(NEUTRAL_TEXT, enable_web_grounding=True)

    evidence = state.web_results[0]
    assert evidence.evidence_found
    assert evidence.query == "Claim claim_2"
    assert evidence.credible_sources == ["NASA Moon Facts", "Search Result"]
    assert evidence.trusted_sources == ["NASA Moon Facts"]
    assert evidence.summary == "Confirmed by NASA."
    assert state.risk_score == 40
    assert state.trust_score == 54


@pytest.mark.asyncio
async def test_web_evidence_missing_raises_risk():
    """risk = 50 + 5 = 55; trust = round(30 + 18) = 48 → Low"""
    pipeline = make_pipeline(claims=[make_claim("claim_1", 70), make_claim("claim_2", 30)])

    state = await pipeline.run(NEUTRAL_TEXT, enable_web_grounding=True)

    assert not state.web_results[0].evidence_found
    assert state.risk_score == 55
    assert state.trust_score == 48
    assert state.trust_level == "Low"


@pytest.mark.asyncio
async def test_web_grounding_failure_is_skipped():
    grounder = StaticWebGrounder(error=RuntimeError("search quota exceeded"))
    pipeline = make_pipeline(claims=[make_claim("claim_1", 50)], grounder=grounder)

    state = await pipeline.run(NEUTRAL_TEXT, enable_web_grounding=True)

    assert state.web_results == []
    assert state.risk_score == 50
    assert state.processing_step == "Complete"


@pytest.mark.asyncio
async def test_web_grounding_disabled_by_default():
    grounder = StaticWebGrounder()
    pipeline = make_pipeline(claims=[make_claim("claim_1", 50)], grounder=grounder)

    await pipeline.run(NEUTRAL_TEXT)

    assert grounder.queries == []


# =============================================================================
# DEEP REVIEW
# =============================================================================

@pytest.mark.asyncio
async def test_deep_review_adjusts_score_and_replaces_explanation():
    """Base: mean 70 → round(42 + 20) = 62 (Medium); +20 → 82 (High)."""
    reviewer = StaticDeepReviewer(adjustment=20, explanation="Well sourced overall.")
    pipeline = make_pipeline(claims=[make_claim("claim_1", 70)], reviewer=reviewer)

    state = await pipeline.run(NEUTRAL_TEXT, enable_deep_thinking=True)

    assert state.trust_score == 82
    assert state.trust_level == "High"
    assert state.explanation == "Well sourced overall."


@pytest.mark.asyncio
async def test_deep_review_receives_base_scored_state():
    reviewer = StaticDeepReviewer()
    pipeline = make_pipeline(claims=[make_claim("claim_1", 70)], reviewer=reviewer)

    await pipeline.run(NEUTRAL_TEXT, enable_deep_thinking=True)

    payload = json.loads(reviewer.inputs[0])
    assert payload["raw_text"] == NEUTRAL_TEXT
    assert payload["trust_score"] == 62
    assert payload["risk_score"] == 50
    assert payload["processing_step"] == PipelineStage.DEEP_REVIEW
    assert payload["claims"][0]["id"] == "claim_1"


@pytest.mark.asyncio
async def test_deep_review_adjustment_is_clamped():
    reviewer = StaticDeepReviewer(adjustment=-500)
    pipeline = make_pipeline(claims=[make_claim("claim_1", 70)], reviewer=reviewer)

    state = await pipeline.run(NEUTRAL_TEXT, enable_deep_thinking=True)

    assert state.trust_score == 0
    assert state.trust_level == "Low"


@pytest.mark.asyncio
async def test_deep_review_failure_is_fatal():
    reviewer = StaticDeepReviewer(error=DeepReviewError("model overloaded"))
    pipeline = make_pipeline(claims=[make_claim("claim_1", 70)], reviewer=reviewer)

    with pytest.raises(DeepReviewError):
        await pipeline.run(NEUTRAL_TEXT, enable_deep_thinking=True)


# =============================================================================
# CLAIM EXTRACTION FAILURE
# =============================================================================

@pytest.mark.asyncio
async def test_claim_extraction_failure_is_fatal():
    stages = []
    extractor = StaticClaimExtractor(error=ClaimExtractionError("bad JSON"))
    pipeline = make_pipeline(extractor=extractor)

    with pytest.raises(ClaimExtractionError):
        await pipeline.run(NEUTRAL_TEXT, on_progress=stages.append)

    assert stages == [PipelineStage.INIT, PipelineStage.CLAIM_EXTRACTION]
    assert extractor.calls == [NEUTRAL_TEXT]


@pytest.mark.asyncio
async def test_close_releases_citation_verifier():
    pipeline = make_pipeline()

    await pipeline.close()

    assert pipeline.citation_verifier.closed
