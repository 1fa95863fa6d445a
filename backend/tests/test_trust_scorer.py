"""
Tests for the trust scoring formula.

Pure arithmetic, so every expected number is worked out by hand in the
test docstring.
Run with: pytest backend/tests/test_trust_scorer.py -v
"""

from app.models.schemas import (
    CitationMetadata,
    CitationRecord,
    Claim,
    RedFlagFinding,
    WebEvidence,
)
from app.services.trust.trust_scorer import (
    TrustScorer,
    calculate_scores,
    round_half_up,
    trust_level_for,
)


def _claim(confidence, claim_id="claim_1"):
    return Claim(
        id=claim_id,
        text=f"Claim with confidence {confidence}",
        plausibility="medium",
        confidence_score=confidence,
    )


def _citation(verified):
    return CitationRecord(
        citation="10.1038/nature12373",
        source_type="DOI",
        verified=verified,
        metadata=None if verified else CitationMetadata(error="API Error: 404"),
    )


def _web(found):
    return WebEvidence(query="q", evidence_found=found, summary="s")


FAKE_AUTHORITY = RedFlagFinding(type="Fake Authority", match="experts say", impact=15)
ABSOLUTE = RedFlagFinding(type="Absolute Language", match="always", impact=10)


# =============================================================================
# RISK SCORE
# =============================================================================

def test_risk_starts_at_base():
    assert TrustScorer().calculate_risk([], [], []) == 50


def test_risk_adds_flags_and_citation_outcomes():
    """50 + 15 + 10 - 5 + 15 = 85"""
    risk = TrustScorer().calculate_risk(
        [FAKE_AUTHORITY, ABSOLUTE],
        [_citation(True), _citation(False)],
        [],
    )
    assert risk == 85


def test_web_evidence_found_and_missing():
    scorer = TrustScorer()

    assert scorer.calculate_risk([], [], [_web(True)]) == 40
    assert scorer.calculate_risk([], [], [_web(False)]) == 55


def test_risk_is_clamped():
    scorer = TrustScorer()

    assert scorer.calculate_risk([FAKE_AUTHORITY] * 10, [], []) == 100
    assert scorer.calculate_risk([], [_citation(True)] * 20, []) == 0


# =============================================================================
# TRUST SCORE
# =============================================================================

def test_no_claims_uses_neutral_confidence():
    """round(50 * 0.6 + (100 - 50) * 0.4) = 50, no division by zero."""
    result = calculate_scores([], [], [], [])

    assert result.mean_confidence == 50
    assert result.trust_score == 50
    assert result.trust_level == "Medium"


def test_worked_example():
    """
    mean(80, 40) = 60; risk = 50 + 15 - 5 = 60
    trust = round(60 * 0.6 + 40 * 0.4) = 52 → Medium
    """
    result = calculate_scores(
        [_claim(80, "claim_1"), _claim(40, "claim_2")],
        [FAKE_AUTHORITY],
        [_citation(True)],
        [],
    )

    assert result.risk_score == 60
    assert result.trust_score == 52
    assert result.trust_level == "Medium"


def test_trust_stays_in_range_at_the_extremes():
    worst = calculate_scores([_claim(0)], [FAKE_AUTHORITY] * 10, [], [])
    best = calculate_scores([_claim(100)], [], [_citation(True)] * 20, [])

    assert (worst.risk_score, worst.trust_score, worst.trust_level) == (100, 0, "Low")
    assert (best.risk_score, best.trust_score, best.trust_level) == (0, 100, "High")


def test_round_half_up():
    assert round_half_up(52.5) == 53
    assert round_half_up(53.5) == 54
    assert round_half_up(52.49) == 52


# =============================================================================
# DEEP REVIEW ADJUSTMENT / LEVELS / EXPLANATION
# =============================================================================

def test_adjustment_is_reclamped():
    scorer = TrustScorer()

    assert scorer.apply_adjustment(90, 20) == 100
    assert scorer.apply_adjustment(10, -30) == 0
    assert scorer.apply_adjustment(50, 2.5) == 53


def test_trust_level_thresholds():
    assert trust_level_for(100) == "High"
    assert trust_level_for(75) == "High"
    assert trust_level_for(74) == "Medium"
    assert trust_level_for(50) == "Medium"
    assert trust_level_for(49) == "Low"
    assert trust_level_for(0) == "Low"


def test_standard_explanation_template():
    explanation = TrustScorer().standard_explanation(
        [_claim(80), _claim(40, "claim_2")],
        [FAKE_AUTHORITY],
        [_citation(True), _citation(False), _citation(False)],
    )

    assert explanation == (
        "Standard analysis completed. 2 claims processed. "
        "1/3 citations verified. Linguistic risk: 1 flags found."
    )
