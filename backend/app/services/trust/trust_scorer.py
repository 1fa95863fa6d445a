"""
Trust Scorer Service.

WHAT THIS DOES:
Turns everything the Trust Layer found into two numbers and a label:
- risk_score (0-100, lower is better) from red flags, citations, web evidence
- trust_score (0-100, higher is better) from risk + the oracle's claim confidence
- trust_level: High / Medium / Low

FORMULA:
    risk = 50
         + sum(red flag impacts)
         - 5 per verified citation      + 15 per unverified citation
         - 10 if web evidence was found + 5 if it wasn't
    risk = clamp(risk, 0, 100)

    mean_confidence = mean(claim.confidence_score)   (50 if there are no claims)
    trust = round(mean_confidence * 0.6 + (100 - risk) * 0.4)
    trust = clamp(trust, 0, 100)

Deep review (optional) adds a signed adjustment to trust and re-clamps.

EXAMPLE:
    2 claims with confidence 80 and 40      → mean 60
    1 fake authority flag (+15), 1 verified DOI (-5)
    risk  = 50 + 15 - 5 = 60
    trust = round(60 * 0.6 + 40 * 0.4) = round(52.0) = 52  → Medium

Everything here is pure: same inputs, same score, no I/O.

USAGE:
    scorer = TrustScorer()
    result = scorer.score(claims, findings, citations, web_results)
"""

import logging
import math
from dataclasses import dataclass

from app.models.schemas import Claim, CitationRecord, RedFlagFinding, WebEvidence

logger = logging.getLogger(__name__)

BASE_RISK = 50

# How much each signal counts toward the trust score
LLM_CONFIDENCE_WEIGHT = 0.6
RISK_FACTOR_WEIGHT = 0.4

# Used when the oracle found no claims at all
NEUTRAL_CONFIDENCE = 50.0

CITATION_VERIFIED_BONUS = 5
CITATION_UNVERIFIED_PENALTY = 15  # an unverifiable citation is likely fabricated
WEB_EVIDENCE_BONUS = 10
WEB_EVIDENCE_MISSING_PENALTY = 5

HIGH_TRUST_THRESHOLD = 75
MEDIUM_TRUST_THRESHOLD = 50

MIN_SCORE = 0
MAX_SCORE = 100


@dataclass
class ScoreResult:
    """Result of a base scoring pass."""
    risk_score: int
    trust_score: int
    trust_level: str
    mean_confidence: float


def clamp_score(value: float) -> float:
    """Clamp a score into [0, 100]."""
    return max(MIN_SCORE, min(MAX_SCORE, value))


def round_half_up(value: float) -> int:
    """
    Round .5 up instead of to the nearest even number.

    Python's round(52.5) is 52; we want 53 so that a score never depends
    on the parity of its integer part.
    """
    return math.floor(value + 0.5)


def trust_level_for(trust_score: float) -> str:
    """Map a trust score to its fixed High / Medium / Low band."""
    if trust_score >= HIGH_TRUST_THRESHOLD:
        return "High"
    if trust_score >= MEDIUM_TRUST_THRESHOLD:
        return "Medium"
    return "Low"


class TrustScorer:
    """
    Aggregates Trust Layer signals into risk and trust scores.

    Pipeline position:
    ... → CitationVerifier → (WebGrounder) → [TrustScorer] → (DeepReviewer)
    """

    def calculate_risk(
        self,
        findings: list[RedFlagFinding],
        citations: list[CitationRecord],
        web_results: list[WebEvidence],
    ) -> int:
        """
        Calculate the risk score.

        Returns:
            Integer risk score clamped to [0, 100]
        """
        risk = BASE_RISK

        for finding in findings:
            risk += finding.impact

        for citation in citations:
            if citation.verified:
                risk -= CITATION_VERIFIED_BONUS
            else:
                risk += CITATION_UNVERIFIED_PENALTY

        for evidence in web_results:
            if evidence.evidence_found:
                risk -= WEB_EVIDENCE_BONUS
            else:
                risk += WEB_EVIDENCE_MISSING_PENALTY

        return int(clamp_score(risk))

    def mean_confidence(self, claims: list[Claim]) -> float:
        """Average oracle confidence across claims (neutral 50 if none)."""
        if not claims:
            return NEUTRAL_CONFIDENCE
        return sum(claim.confidence_score for claim in claims) / len(claims)

    def calculate_trust(self, claims: list[Claim], risk_score: int) -> int:
        """Blend claim confidence with inverse risk into the trust score."""
        blended = (
            self.mean_confidence(claims) * LLM_CONFIDENCE_WEIGHT
            + (MAX_SCORE - risk_score) * RISK_FACTOR_WEIGHT
        )
        return int(clamp_score(round_half_up(blended)))

    def score(
        self,
        claims: list[Claim],
        findings: list[RedFlagFinding],
        citations: list[CitationRecord],
        web_results: list[WebEvidence],
    ) -> ScoreResult:
        """
        Run the base scoring pass.

        Args:
            claims: Claims from the extraction oracle
            findings: Red flags from the rule engine
            citations: Verified / unverified citation records
            web_results: Zero or one web grounding result

        Returns:
            ScoreResult with risk, trust, level and mean confidence
        """
        risk_score = self.calculate_risk(findings, citations, web_results)
        trust_score = self.calculate_trust(claims, risk_score)

        result = ScoreResult(
            risk_score=risk_score,
            trust_score=trust_score,
            trust_level=trust_level_for(trust_score),
            mean_confidence=self.mean_confidence(claims),
        )

        logger.info(
            f"Base scoring: risk={result.risk_score}, trust={result.trust_score} "
            f"({result.trust_level}), mean confidence={result.mean_confidence:.1f}"
        )
        return result

    def apply_adjustment(self, trust_score: int, adjustment: float) -> int:
        """Apply a deep review adjustment and re-clamp."""
        return int(clamp_score(round_half_up(trust_score + adjustment)))

    def standard_explanation(
        self,
        claims: list[Claim],
        findings: list[RedFlagFinding],
        citations: list[CitationRecord],
    ) -> str:
        """Fixed-template rationale used when deep review is off."""
        verified = sum(1 for citation in citations if citation.verified)
        return (
            f"Standard analysis completed. {len(claims)} claims processed. "
            f"{verified}/{len(citations)} citations verified. "
            f"Linguistic risk: {len(findings)} flags found."
        )


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def calculate_scores(
    claims: list[Claim],
    findings: list[RedFlagFinding],
    citations: list[CitationRecord],
    web_results: list[WebEvidence],
) -> ScoreResult:
    """
    Convenience function to run the base scoring pass.
    """
    scorer = TrustScorer()
    return scorer.score(claims, findings, citations, web_results)
