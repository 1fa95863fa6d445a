"""
Pydantic schemas for the trust analysis and the API request/response bodies.

These define the shape of data that goes in and out of the API.
The TrustState is the core output of the entire system.

FLOW OVERVIEW:
==============
1. User sends AnalyzeRequest to /api/analyze
2. Claim extraction oracle splits the text → Claim[]
3. Rule engine scans the text → RedFlagFinding[]
4. Citation verifier checks DOIs / Author (Year) references → CitationRecord[]
5. (optional) Web grounding checks the weakest claim → WebEvidence
6. Scoring produces risk/trust scores → TrustState
7. Dashboard displays the TrustState, history and export store it as JSON

SERIALIZED FORM:
The field names below are the analysis-document format that history
persistence and report export read back. Renaming a field breaks every
stored analysis, so don't.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


Plausibility = Literal["high", "medium", "low"]
RedFlagCategory = Literal[
    "Absolute Language",
    "Fake Authority",
    "Universal Claim",
    "Unsupported Certainty",
]
CitationSourceType = Literal["DOI", "Author-Year"]
TrustLevel = Literal["High", "Medium", "Low"]


# =============================================================================
# CLAIM SCHEMAS (produced by the claim extraction oracle)
# =============================================================================

class Claim(BaseModel):
    """
    An atomic factual assertion extracted from the input text.

    USED BY: Created by ClaimExtractor, read by the scorer and web grounding
    WHEN: First stage of every analysis run

    Example:
        Text: "Experts say the cure works 100% of the time."
        Claim: {"id": "claim_1", "text": "The cure works 100% of the time",
                "plausibility": "low", "confidence_score": 12, ...}
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique identifier within a run (e.g., 'claim_1')")
    text: str = Field(description="The claim text itself")
    plausibility: Plausibility
    confidence_score: float = Field(
        ge=0, le=100,
        description="Oracle-assigned confidence that the claim is true (0-100)"
    )
    reasoning: str = ""
    red_flags: list[str] = Field(
        default_factory=list,
        description="Red-flag labels the oracle attached to this claim"
    )


# =============================================================================
# TRUST LAYER SCHEMAS (deterministic findings and verification outcomes)
# =============================================================================

class RedFlagFinding(BaseModel):
    """
    A manipulative or unsupported phrasing found by the rule engine.

    DISPLAYED: As a risk chip next to the score gauge
    """
    model_config = ConfigDict(frozen=True)

    type: RedFlagCategory
    match: str = Field(description="The literal substring that triggered the finding")
    impact: int = Field(description="Fixed risk penalty added by this finding")


class CitationMetadata(BaseModel):
    """What the registry told us about a citation (all fields optional)."""
    model_config = ConfigDict(frozen=True)

    title: str | None = None
    author: str | None = None
    year: str | None = None
    journal: str | None = None
    error: str | None = None


class CitationRecord(BaseModel):
    """
    A DOI or Author (Year) reference found in the text plus its lookup outcome.

    LIFECYCLE:
    1. CitationVerifier extracts the literal from the text
    2. Exactly one registry lookup resolves it
    3. Never mutated afterwards
    """
    model_config = ConfigDict(frozen=True)

    citation: str = Field(description="DOI literal or 'Author (Year)' string")
    source_type: CitationSourceType
    verified: bool
    metadata: CitationMetadata | None = None

    @property
    def error(self) -> str | None:
        """Why verification failed, if the lookup reported a reason."""
        return self.metadata.error if self.metadata else None


class WebEvidence(BaseModel):
    """
    Web grounding outcome for the single lowest-confidence claim.

    Only present when web grounding is enabled and at least one claim exists.
    """
    model_config = ConfigDict(frozen=True)

    query: str = Field(description="The claim text that was searched")
    evidence_found: bool
    credible_sources: list[str] = Field(default_factory=list)
    summary: str
    trusted_sources: list[str] = Field(
        default_factory=list,
        description="Sources hosted on a trusted domain (.gov, .edu, reuters.com, ...)"
    )


class TrustState(BaseModel):
    """
    The main output of an analysis run.

    USED BY: POST /api/analyze endpoint, history persistence, report export
    WHEN: After the pipeline completes (or, frozen mid-run, as deep review input)

    FRONTEND MAPPING:
    - trust_score / trust_level → ScoreGauge
    - claims → ClaimCard list
    - citation_results → CitationNetwork
    - hallucination_flags → red flag chips
    - explanation → rationale panel
    """
    model_config = ConfigDict(frozen=True)

    raw_text: str
    claims: list[Claim] = Field(default_factory=list)
    hallucination_flags: list[RedFlagFinding] = Field(default_factory=list)
    citation_results: list[CitationRecord] = Field(default_factory=list)
    web_results: list[WebEvidence] = Field(default_factory=list, max_length=1)

    risk_score: int = Field(ge=0, le=100, description="0 best, 100 worst")
    trust_score: int = Field(ge=0, le=100, description="0 worst, 100 best")
    trust_level: TrustLevel
    explanation: str = ""
    processing_step: str = ""


class DeepReviewResult(BaseModel):
    """Output of the deep review oracle."""

    explanation: str
    score_adjustment: float = Field(
        description="Signed adjustment added to the trust score before re-clamping"
    )


# =============================================================================
# API REQUEST SCHEMAS
# =============================================================================

class AnalyzeRequest(BaseModel):
    """
    Request body for the /api/analyze endpoints.

    Example:
        POST /api/analyze
        {"text": "Experts say the cure works 100% of the time.",
         "enable_web_grounding": true}
    """
    text: str = Field(min_length=1, description="The text to score")
    enable_web_grounding: bool = Field(
        default=False,
        description="Search the web for the weakest claim"
    )
    enable_deep_thinking: bool = Field(
        default=False,
        description="Run the deep review pass (slower, may adjust the score)"
    )


class TextRequest(BaseModel):
    """Request body for the single-component endpoints (rules, citations)."""
    text: str = Field(min_length=1)
