# API schemas
from app.models.schemas import (
    TrustState,
    Claim,
    RedFlagFinding,
    CitationRecord,
    WebEvidence,
)

__all__ = [
    "TrustState",
    "Claim",
    "RedFlagFinding",
    "CitationRecord",
    "WebEvidence",
]
