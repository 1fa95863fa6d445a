"""
Oracle Protocols — Abstract base classes for the external AI collaborators.

WHAT THIS IS:
The pipeline consults three AI services it does not control:
- a claim extraction oracle (splits text into claims, judges plausibility)
- a web grounding oracle (searches the web for one claim)
- a deep review oracle (second opinion on the whole analysis)

Each one is an abstract class with a single async method.

WHY ABSTRACT CLASSES:
- The pipeline can be run against deterministic stand-ins in tests
- Swapping OpenAI for another provider doesn't touch the orchestration
- The failure contract lives next to the interface it applies to

FAILURE CONTRACT:
- BaseClaimExtractor.extract    → raise ClaimExtractionError (fatal)
- BaseWebGrounder.search        → may raise anything (the pipeline skips the stage)
- BaseDeepReviewer.review       → raise DeepReviewError (fatal)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from app.models.schemas import Claim, DeepReviewResult


@dataclass
class GroundingSource:
    """One web page the grounding oracle based its answer on."""
    title: str
    url: str = ""


@dataclass
class GroundingResult:
    """Raw output of the web grounding oracle."""

    text: str
    """The oracle's free-text verdict on the claim"""

    sources: list[GroundingSource] = field(default_factory=list)
    """Pages cited by the oracle, in citation order"""


class BaseClaimExtractor(ABC):
    """
    Abstract base class for claim extraction oracles.

    The default ClaimExtractor in claim_extractor.py implements this interface.
    """

    @abstractmethod
    async def extract(self, text: str) -> list[Claim]:
        """
        Split text into atomic claims and judge each one.

        Args:
            text: The full input text

        Returns:
            Claims in the order they appear in the text

        Raises:
            ClaimExtractionError: On transport or parse failure
        """
        pass


class BaseWebGrounder(ABC):
    """
    Abstract base class for web grounding oracles.

    The default WebGrounder in web_grounder.py implements this interface.
    """

    @abstractmethod
    async def search(self, claim_text: str) -> GroundingResult:
        """
        Search the web for evidence about a single claim.

        Args:
            claim_text: The claim to check

        Returns:
            GroundingResult with a summary and the cited sources
        """
        pass


class BaseDeepReviewer(ABC):
    """
    Abstract base class for deep review oracles.

    The default DeepReviewer in deep_reviewer.py implements this interface.
    """

    @abstractmethod
    async def review(self, state_json: str) -> DeepReviewResult:
        """
        Review a serialized in-progress TrustState for hidden problems.

        Args:
            state_json: TrustState.model_dump_json() of the base-scored state

        Returns:
            DeepReviewResult with an explanation and a signed score adjustment

        Raises:
            DeepReviewError: On transport or parse failure
        """
        pass
