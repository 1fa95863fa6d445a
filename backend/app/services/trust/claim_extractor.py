"""
Claim Extractor Service.

WHAT THIS DOES:
Breaks the input text into atomic, verifiable claims and asks the model how
plausible each one is. This is the first step of every analysis.

WHY THIS MATTERS:
You can't judge a paragraph — you judge individual claims.
The per-claim confidence scores feed straight into the trust score, and the
lowest-confidence claim is the one web grounding checks.

EXAMPLE:
    Text: "Experts say the cure works 100% of the time. It was approved in 2019."

    Extracted claims:
    1. "The cure works 100% of the time"  plausibility=low    confidence=10
    2. "The cure was approved in 2019"    plausibility=medium confidence=55

STRUCTURED OUTPUT:
We use OpenAI's JSON mode to get properly formatted claims.
Each claim includes:
- id, text
- plausibility: high / medium / low
- confidence_score: 0-100
- reasoning: one or two sentences
- red_flags: short labels ("absolute language", "no source", ...)

FAILURE:
Unlike the rest of the Trust Layer, a failure here is fatal — without
claims there is nothing to score. Every error is raised as
ClaimExtractionError.

USAGE:
    extractor = ClaimExtractor()
    claims = await extractor.extract(text)
"""

import json
import logging
from typing import Optional

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from app.config import get_settings
from app.models.schemas import Claim
from app.services.trust.errors import ClaimExtractionError
from app.services.trust.protocols import BaseClaimExtractor

logger = logging.getLogger(__name__)

PLAUSIBILITY_VALUES = ("high", "medium", "low")

EXTRACTION_PROMPT = """You are a claim extraction system for fact-checkers. Your job is to break text into atomic factual claims and judge how plausible each one is.

RULES:
1. Extract EVERY factual claim from the text, in the order they appear
2. Each claim should be a single, verifiable statement
3. Rate plausibility as "high", "medium" or "low"
4. Give a confidence_score from 0 to 100 that the claim is true
5. Explain your judgment in one or two sentences
6. List short red-flag labels for manipulative or unsupported phrasing (empty list if none)

IMPORTANT:
- Opinions and rhetorical questions are NOT claims
- Judge plausibility from general knowledge; do not assume cited sources are real

OUTPUT FORMAT (JSON):
{
  "claims": [
    {
      "id": "claim_1",
      "text": "The exact claim text",
      "plausibility": "medium",
      "confidence_score": 60,
      "reasoning": "Why you rated it this way",
      "red_flags": ["absolute language"]
    }
  ]
}

Extract claims from the following text:"""


class ClaimExtractor(BaseClaimExtractor):
    """
    Extracts atomic claims with plausibility judgments.

    This is the first step in the Trust Layer pipeline:
    Text → [ClaimExtractor] → Claims → RuleEngine → CitationVerifier → ...
    """

    def __init__(self, client: Optional[AsyncOpenAI] = None):
        settings = get_settings()
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = settings.claim_extraction_model

    async def extract(self, text: str) -> list[Claim]:
        """
        Extract claims from the input text.

        Args:
            text: The full text being analyzed

        Returns:
            List of Claim objects

        Raises:
            ClaimExtractionError: If the API call fails or the response can't be parsed
        """
        logger.info(f"Extracting claims from text ({len(text)} chars)")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": EXTRACTION_PROMPT},
                    {"role": "user", "content": text},
                ],
                response_format={"type": "json_object"},
                temperature=0.1,  # Low temperature for consistent extraction
            )
        except OpenAIError as e:
            logger.error(f"Claim extraction request failed: {e}")
            raise ClaimExtractionError(f"Claim extraction request failed: {e}") from e

        if not response.choices:
            raise ClaimExtractionError("Claim extraction response has no choices")

        claims = parse_claims(response.choices[0].message.content)
        logger.info(f"Extracted {len(claims)} claims")
        return claims


def parse_claims(content: Optional[str]) -> list[Claim]:
    """
    Parse the model's JSON into Claim objects.

    Tolerates the small stuff (missing or repeated ids, "High" instead of
    "high", confidence 105) and raises ClaimExtractionError on anything else.
    """
    try:
        result = json.loads(content or "")
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse claim extraction response: {e}")
        raise ClaimExtractionError(f"Malformed claim extraction response: {e}") from e

    # Accept a bare list as well as {"claims": [...]}
    claims_data = result.get("claims") if isinstance(result, dict) else result
    if not isinstance(claims_data, list):
        raise ClaimExtractionError("Claim extraction response has no 'claims' list")

    claims = []
    seen_ids = set()
    for i, claim_data in enumerate(claims_data):
        if not isinstance(claim_data, dict):
            raise ClaimExtractionError(f"Claim {i + 1} is not an object")

        plausibility = str(claim_data.get("plausibility", "medium")).lower()
        if plausibility not in PLAUSIBILITY_VALUES:
            plausibility = "medium"

        try:
            confidence = float(claim_data.get("confidence_score", 50))
            claim = Claim(
                id=_unique_id(claim_data.get("id"), i + 1, seen_ids),
                text=claim_data.get("text", ""),
                plausibility=plausibility,
                confidence_score=max(0.0, min(100.0, confidence)),
                reasoning=claim_data.get("reasoning") or "",
                red_flags=claim_data.get("red_flags") or [],
            )
        except (TypeError, ValueError, ValidationError) as e:
            raise ClaimExtractionError(f"Claim {i + 1} is malformed: {e}") from e

        seen_ids.add(claim.id)
        claims.append(claim)

    return claims


def _unique_id(raw_id, position: int, seen_ids: set) -> str:
    """The oracle's id, or claim_{n} when it is missing or already taken."""
    if raw_id and str(raw_id) not in seen_ids:
        return str(raw_id)

    n = position
    while f"claim_{n}" in seen_ids:
        n += 1
    return f"claim_{n}"


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

async def extract_claims(text: str) -> list[Claim]:
    """
    Convenience function to extract claims from text.

    Example:
        claims = await extract_claims("Studies show coffee cures cancer.")
    """
    extractor = ClaimExtractor()
    return await extractor.extract(text)
