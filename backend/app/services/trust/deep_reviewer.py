"""
Deep Reviewer Service.

WHAT THIS DOES:
Optional second pass. A reasoning model reads the whole base-scored analysis
(claims, red flags, citation outcomes, web evidence, scores) and looks for
problems the deterministic rules can't see — a real citation used to support
a claim it doesn't make, claims that contradict each other, and so on.

It returns:
- explanation: replaces the standard template rationale
- score_adjustment: signed number added to the trust score (then re-clamped)

FAILURE:
If the user asked for a deep review and it fails, the run fails. A silently
missing second opinion would be worse than no result. Errors are raised as
DeepReviewError.

USAGE:
    reviewer = DeepReviewer()
    review = await reviewer.review(state.model_dump_json())
"""

import json
import logging
import math
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from app.config import get_settings
from app.models.schemas import DeepReviewResult
from app.services.trust.errors import DeepReviewError
from app.services.trust.protocols import BaseDeepReviewer

logger = logging.getLogger(__name__)

REVIEW_PROMPT = """You are a senior fact-checking reviewer. You receive a JSON analysis of a text: the extracted claims with plausibility judgments, deterministic red flags, citation verification results, optional web evidence, and the resulting risk and trust scores.

Deep verify this analysis for hidden hallucinations:
1. Claims that contradict each other or the cited evidence
2. Verified citations used to support something they don't say
3. Red flags that are false positives (e.g., "always" in a quotation)
4. Anything the scores over- or under-weight

OUTPUT FORMAT (JSON):
{
  "explanation": "A short paragraph for an analyst explaining the final verdict",
  "score_adjustment": -10
}

score_adjustment is added to the trust score. Keep it between -30 and 30, and use 0 if the base score is right."""


class DeepReviewer(BaseDeepReviewer):
    """
    Reasoning-model review of a complete base analysis.

    Pipeline position:
    ... → TrustScorer → [DeepReviewer] → final TrustState
    """

    def __init__(self, client: Optional[AsyncOpenAI] = None):
        settings = get_settings()
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = settings.deep_review_model

    async def review(self, state_json: str) -> DeepReviewResult:
        """
        Review a serialized TrustState.

        Raises:
            DeepReviewError: If the API call fails or the response can't be parsed
        """
        logger.info(f"Running deep review ({len(state_json)} chars of state)")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": REVIEW_PROMPT},
                    {"role": "user", "content": state_json},
                ],
                response_format={"type": "json_object"},
                reasoning_effort="high",
            )
        except OpenAIError as e:
            logger.error(f"Deep review request failed: {e}")
            raise DeepReviewError(f"Deep review request failed: {e}") from e

        if not response.choices:
            raise DeepReviewError("Deep review response has no choices")

        review = parse_review(response.choices[0].message.content)
        logger.info(f"Deep review adjustment: {review.score_adjustment:+.1f}")
        return review


def parse_review(content: Optional[str]) -> DeepReviewResult:
    """Parse the reviewer's JSON (accepts score_adjustment or scoreAdjustment)."""
    try:
        result = json.loads(content or "")
    except json.JSONDecodeError as e:
        raise DeepReviewError(f"Malformed deep review response: {e}") from e

    if not isinstance(result, dict) or "explanation" not in result:
        raise DeepReviewError("Deep review response has no explanation")

    adjustment = result.get("score_adjustment", result.get("scoreAdjustment", 0))
    try:
        value = float(adjustment)
    except (TypeError, ValueError) as e:
        raise DeepReviewError(f"Invalid score adjustment: {adjustment!r}") from e
    if not math.isfinite(value):
        raise DeepReviewError(f"Invalid score adjustment: {adjustment!r}")

    return DeepReviewResult(explanation=str(result["explanation"]), score_adjustment=value)
