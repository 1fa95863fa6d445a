"""
Web Grounder Service.

WHAT THIS DOES:
Searches the web for evidence about ONE claim — the one the claim extractor
was least confident about — and reports whether any sources back it up.

WHY ONLY ONE CLAIM:
Search-grounded calls are slow and expensive. The weakest claim is where
corroboration changes the picture the most.

HOW IT WORKS:
OpenAI's Responses API with the web search tool. The model answers in free
text and attaches url_citation annotations for every page it used; those
annotations become our source list.

EXAMPLE:
    Claim: "The Eiffel Tower was completed in 1889"
    → GroundingResult(
        text="Yes. The tower was completed in March 1889 ...",
        sources=[GroundingSource(title="Eiffel Tower - Britannica", url="https://...")],
      )
    → WebEvidence(evidence_found=True, credible_sources=["Eiffel Tower - Britannica"])

USAGE:
    grounder = WebGrounder()
    result = await grounder.search(claim.text)
    evidence = build_web_evidence(claim.text, result)
"""

import logging
from typing import Optional
from urllib.parse import urlparse

from openai import AsyncOpenAI

from app.config import get_settings
from app.models.schemas import WebEvidence
from app.services.trust.lexicons import TRUSTED_DOMAINS
from app.services.trust.protocols import BaseWebGrounder, GroundingResult, GroundingSource

logger = logging.getLogger(__name__)

GROUNDING_PROMPT = 'Verify this claim using search: "{claim}"'


class WebGrounder(BaseWebGrounder):
    """
    Search-grounded claim checker backed by the OpenAI web search tool.

    Pipeline position:
    ... → CitationVerifier → [WebGrounder] → TrustScorer → ...
    """

    def __init__(self, client: Optional[AsyncOpenAI] = None):
        settings = get_settings()
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = settings.web_grounding_model

    async def search(self, claim_text: str) -> GroundingResult:
        """
        Ask the model to verify a claim with web search.

        Errors are NOT caught here — the pipeline decides what a failure means.
        """
        logger.info(f"Web grounding claim: '{claim_text[:80]}'")

        response = await self.client.responses.create(
            model=self.model,
            tools=[{"type": "web_search_preview"}],
            input=GROUNDING_PROMPT.format(claim=claim_text),
        )

        sources = []
        seen_urls = set()
        for item in response.output:
            if item.type != "message":
                continue
            for content in item.content:
                for annotation in getattr(content, "annotations", None) or []:
                    if annotation.type != "url_citation" or annotation.url in seen_urls:
                        continue
                    seen_urls.add(annotation.url)
                    sources.append(GroundingSource(title=annotation.title, url=annotation.url))

        logger.info(f"Web grounding returned {len(sources)} source(s)")
        return GroundingResult(text=response.output_text, sources=sources)


def is_trusted_url(url: str) -> bool:
    """
    True if the URL is hosted on a trusted domain.

    ".gov" style entries match any host with that suffix; "nature.com" style
    entries match the domain itself and its subdomains, not "notnature.com".
    """
    host = (urlparse(url).hostname or "").lower()
    if not host:
        return False

    for domain in TRUSTED_DOMAINS:
        if domain.startswith("."):
            if host.endswith(domain):
                return True
        elif host == domain or host.endswith("." + domain):
            return True
    return False


def build_web_evidence(claim_text: str, result: GroundingResult) -> WebEvidence:
    """Turn a raw grounding result into the WebEvidence record we score."""
    labels = [source.title or "Search Result" for source in result.sources]
    trusted = [
        source.title or "Search Result"
        for source in result.sources
        if is_trusted_url(source.url)
    ]

    return WebEvidence(
        query=claim_text,
        evidence_found=len(result.sources) > 0,
        credible_sources=labels,
        summary=result.text or "No summary available.",
        trusted_sources=trusted,
    )
