"""
Citation Verifier Service.

WHAT THIS DOES:
Finds citations in free text and checks each one against a public registry:
- DOIs (10.1038/nature12373) → CrossRef
- Author (Year) references (Smith et al. (2020)) → Semantic Scholar

WHY THIS MATTERS:
Fabricated citations are the most common tell of AI-generated "research".
A DOI that doesn't resolve, or an author whose papers don't match the cited
year, is strong evidence that the reference was made up.

HOW IT WORKS:
1. Extract DOIs with a regex, dropping exact duplicates (first-seen order kept)
2. Extract Author (Year) pairs, keeping only the first 3 distinct pairs
   (bounds the number of outbound calls per analysis)
3. Fire every lookup at once with asyncio.gather — each one has its own
   5 second timeout and turns any failure into an unverified record
4. Return DOI records first, then Author-Year records, in extraction order

A lookup NEVER raises. A slow CrossRef response for one DOI doesn't delay
or cancel the Semantic Scholar lookup for another citation.

EXAMPLE:
    Text: "As shown in 10.1038/nature12373 and by Jones (2022)..."

    Records:
    1. {citation: "10.1038/nature12373", source_type: "DOI", verified: True,
        metadata: {title: "...", author: "Kucsko", journal: "Nature"}}
    2. {citation: "Jones (2022)", source_type: "Author-Year", verified: False,
        metadata: {error: "Lookup timed out after 5.0s"}}

USAGE:
    verifier = CitationVerifier()
    try:
        records = await verifier.extract_and_verify(text)
    finally:
        await verifier.close()
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import httpx

from app.config import get_settings
from app.models.schemas import CitationMetadata, CitationRecord

logger = logging.getLogger(__name__)

# 10. + 4-9 digit registrant code + suffix
DOI_PATTERN = re.compile(r"\b10\.\d{4,9}/[-._;()/:A-Z0-9]+\b", re.IGNORECASE)

# Capitalized surname, optional "et al.", then a 4-digit year in parentheses
AUTHOR_YEAR_PATTERN = re.compile(r"([A-Z][a-z]+(?:\s+et\s+al\.)?)\s*\((\d{4})\)")

ET_AL_SUFFIX = re.compile(r"\s+et\s+al\.$")

# Only the first 3 distinct Author (Year) references are looked up
MAX_AUTHOR_YEAR_LOOKUPS = 3


@dataclass(frozen=True)
class AuthorYearCandidate:
    """An 'Author (Year)' reference found in the text."""

    author: str
    """Author as written, including any 'et al.' (e.g., 'Smith et al.')"""

    year: str
    """4-digit year as written"""

    @property
    def surname(self) -> str:
        """Author without the 'et al.' suffix — what we search for."""
        return ET_AL_SUFFIX.sub("", self.author)

    @property
    def citation(self) -> str:
        return f"{self.author} ({self.year})"


def extract_dois(text: str) -> list[str]:
    """
    Extract all DOIs from text.

    Preserves order, removes exact duplicates.
    """
    seen = set()
    unique_dois = []
    for doi in DOI_PATTERN.findall(text):
        if doi not in seen:
            seen.add(doi)
            unique_dois.append(doi)
    return unique_dois


def extract_author_years(
    text: str,
    limit: int = MAX_AUTHOR_YEAR_LOOKUPS,
) -> list[AuthorYearCandidate]:
    """
    Extract the first `limit` distinct Author (Year) references from text.

    Example:
        extract_author_years("Jones (2022) found mixed results.")
        # [AuthorYearCandidate(author="Jones", year="2022")]
    """
    candidates = []
    for author, year in AUTHOR_YEAR_PATTERN.findall(text):
        candidate = AuthorYearCandidate(author=author, year=year)
        if candidate in candidates:
            continue
        candidates.append(candidate)
        if len(candidates) >= limit:
            break
    return candidates


class CitationVerifier:
    """
    Extracts citations and verifies them against CrossRef / Semantic Scholar.

    Pipeline position:
    Text → ClaimExtractor → RuleEngine → [CitationVerifier] → (WebGrounder) → Scoring

    Pass in an httpx.AsyncClient to share a connection pool (or to test with
    httpx.MockTransport). Otherwise the verifier creates its own client and
    you should call close() when done.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.timeout = settings.citation_lookup_timeout if timeout is None else timeout
        self.crossref_base_url = settings.crossref_base_url.rstrip("/")
        self.semantic_scholar_base_url = settings.semantic_scholar_base_url.rstrip("/")
        self.semantic_scholar_api_key = settings.semantic_scholar_api_key or None
        self.crossref_mailto = settings.crossref_mailto or None

        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client (lazy initialization)."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    # =========================================================================
    # EXTRACT + VERIFY (Trust Layer entry point)
    # =========================================================================

    async def extract_and_verify(self, text: str) -> list[CitationRecord]:
        """
        Find every citation in the text and verify them all concurrently.

        Args:
            text: The raw input text

        Returns:
            One CitationRecord per DOI (deduplicated) followed by one per
            retained Author (Year) reference. Empty list if none were found.
        """
        dois = extract_dois(text)
        candidates = extract_author_years(text)

        if not dois and not candidates:
            logger.info("No citations found in text")
            return []

        logger.info(
            f"Verifying {len(dois)} DOI(s) and {len(candidates)} author-year reference(s)"
        )

        targets = [(doi, "DOI") for doi in dois]
        targets += [(candidate.citation, "Author-Year") for candidate in candidates]

        tasks = [self.verify_doi(doi) for doi in dois]
        tasks += [self.verify_author_year(candidate) for candidate in candidates]

        # Each lookup handles its own errors; return_exceptions is the backstop
        # so one unexpected bug can't take the sibling lookups down with it
        results = await asyncio.gather(*tasks, return_exceptions=True)

        records = []
        for (citation, source_type), result in zip(targets, results):
            if isinstance(result, Exception):
                logger.error(f"Lookup for {citation} failed unexpectedly: {result}")
                records.append(_unverified(citation, source_type, str(result)))
            elif isinstance(result, BaseException):
                raise result
            else:
                records.append(result)

        verified = sum(1 for record in records if record.verified)
        logger.info(f"Citation verification complete: {verified}/{len(records)} verified")
        return records

    # =========================================================================
    # DOI: CROSSREF
    # =========================================================================

    async def verify_doi(self, doi: str) -> CitationRecord:
        """
        Resolve a DOI against CrossRef.

        Verified if CrossRef knows the DOI. Never raises — timeouts,
        HTTP errors and malformed responses become an unverified record.
        """
        try:
            return await asyncio.wait_for(self._lookup_doi(doi), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"CrossRef lookup timed out for {doi}")
            return _unverified(doi, "DOI", f"Lookup timed out after {self.timeout}s")
        except (httpx.HTTPError, ValueError, KeyError, TypeError, IndexError) as e:
            logger.warning(f"CrossRef lookup failed for {doi}: {e}")
            return _unverified(doi, "DOI", str(e) or "Network Error")

    async def _lookup_doi(self, doi: str) -> CitationRecord:
        client = await self._get_client()

        params = {"mailto": self.crossref_mailto} if self.crossref_mailto else None
        response = await client.get(
            f"{self.crossref_base_url}/works/{quote(doi, safe='')}",
            params=params,
            headers={"Accept": "application/json"},
        )

        if not response.is_success:
            return _unverified(doi, "DOI", f"API Error: {response.status_code}")

        # A resolving DOI counts as verified even if the body isn't the usual shape
        message = _field(response.json(), "message") or {}
        authors = _field(message, "author") or []

        return CitationRecord(
            citation=doi,
            source_type="DOI",
            verified=True,
            metadata=CitationMetadata(
                title=_first(_field(message, "title")) or "Untitled Work",
                author=_field(_first(authors), "family") or "Unknown",
                journal=_first(_field(message, "container-title")),
            ),
        )

    # =========================================================================
    # AUTHOR (YEAR): SEMANTIC SCHOLAR
    # =========================================================================

    async def verify_author_year(self, candidate: AuthorYearCandidate) -> CitationRecord:
        """
        Search Semantic Scholar for an Author (Year) reference.

        Verified only if the top hit's publication year equals the cited year
        — finding the author alone isn't enough. Never raises.
        """
        try:
            return await asyncio.wait_for(
                self._lookup_author_year(candidate), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"Semantic Scholar lookup timed out for {candidate.citation}")
            return _unverified(
                candidate.citation, "Author-Year", f"Lookup timed out after {self.timeout}s"
            )
        except (httpx.HTTPError, ValueError, KeyError, TypeError, IndexError) as e:
            logger.warning(f"Semantic Scholar lookup failed for {candidate.citation}: {e}")
            return _unverified(candidate.citation, "Author-Year", str(e) or "Network Error")

    async def _lookup_author_year(self, candidate: AuthorYearCandidate) -> CitationRecord:
        client = await self._get_client()

        headers = {}
        if self.semantic_scholar_api_key:
            headers["x-api-key"] = self.semantic_scholar_api_key

        response = await client.get(
            f"{self.semantic_scholar_base_url}/paper/search",
            params={
                "query": f"{candidate.surname} {candidate.year}",
                "limit": 1,
                "fields": "title,authors,year",
            },
            headers=headers,
        )

        if not response.is_success:
            return _unverified(
                candidate.citation, "Author-Year", f"API Error: {response.status_code}"
            )

        data = response.json()
        paper = _first(_field(data, "data"))
        if not _field(data, "total") or not isinstance(paper, dict):
            return _unverified(candidate.citation, "Author-Year", "No matching work found")

        paper_year = str(paper["year"]) if paper.get("year") is not None else None
        verified = paper_year == candidate.year

        if verified:
            error = None
        elif paper_year is None:
            error = "Top result has no publication year"
        else:
            error = f"Year mismatch: top result is from {paper_year}"

        title = paper.get("title")
        return CitationRecord(
            citation=candidate.citation,
            source_type="Author-Year",
            verified=verified,
            metadata=CitationMetadata(
                title=title if isinstance(title, str) else None,
                year=paper_year,
                author=_field(_first(paper.get("authors")), "name"),
                error=error,
            ),
        )

    async def close(self):
        """Close the HTTP client (only if we created it)."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None


def _first(values):
    """First element of a list, None for empty lists and non-lists."""
    if isinstance(values, list) and values:
        return values[0]
    return None


def _field(data, key: str):
    """data[key] if data is a JSON object, else None."""
    if isinstance(data, dict):
        return data.get(key)
    return None


def _unverified(citation: str, source_type: str, error: str) -> CitationRecord:
    return CitationRecord(
        citation=citation,
        source_type=source_type,
        verified=False,
        metadata=CitationMetadata(error=error),
    )


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

async def extract_and_verify_citations(text: str) -> list[CitationRecord]:
    """
    Convenience function to verify citations without managing client lifecycle.

    Example:
        records = await extract_and_verify_citations("See 10.1038/nature12373.")
        unverified = [r for r in records if not r.verified]
    """
    verifier = CitationVerifier()
    try:
        return await verifier.extract_and_verify(text)
    finally:
        await verifier.close()
