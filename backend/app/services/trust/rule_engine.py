"""
Rule Engine Service.

WHAT THIS DOES:
Scans raw text for linguistic red flags — phrasing that manipulates the
reader or claims more certainty than any source could support.

WHY THIS MATTERS:
The claim extraction oracle judges plausibility, but it can be talked into
anything. These rules are deterministic: the same text always yields the
same findings, so the risk score is reproducible.

RULES:
1. Absolute language ("always", "guaranteed", "100%", ...) — one finding per term
2. Fake authority ("experts say", "studies show", ...) — one finding per phrase
3. Universal claim ("all", "no one", "every single", ...) — first match only
4. Unsupported certainty (a bare "87%") — first match only, and only when the
   text doesn't mention a confidence interval or margin of error

The first-match-only cap on rules 3 and 4 is part of the scoring model.
A text with five "all"s scores the same as a text with one.

EXAMPLE:
    Text: "Experts say the cure works 100% of the time."

    Findings:
    1. Absolute Language     "100%"         +10
    2. Fake Authority        "experts say"  +15
    3. Unsupported Certainty "100%"         +15

USAGE:
    findings = scan_red_flags(text)
"""

import logging
import re

from app.models.schemas import RedFlagFinding
from app.services.trust.lexicons import (
    ABSOLUTE_TERMS,
    AUTHORITY_TERMS,
    RISK_PENALTIES,
    UNCERTAINTY_QUALIFIERS,
    UNIVERSAL_TERMS,
)

logger = logging.getLogger(__name__)

UNIVERSAL_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(term) for term in UNIVERSAL_TERMS) + r")\b",
    re.IGNORECASE,
)

# 1-3 digits, optional decimal part, then a percent sign: "7%", "99.9%", "100%"
PERCENTAGE_PATTERN = re.compile(r"\b\d{1,3}(?:\.\d+)?%")


class RuleEngine:
    """
    Deterministic red-flag scanner.

    Stateless: one instance can be shared by any number of pipeline runs.
    """

    def scan(self, text: str) -> list[RedFlagFinding]:
        """
        Scan text and return findings in rule order.

        Args:
            text: The raw input text

        Returns:
            Absolute-language findings, then fake-authority findings
            (both in lexicon order), then at most one universal-claim and
            at most one unsupported-certainty finding.
        """
        if not isinstance(text, str) or not text:
            return []

        lower_text = text.lower()
        findings = []

        for term in ABSOLUTE_TERMS:
            if term in lower_text:
                findings.append(RedFlagFinding(
                    type="Absolute Language",
                    match=term,
                    impact=RISK_PENALTIES["ABSOLUTE_LANGUAGE"],
                ))

        for term in AUTHORITY_TERMS:
            if term in lower_text:
                findings.append(RedFlagFinding(
                    type="Fake Authority",
                    match=term,
                    impact=RISK_PENALTIES["FAKE_AUTHORITY"],
                ))

        universal_match = UNIVERSAL_PATTERN.search(text)
        if universal_match:
            findings.append(RedFlagFinding(
                type="Universal Claim",
                match=universal_match.group(0),
                impact=RISK_PENALTIES["UNIVERSAL_CLAIM"],
            ))

        certainty_match = PERCENTAGE_PATTERN.search(text)
        if certainty_match and not self._is_qualified(lower_text):
            findings.append(RedFlagFinding(
                type="Unsupported Certainty",
                match=certainty_match.group(0),
                impact=RISK_PENALTIES["UNSUPPORTED_CERTAINTY"],
            ))

        logger.debug(f"Rule scan found {len(findings)} red flag(s)")
        return findings

    def _is_qualified(self, lower_text: str) -> bool:
        """True if the text states the uncertainty of its percentages."""
        return any(qualifier in lower_text for qualifier in UNCERTAINTY_QUALIFIERS)


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def scan_red_flags(text: str) -> list[RedFlagFinding]:
    """
    Convenience function to scan text for red flags.

    Example:
        findings = scan_red_flags("Studies show it always works.")
        # [Absolute Language "always", Fake Authority "studies show"]
    """
    engine = RuleEngine()
    return engine.scan(text)
