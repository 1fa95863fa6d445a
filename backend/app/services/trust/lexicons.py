"""
Static rule data for the Trust Layer.

Everything here is read-only: tuples for the lexicons, a MappingProxyType
for the penalties. Changing any value changes every score the system
produces, so treat edits like a scoring-model release.
"""

from types import MappingProxyType

# Risk penalty added per red-flag finding
RISK_PENALTIES = MappingProxyType({
    "ABSOLUTE_LANGUAGE": 10,
    "FAKE_AUTHORITY": 15,
    "UNIVERSAL_CLAIM": 10,
    "UNSUPPORTED_CERTAINTY": 15,
})

# Matched as plain substrings of the lower-cased text
ABSOLUTE_TERMS = (
    "always",
    "never",
    "100%",
    "absolutely",
    "undeniably",
    "guaranteed",
    "completely",
    "totally",
    "perfectly",
    "everyone knows",
    "factually impossible",
)

AUTHORITY_TERMS = (
    "experts say",
    "studies show",
    "according to scientists",
    "research suggests",
    "it is widely reported",
    "official sources",
)

# Whole-word alternatives for the universal-claim pattern
UNIVERSAL_TERMS = (
    "every single",
    "all",
    "no one",
    "universal",
    "everyone knows",
)

# A percentage is fine when the text qualifies it with one of these
UNCERTAINTY_QUALIFIERS = (
    "confidence interval",
    "margin of error",
)

# Host suffixes we consider credible when labelling web grounding sources
TRUSTED_DOMAINS = (
    ".gov",
    ".edu",
    "reuters.com",
    "nature.com",
    "bbc.com",
    "science.org",
)
