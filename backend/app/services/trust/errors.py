"""
Trust Layer exceptions.

Only the failures that end a run get an exception type. Citation lookups
and web grounding never raise past their own service — they turn into
unverified records or missing evidence instead.
"""


class TrustPipelineError(Exception):
    """Base exception for fatal analysis failures."""
    pass


class ClaimExtractionError(TrustPipelineError):
    """Raised when the claim extraction oracle fails or returns garbage."""
    pass


class DeepReviewError(TrustPipelineError):
    """Raised when the deep review oracle fails or returns garbage."""
    pass
