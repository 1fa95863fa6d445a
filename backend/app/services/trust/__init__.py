# Trust Layer Services
#
# The Trust Layer scores a block of text for trustworthiness:
# - What claims were made, and how plausible are they (ClaimExtractor)
# - Which phrasing is manipulative or overconfident (RuleEngine)
# - Do the cited papers actually exist (CitationVerifier)
# - Does the web back up the weakest claim (WebGrounder)
# - What does it all add up to (TrustScorer, DeepReviewer)
