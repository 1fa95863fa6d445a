from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI (claim extraction, web grounding and deep review oracles)
    openai_api_key: str = ""

    # gpt-4o-mini is enough for claim segmentation, web search needs gpt-4o,
    # deep review runs on a reasoning model
    claim_extraction_model: str = "gpt-4o-mini"
    web_grounding_model: str = "gpt-4o"
    deep_review_model: str = "o3-mini"

    # Citation registries
    crossref_base_url: str = "https://api.crossref.org"
    semantic_scholar_base_url: str = "https://api.semanticscholar.org/graph/v1"

    # Optional - Semantic Scholar raises the rate limit for keyed requests
    semantic_scholar_api_key: str = ""

    # Optional - CrossRef routes requests with a contact address to its "polite" pool
    crossref_mailto: str = ""

    # Every single citation lookup is bounded by this many seconds
    citation_lookup_timeout: float = 5.0

    # Frontend origins allowed by CORS
    cors_origins: list[str] = ["http://localhost:5173"]  # Vite default

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env")


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
