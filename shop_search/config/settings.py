"""Application settings for the product search service.

This module provides environment-based configuration using pydantic-settings.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    service_name: str = "shop-search"
    log_level: str = "INFO"
    log_json: bool = True

    # Typesense node
    typesense_host: str = Field(default="localhost")
    typesense_port: int = 8108
    typesense_protocol: str = Field(default="http")
    typesense_path: str = Field(default="")  # Reverse proxy prefix
    typesense_api_key: str = Field(default="")
    typesense_connection_timeout: float = 10.0
    typesense_collection_name: str = Field(default="products_en-US_v10_copy")

    # Result limits
    default_search_limit: int = 24
    max_search_limit: int = 100

    # Semantic strategy
    vector_truncate_dims: int = 768
    sub_search_timeout: float | None = 10.0
    concept_search_limit: int = 10
    concept_match_boost: float = 1.5

    # Fusion policy names (see search/fusion.py FUSION_POLICIES)
    fusion_policy_multi_concept: str = "concept_priority"
    fusion_policy_default: str = "vector_priority"
    fusion_policy_hybrid: str = "two_source"

    # Embeddings (OpenAI)
    openai_api_key: str = Field(default="")
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    openai_embedding_model: str = Field(default="text-embedding-3-small")
    openai_embedding_dimensions: int = 1536

    # Optional LLM intent analyzer
    intent_analyzer_enabled: bool = False
    openai_chat_model: str = Field(default="gpt-3.5-turbo")
    intent_analyzer_timeout: float = 15.0

    @property
    def typesense_url(self) -> str:
        """Get the Typesense base URL."""
        path = self.typesense_path.rstrip("/")
        return f"{self.typesense_protocol}://{self.typesense_host}:{self.typesense_port}{path}"

    class Config:
        env_prefix = ""
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
