"""Configuration management for Spark Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")
    SUPABASE_TIMEOUT: int = Field(default=30, description="PostgREST request timeout in seconds")

    # Provider credentials (optional: missing keys degrade, they don't fail)
    VOYAGE_API_KEY: str | None = Field(default=None, description="Voyage AI API key (encoder)")
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key (chat)")
    FIRECRAWL_API_KEY: str | None = Field(default=None, description="Firecrawl API key (link scraping)")

    # Environment
    SPARK_ENGINE_ENV: str = Field(default="dev", description="Environment: dev, staging, prod, test")

    # Encoder configuration
    VOYAGE_MULTIMODAL_URL: str = Field(
        default="https://api.voyageai.com/v1/multimodalembeddings",
        description="Multimodal embeddings endpoint",
    )
    EMBEDDING_MODEL: str = Field(default="voyage-multimodal-3", description="Multimodal embedding model")
    EMBEDDING_DIM: int = Field(default=1024, description="Embedding vector dimension")
    EMBED_BATCH_SIZE: int = Field(default=50, description="Max inputs per encoder request")
    EMBED_TEXT_CHAR_BUDGET: int = Field(default=16_000, description="Text truncation before encoding")
    EMBED_IMAGE_TEXT_CHAR_BUDGET: int = Field(
        default=4_000, description="Text context truncation when an image is attached"
    )
    EMBED_TIMEOUT: float = Field(default=30.0, description="Encoder request timeout in seconds")

    # Link enrichment
    FIRECRAWL_TIMEOUT: int = Field(default=10, description="Scrape timeout in seconds")
    SCRAPE_MAX_TEXT_CHARS: int = Field(default=50_000, description="Max scraped body characters")

    # Chat / dialogue loop
    CHAT_MODEL: str = Field(default="claude-sonnet-4-5-20250929", description="Model for chat")
    CHAT_MAX_TOKENS: int = Field(default=4096, description="Max output tokens per model round")
    CHAT_MAX_TOOL_ROUNDS: int = Field(default=10, description="Max tool-call rounds per turn")
    CHAT_HISTORY_WINDOW: int = Field(default=30, description="Prior turns sent to the model")

    # Hybrid ranking
    RRF_K: int = Field(default=50, description="Reciprocal rank fusion damping constant")
    RRF_FULL_TEXT_WEIGHT: float = Field(default=1.0, description="Lexical ranking weight")
    RRF_SEMANTIC_WEIGHT: float = Field(default=1.0, description="Vector ranking weight")
    RRF_CANDIDATE_CAP: int = Field(default=30, description="Per-source cap is min(k, cap) * 2")

    # Context retrieval (chat grounding)
    RETRIEVAL_MATCH_COUNT: int = Field(default=8, description="Ranked items per chat turn")
    RETRIEVAL_RECENT_FALLBACK: int = Field(default=5, description="Recent items when ranking is unavailable")
    RETRIEVAL_MAX_IMAGES: int = Field(default=5, description="Grounding images per chat turn")
    RETRIEVAL_CONTENT_CHARS: int = Field(default=800, description="Per-entry content budget")
    SESSION_MATCH_COUNT: int = Field(default=5, description="Past sessions surfaced per chat turn")
    PRIVATE_IMAGE_HOSTS: list[str] = Field(
        default=["drive.google.com", "docs.google.com"],
        description="Hosts serving session-authenticated images the model cannot fetch",
    )

    # Similarity thresholds, tuned per call site
    CHAT_ITEM_MATCH_THRESHOLD: float = Field(default=0.25, description="Chat grounding: items")
    CHAT_SESSION_MATCH_THRESHOLD: float = Field(default=0.25, description="Chat grounding: sessions")
    TOOL_MATCH_THRESHOLD: float = Field(default=0.3, description="Chat tool vector search")
    SEARCH_MATCH_THRESHOLD: float = Field(default=0.7, description="Single-purpose search endpoint")

    # Vector space projection
    PROJECTION_ITERATIONS: int = Field(default=50, description="Power iteration steps per component")
    PROJECTION_VISUAL_BOUND: float = Field(default=3.0, description="Max absolute projected coordinate")
    PROJECTION_EDGE_THRESHOLD: float = Field(default=0.5, description="Cosine similarity for graph edges")
    PROJECTION_SEED: int = Field(default=7, description="Power iteration RNG seed")

    # Backfill
    BACKFILL_LIMIT: int = Field(default=200, description="Max items per backfill request")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
