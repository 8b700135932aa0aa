"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables prefixed with LG_."""

    # Database
    database_url: str = ""
    database_schema: str = "leadgen"

    # Identity
    placeholder_domain: str = "finn.no"

    # Outbound enrichment webhook (empty URL disables delivery)
    enrichment_webhook_url: str = ""
    enrichment_webhook_timeout: float = 10.0
    enrichment_batch_delay: float = 0.1
    enrichment_description_max_bytes: int = 6000
    recent_job_post_hours: int = 24

    # Scraper datasets, keyed by source name (JSON object in the environment)
    dataset_urls: dict[str, str] = {}

    # Bulk import
    import_chunk_size: int = 500

    model_config = {"env_file": ".env", "env_prefix": "LG_"}


def get_settings() -> Settings:
    """Return a Settings instance built from the current environment."""
    return Settings()
