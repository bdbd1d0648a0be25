import logging

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Provider API keys
    openrouter_api_key: str = ""
    openai_api_key: str = ""
    gemini_api_key: str = ""
    cerebras_api_key: str = ""
    huggingface_api_token: str = ""

    # Models
    consolidated_vendor: str = "openrouter"
    consolidated_model: str = "openai/gpt-4o-mini"
    consolidated_max_tokens: int = 4096
    classifier_vendor: str = "gemini"  # single-domain citation classification
    classifier_model: str = "gemini-2.5-flash"
    openai_model: str = "gpt-4o-mini"
    gemini_model: str = "gemini-2.5-flash"
    cerebras_model: str = "llama3.1-8b"
    openrouter_model: str = "openai/gpt-4o-mini"
    huggingface_model_url: str = (
        "https://router.huggingface.co/hf-inference/models/distilbert/distilbert-base-uncased-finetuned-sst-2-english"
    )

    # Provider behaviour
    provider_timeout_seconds: float = 30.0
    consolidated_timeout_seconds: float = 90.0
    sentiment_providers: str = "cerebras,gemini,openrouter,huggingface"  # priority order, comma-separated

    # Pipeline
    consolidated_enabled: bool = True
    scoring_concurrency: int = 8

    # Caches
    cache_backend: str = "memory"  # memory | redis
    redis_url: str = "redis://localhost:6379/0"
    cache_key_prefix: str = "brandscore"

    # Storage
    database_url: str = "sqlite+aiosqlite:///./brandscore.db"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    @property
    def sentiment_provider_order(self) -> list[str]:
        return [name.strip().lower() for name in self.sentiment_providers.split(",") if name.strip()]

    def api_key_for(self, vendor: str) -> str:
        """Return the configured API key for a vendor name ("" when unset)."""
        return {
            "openrouter": self.openrouter_api_key,
            "openai": self.openai_api_key,
            "gemini": self.gemini_api_key,
            "cerebras": self.cerebras_api_key,
            "huggingface": self.huggingface_api_token,
        }.get(vendor, "")

    def model_for(self, vendor: str) -> str:
        return {
            "openrouter": self.openrouter_model,
            "openai": self.openai_model,
            "gemini": self.gemini_model,
            "cerebras": self.cerebras_model,
        }.get(vendor, "")


settings = Settings()


def validate_settings() -> None:
    """Validate critical settings. Called by entry points before scoring."""
    errors: list[str] = []

    if settings.scoring_concurrency < 1:
        errors.append("SCORING_CONCURRENCY must be at least 1")

    if settings.provider_timeout_seconds <= 0:
        errors.append("PROVIDER_TIMEOUT_SECONDS must be positive")

    if settings.cache_backend not in ("memory", "redis"):
        errors.append("CACHE_BACKEND must be 'memory' or 'redis'")

    if settings.consolidated_enabled and not settings.api_key_for(settings.consolidated_vendor):
        # Not fatal: every record takes the per-component path
        logger.warning(
            "No API key for consolidated vendor '%s', consolidated analysis disabled", settings.consolidated_vendor
        )

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
