from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

from .errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API keys
    YOUTUBE_API_KEY: str = Field(default="")
    OPENAI_API_KEY: str | None = None

    # Ranking oracle settings
    # values: "openai" (incl. OpenAI-compatible via OPENAI_BASE_URL), or "none"
    LLM_PROVIDER: str = Field(default="openai")
    OPENAI_MODEL: str = Field(default="gpt-4o-mini")
    # Allow OpenAI-compatible backends (Gemini, Groq, OpenRouter, Ollama, etc.)
    OPENAI_BASE_URL: str | None = None

    # Tuning
    RESULTS_PER_MOOD: int = Field(default=15)
    MAX_CANDIDATES: int = Field(default=20)
    REQUESTS_TIMEOUT: int = Field(default=10)
    # Re-fetch the chosen video before answering
    VERIFY_SELECTION: bool = Field(default=False)

    # Rate limit (e.g. '10/minute')
    RATE_LIMIT: str = Field(default="10/minute")
    # Bearer token for /suggest; auth disabled when empty
    API_TOKEN: str | None = None

    LOG_LEVEL: str = Field(default="INFO")

    @property
    def oracle_enabled(self) -> bool:
        return self.LLM_PROVIDER.lower() != "none"

    def require_credentials(self) -> None:
        """
        Fail fast when a credential the pipeline needs is missing.
        Called once at startup; never per request.
        """
        if not self.YOUTUBE_API_KEY:
            raise ConfigurationError("YOUTUBE_API_KEY not configured")
        if self.oracle_enabled and not self.OPENAI_API_KEY:
            raise ConfigurationError("OPENAI_API_KEY not configured for the ranking oracle")


settings = Settings()
