"""Service configuration with environment-based settings."""

import os
from dataclasses import dataclass
from functools import lru_cache


@dataclass
class ServiceConfig:
    """Production service configuration."""

    # API Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Model Gateway
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    gemini_api_key: str = ""
    general_model: str = "thedrummer/cydonia-24b-v4.1"
    research_model: str = "google/gemini-2.5-flash-lite-preview-09-2025"
    research_provider: str = "chat_completions"  # chat_completions or gemini
    site_url: str = "http://localhost:3000"
    site_name: str = "PolyPact"

    # Primary legal-source search (optional)
    indian_kanoon_api_key: str = ""

    # Identity
    jwt_secret: str = ""

    # Timeouts and background work
    model_timeout_seconds: float = 60.0
    search_timeout_seconds: float = 30.0
    summary_delay_seconds: float = 10.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # json or text

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """Load configuration from environment variables."""
        return cls(
            # API Settings
            host=os.getenv("POLYPACT_HOST", "0.0.0.0"),
            port=int(os.getenv("POLYPACT_PORT", "8000")),
            debug=os.getenv("POLYPACT_DEBUG", "false").lower() == "true",
            # Model Gateway
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY", ""),
            openrouter_base_url=os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"),
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            general_model=os.getenv("POLYPACT_GENERAL_MODEL", "thedrummer/cydonia-24b-v4.1"),
            research_model=os.getenv("POLYPACT_RESEARCH_MODEL", "google/gemini-2.5-flash-lite-preview-09-2025"),
            research_provider=os.getenv("POLYPACT_RESEARCH_PROVIDER", "chat_completions"),
            site_url=os.getenv("SITE_URL", "http://localhost:3000"),
            site_name=os.getenv("SITE_NAME", "PolyPact"),
            # Search
            indian_kanoon_api_key=os.getenv("INDIAN_KANOON_API_KEY", ""),
            # Identity
            jwt_secret=os.getenv("POLYPACT_JWT_SECRET", ""),
            # Timeouts
            model_timeout_seconds=float(os.getenv("POLYPACT_MODEL_TIMEOUT_SECONDS", "60")),
            search_timeout_seconds=float(os.getenv("POLYPACT_SEARCH_TIMEOUT_SECONDS", "30")),
            summary_delay_seconds=float(os.getenv("POLYPACT_SUMMARY_DELAY_SECONDS", "10")),
            # Logging
            log_level=os.getenv("POLYPACT_LOG_LEVEL", "INFO"),
            log_format=os.getenv("POLYPACT_LOG_FORMAT", "text"),
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.openrouter_api_key:
            errors.append("OPENROUTER_API_KEY is required")

        if self.research_provider not in ("chat_completions", "gemini"):
            errors.append(f"Unknown POLYPACT_RESEARCH_PROVIDER: {self.research_provider}")

        if self.research_provider == "gemini" and not self.gemini_api_key:
            errors.append("GEMINI_API_KEY is required when POLYPACT_RESEARCH_PROVIDER=gemini")

        if not self.jwt_secret:
            errors.append("POLYPACT_JWT_SECRET is required")

        if self.model_timeout_seconds <= 0 or self.search_timeout_seconds <= 0:
            errors.append("Timeouts must be positive")

        return errors


@lru_cache()
def get_config() -> ServiceConfig:
    """Get cached configuration instance."""
    return ServiceConfig.from_env()
