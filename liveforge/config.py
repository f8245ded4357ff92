"""Application configuration loaded from environment variables.

Uses ``pydantic-settings`` for automatic env-var loading, type coercion,
and ``.env`` file support.  Nothing is strictly required: without an LLM
key the generator degrades to templates, and the default ledger is the
in-process simulation.
"""

VERSION = "0.1.0"

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_LEDGER_MODES = frozenset({"simulated", "http", "disabled"})


class Settings(BaseSettings):
    """Application settings -- sourced from environment / ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    FRONTEND_URL: str = "http://localhost:3000"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # -------------------------------------------------------------------------
    # Content generation.  LLM_PROVIDER is "anthropic" | "openai"; leave blank
    # to pick whichever key is set (Anthropic first).
    # -------------------------------------------------------------------------
    ANTHROPIC_API_KEY: str = ""
    OPENAI_API_KEY: str = ""
    LLM_PROVIDER: str = ""
    LLM_MODEL: str = "claude-sonnet-4-5"
    LLM_MAX_TOKENS: int = Field(default=4096, ge=256)
    GENERATOR_TIMEOUT_SECONDS: float = Field(default=90.0, gt=0)

    # -------------------------------------------------------------------------
    # Verification ledger.
    #
    #   "simulated" -- in-process append-only log (default, demo mode)
    #   "http"      -- JSON relay at LEDGER_URL that signs and submits records
    #   "disabled"  -- every ledger call fails; builds run without proofs
    # -------------------------------------------------------------------------
    LEDGER_MODE: str = "simulated"
    LEDGER_URL: str = ""
    LEDGER_API_KEY: str = ""
    LEDGER_TIMEOUT_SECONDS: float = Field(default=15.0, gt=0)
    LEDGER_SUBMIT_RETRIES: int = Field(default=2, ge=0)
    LEDGER_READ_CACHE_TTL: int = 30

    # Multiplier on the cosmetic delays between build steps.  0 disables pacing.
    BUILD_PACING: float = Field(default=1.0, ge=0)

    # Live build starts allowed per client address per hour.  0 disables the limit.
    BUILD_RATE_LIMIT_PER_HOUR: int = Field(default=30, ge=0)

    # Insert the showcase builds into the record store at startup.
    SEED_DEMO_BUILDS: bool = True

    @model_validator(mode="after")
    def _check_ledger_mode(self) -> "Settings":
        """Normalise LEDGER_MODE and fall back to simulation without a relay URL."""
        mode = self.LEDGER_MODE.strip().lower()
        if mode not in _LEDGER_MODES:
            raise ValueError(
                f"LEDGER_MODE must be one of {sorted(_LEDGER_MODES)}, got {self.LEDGER_MODE!r}"
            )
        if mode == "http" and not self.LEDGER_URL:
            mode = "simulated"
        self.LEDGER_MODE = mode
        return self


settings = Settings()


def resolve_llm_provider() -> str:
    """Return the provider the content generator should call.

    Resolution order:
      1. LLM_PROVIDER when set explicitly
      2. "anthropic" when ANTHROPIC_API_KEY is set
      3. "openai" when OPENAI_API_KEY is set
      4. "" -- no provider, generation always falls back to templates
    """
    if settings.LLM_PROVIDER:
        return settings.LLM_PROVIDER.lower()
    if settings.ANTHROPIC_API_KEY:
        return "anthropic"
    if settings.OPENAI_API_KEY:
        return "openai"
    return ""
