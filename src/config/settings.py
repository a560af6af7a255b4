"""Application settings loaded from environment variables via pydantic-settings.

Values are read from two sources, in priority order:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123``
  2. The ``.env`` file in the project root (local development only)

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults apply
when neither source sets a value.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """feedbackFlow application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Classification oracle (LLM providers) ===
    # Empty string = "not configured"; main.py falls through to the next provider.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints (TogetherAI, Groq, ...)
    openai_text_model: str = ""
    anthropic_api_key: str = ""
    anthropic_model: str = ""
    ollama_base_url: str = "http://localhost:11434"
    ollama_text_model: str = ""
    # Calling-layer timeout for every oracle call; on expiry the keyword
    # fallback is used.
    oracle_timeout_seconds: float = 25.0

    # === Durable store ===
    feedback_db_path: str = "data/feedback.db"
    workflow_db_path: str = "data/workflows.db"

    # === Workflow execution ===
    max_concurrent_workflows: int = 4
    sweep_concurrency: int = 10
    workflow_resume_on_startup: bool = True

    # === Chat ===
    chat_context_limit: int = 10
    chat_cache_ttl: int = 300

    # === CORS ===
    cors_allowed_origins: list[str] = ["*"]
    cors_allowed_methods: list[str] = ["GET", "POST", "PUT", "OPTIONS"]
    cors_allowed_headers: list[str] = ["Content-Type"]

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return a list of LLM provider names that have credentials or URLs configured."""
        providers: list[str] = []
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
