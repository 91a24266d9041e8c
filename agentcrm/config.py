"""AgentCRM configuration via pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class AgentCRMSettings(BaseSettings):
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///agentcrm.db"
    echo_sql: bool = False
    app_title: str = "AgentCRM"
    cors_origins: str = "*"

    # LLM (OpenAI-compatible chat completions)
    openai_api_key: str = ""
    llm_base_url: str = "https://api.openai.com"
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float | None = 0.3
    llm_max_completion_tokens: int | None = 800
    llm_timeout_seconds: float = 60.0

    # Analysis pipeline
    max_records: int = 50
    worker_pool_size: int = 4
    cache_ttl_seconds: int = 300
    cache_max_entries: int = 256

    # OAuth
    token_expiring_soon_seconds: int = 300
    oauth_state_ttl_seconds: int = 600
    salesforce_client_id: str = ""
    salesforce_client_secret: str = ""
    salesforce_redirect_uri: str = "http://localhost:8030/oauth/salesforce/callback"
    salesforce_login_url: str = "https://login.salesforce.com"
    hubspot_client_id: str = ""
    hubspot_client_secret: str = ""
    hubspot_redirect_uri: str = "http://localhost:8030/oauth/hubspot/callback"

    model_config = {"env_prefix": "AGENTCRM_", "env_file": ".env", "extra": "ignore"}

    @property
    def llm_configured(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def salesforce_configured(self) -> bool:
        return bool(self.salesforce_client_id and self.salesforce_client_secret)

    @property
    def hubspot_configured(self) -> bool:
        return bool(self.hubspot_client_id and self.hubspot_client_secret)

    @property
    def pool_size(self) -> int:
        """Worker pool fan-out, clamped to 3..5."""
        return max(3, min(5, self.worker_pool_size))

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()] or ["*"]

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}


settings = AgentCRMSettings()
