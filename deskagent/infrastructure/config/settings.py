from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the agent server.

    Settings can be provided via environment variables with DESKAGENT_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="DESKAGENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Completion service
    model: str = "gpt-4o"
    openai_api_key: Optional[str] = None
    iteration_timeout_seconds: float = Field(default=120.0, gt=0)

    # Loop limits
    max_iterations: int = Field(default=10, ge=1)
    max_tool_records: int = Field(default=50, ge=1)
    tool_error_policy: Literal["abort", "report"] = "abort"

    # Product API the custom tools call into
    api_base_url: str = "http://localhost:3000"
    tool_timeout_seconds: float = Field(default=30.0, gt=0)

    # Builtin tools
    file_search_enabled: bool = True
    web_search_enabled: bool = True
    # Resolve a knowledge base store per tenant; vector_store_ids is used when off
    tenant_vector_stores: bool = True
    vector_store_cache_seconds: float = Field(default=3600.0, gt=0)
    vector_store_ids: List[str] = Field(default_factory=list)

    # Personas
    default_personality: int = 2

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"
    service_name: str = "deskagent"


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
