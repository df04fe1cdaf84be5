"""Runtime configuration for agent-runtime, read from the environment."""

from functools import lru_cache
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Loop bounds, storage and model backend settings (prefix ``AGENT_RUNTIME_``)."""

    app_name: str = "agent-runtime"
    app_env: str = "dev"
    app_debug: bool = False
    log_level: str = "INFO"
    max_turns: int = Field(default=25, ge=1)
    max_corrections: int = Field(default=3, ge=0)
    max_delegation_depth: int = Field(default=3, ge=0)
    tool_timeout_s: float | None = Field(default=None, ge=0.01)
    database_url: str = ""
    llm_provider: str = "openai"
    llm_model: str = "gpt-4o-mini"
    llm_base_url: str = ""
    llm_timeout_s: float = Field(default=60.0, ge=0.5)
    llm_max_retries: int = Field(default=1, ge=0)
    llm_backoff_s: float = Field(default=0.5, ge=0.0)
    openai_api_key: str = ""
    gemini_api_key: str = ""

    model_config = SettingsConfigDict(
        env_prefix="AGENT_RUNTIME_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        return self.database_url or os.getenv("DATABASE_URL", "")

    def resolved_openai_api_key(self) -> str:
        return self.openai_api_key or os.getenv("OPENAI_API_KEY", "")

    def resolved_gemini_api_key(self) -> str:
        return self.gemini_api_key or os.getenv("GEMINI_API_KEY", "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
