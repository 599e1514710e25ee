"""Application settings loaded from environment variables."""

import math

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Database
    database_url: str = "sqlite+aiosqlite:///./publishing_data.db"

    # Ingestion: source files
    data_directory: str = "data"
    spreadsheet_extensions: list[str] = [".xlsx", ".xlsm"]
    sheet_selection: str = "pattern"  # "first" | "pattern"
    sheet_name_patterns: list[str] = ["subscription", "journal", "export"]
    require_known_university: bool = False  # reject files not in the known-university table

    # Ingestion: synthesized values
    cost_fallback_min: float = 15000.0
    cost_fallback_max: float = 65000.0
    subscription_start_date: str = "2024-01-01"
    subscription_end_date: str = "2024-12-31"

    # Ingestion: lifecycle
    ingest_on_startup: bool = True
    watch_data_directory: bool = False

    # LLM: Provider selection
    llm_provider: str = ""  # "openai" | "gemini" | "anthropic" | "" (auto-detect from keys)

    # LLM: API keys / endpoints
    openai_api_key: str = ""
    openai_base_url: str = ""  # empty = SDK default
    gemini_api_key: str = ""
    anthropic_api_key: str = ""

    # LLM: Model names
    openai_model: str = "gpt-4o-mini"
    gemini_model: str = "gemini-2.0-flash"
    claude_model: str = "claude-sonnet-4-20250514"

    # LLM: Resilience
    llm_timeout_seconds: float = 30.0
    llm_max_retries: int = 2

    # Logging
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_cost_fallback_range(self) -> "Settings":
        low, high = sorted((self.cost_fallback_min, self.cost_fallback_max))
        if math.ceil(low) > math.floor(high):
            raise ValueError(
                f"cost fallback range {self.cost_fallback_min}..{self.cost_fallback_max} contains no whole amount"
            )
        return self


settings = Settings()
