import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

load_dotenv()

DEFAULT_API_BASE_URL = "http://localhost:8000/api/v1"


class Settings(BaseModel):
    # Backend API Configuration
    api_base_url: str | None = Field(default=None, alias="API_BASE_URL")
    request_timeout: float = Field(default=30.0, alias="REQUEST_TIMEOUT")
    retry_attempts: int = Field(default=3, alias="RETRY_ATTEMPTS")
    retry_delay: float = Field(default=1.0, alias="RETRY_DELAY")

    # Runtime Configuration
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # Client State Configuration
    cache_max_size: int = Field(default=256, alias="CACHE_MAX_SIZE")
    recent_searches_path: str = Field(
        default="~/.company_lookup/recent_searches.json",
        alias="RECENT_SEARCHES_PATH",
    )

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def _require_base_url_in_production(self) -> "Settings":
        if self.is_production and not self.api_base_url:
            raise ValueError("API_BASE_URL must be set when ENVIRONMENT=production")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def base_url(self) -> str:
        return (self.api_base_url or DEFAULT_API_BASE_URL).rstrip("/")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        return cls.model_validate(dict(os.environ))


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
