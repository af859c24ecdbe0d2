from typing import List

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field("sqlite:///retail_relay.db")
    api_title: str = Field("Retail Relay API")
    api_prefix: str = Field("/api/v1")
    jwt_secret: str = Field("your-secret-key")
    jwt_refresh_secret: str = Field("your-refresh-secret-key")
    jwt_algorithm: str = Field("HS256")
    jwt_expire: str = Field("24h")
    jwt_refresh_expire: str = Field("7d")
    bcrypt_rounds: int = Field(10)
    allowed_origins: str = Field("http://localhost:8080,http://localhost:5173")
    default_page_size: int = Field(10)
    max_page_size: int = Field(100)
    rate_limit_enabled: bool = Field(True)
    auth_rate_limit: str = Field("5/minute")

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


settings = Settings()
