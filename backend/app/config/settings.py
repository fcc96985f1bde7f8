"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from urllib.parse import urlparse
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "tenantdesk_dev"

    # Bearer credentials (issued by the identity service, verified here)
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_leeway_seconds: int = 30

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Frontend URL (product access links are built from it)
    frontend_url: str = "http://localhost:3000"

    # Environment
    environment: str = "development"
    debug: bool = True

    # Bootstrap superadmin (scripts.bootstrap_superadmin)
    bootstrap_superadmin_email: str = "superadmin@tenantdesk.io"
    bootstrap_superadmin_name: str = "Super Admin"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def frontend_host(self) -> str:
        """Host part of the frontend URL, used for per-link subdomains"""
        return urlparse(self.frontend_url).netloc or self.frontend_url

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
