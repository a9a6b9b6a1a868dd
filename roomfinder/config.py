"""
Configuration management using Pydantic settings.
Handles backend credentials, session token secrets, and upload limits from environment variables.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application configuration
    app_name: str = "RoomFinder"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    testing: bool = False
    log_level: str = "INFO"

    # Managed backend (Supabase project)
    supabase_url: str = "http://localhost:54321"
    supabase_key: str = "public-anon-key"
    storage_bucket: str = "listing-images"

    # Application session tokens
    session_secret_key: str = "your-secret-key-change-in-production"
    session_algorithm: str = "HS256"
    session_expire_minutes: int = 60 * 24

    # File upload configuration
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    allowed_file_types: List[str] = ["image/jpeg", "image/png", "image/webp"]

    # Browse defaults
    default_max_rent: int = 50000

    # Live conversation buffer bound
    thread_buffer_size: int = 500

    # API configuration
    api_v1_prefix: str = "/api/v1"
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173", "http://localhost:8000"]

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v):
        """Strip trailing slash so storage and REST paths join cleanly."""
        if not v:
            raise ValueError("SUPABASE_URL is required")
        return v.rstrip("/")

    @field_validator("session_secret_key")
    @classmethod
    def validate_session_secret_key(cls, v):
        """Validate session secret key strength."""
        if not v:
            raise ValueError("SESSION_SECRET_KEY is required")
        if len(v) < 32 and v != "your-secret-key-change-in-production":
            raise ValueError("SESSION_SECRET_KEY must be at least 32 characters long")
        return v

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        allowed_envs = ["development", "testing", "staging", "production"]
        if v not in allowed_envs:
            raise ValueError(f"Environment must be one of: {allowed_envs}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Normalize log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing" or self.testing

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one instance of settings throughout the app lifecycle.
    """
    return Settings()


# Global settings instance
settings = get_settings()
