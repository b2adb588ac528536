"""
Configuration management for the LeaveFlow backend
"""
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import Optional, List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    DATABASE_URL: str = Field(
        default="sqlite:///./leaveflow.db",
        description="SQLAlchemy database URL (PostgreSQL in staging/prod)"
    )

    APP_ENV: str = Field(default="local", description="Application environment: local, staging, prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")

    # CORS settings
    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins. Use '*' for local only."
    )

    SERVICE_NAME: str = Field(default="leaveflow-backend", description="Service name reported by /health and /version")

    # Version (can be git SHA or semver)
    VERSION: Optional[str] = Field(default=None, description="Application version (git SHA or semver)")

    # Defaults used when a policy year has to be seeded
    DEFAULT_ESCALATION_DAYS: int = Field(default=7, description="SLA window in days before a pending approval escalates")
    DEFAULT_CARRY_FORWARD_LIMIT: int = Field(default=5, description="Max days carried into the next policy year")
    CARRY_FORWARD_EXPIRY_MONTH: int = Field(default=3, description="Month (1-12) after which carry-forward expires")
    CARRY_FORWARD_EXPIRY_DAY: int = Field(default=31, description="Day of month after which carry-forward expires")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate APP_ENV"""
        allowed = ["local", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate LOG_LEVEL"""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v.upper()

    @field_validator("DEFAULT_ESCALATION_DAYS")
    @classmethod
    def validate_escalation_days(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("DEFAULT_ESCALATION_DAYS must be greater than 0")
        return v

    @field_validator("CARRY_FORWARD_EXPIRY_MONTH")
    @classmethod
    def validate_expiry_month(cls, v: int) -> int:
        if not 1 <= v <= 12:
            raise ValueError("CARRY_FORWARD_EXPIRY_MONTH must be between 1 and 12")
        return v

    def validate_production(self) -> None:
        """
        Validate settings for production environment

        Raises:
            ValueError: If production settings are invalid
        """
        if self.APP_ENV == "prod":
            if self.ALLOWED_ORIGINS == "*" or not self.ALLOWED_ORIGINS:
                raise ValueError(
                    "ALLOWED_ORIGINS must be explicitly set (not '*') in production environment"
                )
            if self.DATABASE_URL.startswith("sqlite"):
                raise ValueError("DATABASE_URL must not point at SQLite in production environment")

    def get_allowed_origins_list(self) -> List[str]:
        """
        Get list of allowed CORS origins

        Returns:
            List of allowed origins (or ['*'] for local)
        """
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


# Create settings instance
settings = Settings()

# Validate production settings if in prod
if settings.APP_ENV == "prod":
    settings.validate_production()
