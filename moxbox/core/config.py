"""Moxbox settings, read from the environment and an optional ``.env`` file."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List

DEFAULT_JWT_SECRET = "dev-insecure-key-change-me"


class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Settings are unsafe to run with in the current environment."""


def _split_csv(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseSettings):
    """Every knob of the server. Field names map to upper-case env vars."""

    environment: Environment = Field(default=Environment.DEVELOPMENT)

    cors_allowed_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Comma-separated browser origins allowed to call the API"
    )

    # Catalog and storage root
    database_url: str = Field(default="sqlite:///./data/moxbox.db")
    files_dir: str = Field(
        default="./data/files",
        description="Directory that holds every stored blob"
    )
    files_dir_autocreate: bool = Field(
        default=True,
        description="Create FILES_DIR at startup when it does not exist"
    )

    # Accounts. With AUTH_ENABLED=false every request runs as an anonymous admin.
    auth_enabled: bool = Field(default=False)
    jwt_secret_key: str = Field(default=DEFAULT_JWT_SECRET)
    jwt_algorithm: str = Field(default="HS256")
    token_expire_hours: int = Field(default=24)
    admin_username: str = Field(
        default="admin",
        description="Username of the account created on first startup"
    )
    login_file: str = Field(
        default="LOGIN.txt",
        description="Where the generated first-startup admin password is written"
    )

    # Transfers
    upload_max_file_size: int = Field(
        default=100 * 1024 * 1024,
        description="Largest accepted upload, in bytes"
    )
    upload_disallowed_mime_types: str = Field(
        default="application/x-msdownload,application/x-sh",
        description="Comma-separated MIME types refused at upload"
    )
    download_chunk_size: int = Field(default=64 * 1024)

    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="'json' or 'text'")

    def get_cors_origins(self) -> List[str]:
        """Allowed origins as a list. A wildcard is refused outright."""
        origins = _split_csv(self.cors_allowed_origins)
        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )
        return origins

    def get_disallowed_mime_types(self) -> List[str]:
        return [m.lower() for m in _split_csv(self.upload_disallowed_mime_types)]

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    @field_validator('upload_max_file_size', 'download_chunk_size', 'token_expire_hours')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    def security_problems(self) -> List[str]:
        """Settings that are fine on a laptop but unacceptable in production."""
        problems = []
        if self.jwt_secret_key == DEFAULT_JWT_SECRET:
            problems.append(
                "JWT_SECRET_KEY is the default value. "
                "Generate a secure key: openssl rand -hex 32"
            )
        if not self.auth_enabled:
            problems.append(
                "AUTH_ENABLED is false. Every request runs as an anonymous admin."
            )
        local = [o for o in self.get_cors_origins() if "localhost" in o or "127.0.0.1" in o]
        if local:
            problems.append(f"CORS allows localhost origins: {local}.")
        return problems

    def validate_production_config(self) -> None:
        """Raise ConfigurationError in production when any security problem remains."""
        problems = self.security_problems()
        if problems and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is insecure:\n  - " + "\n  - ".join(problems)
            )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


settings = Settings()
