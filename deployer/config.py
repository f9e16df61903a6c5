"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file and override existing env vars
load_dotenv(override=True)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Empty disables the X-API-Key check
    deploy_api_key: str = Field(default="")

    # Filesystem
    serving_dir: str = "static"
    workspace_root: str = "builds"
    serve_path: str = "/"

    # Build toolchain
    git_command: str = "git"
    package_manager: str = "npm"
    install_args: list[str] = Field(default_factory=lambda: ["install"])
    build_args: list[str] = Field(default_factory=lambda: ["run", "build"])

    # Timeouts (seconds)
    clone_timeout_seconds: float = 300
    install_timeout_seconds: float = 600
    build_timeout_seconds: float = 600
    hook_timeout_seconds: float = 120

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"
    log_directory: str = "logs"
    log_file_name: str = "deployer.log"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
