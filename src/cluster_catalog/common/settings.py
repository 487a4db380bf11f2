from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load environment variables from .env into os.environ
load_dotenv()


class Settings(BaseSettings):
    """Application configuration settings backed by environment variables."""

    cluster_config_path: str = Field(
        default="configs/clusters.yaml",
        validation_alias="CLUSTER_CONFIG",
        description="Path to the YAML file listing clusters and their static sources."
    )

    transport_concurrency_limit: int = Field(
        default=5,
        ge=1,
        validation_alias="TRANSPORT_CONCURRENCY_LIMIT",
        description="Max simultaneous in-flight calls per cluster transport."
    )

    breaker_fail_max: int = Field(
        default=5,
        ge=0,
        validation_alias="TRANSPORT_BREAKER_FAIL_MAX",
        description="Consecutive failures before a transport's circuit opens (0 disables the breaker)."
    )
    breaker_reset_timeout_sec: int = Field(
        default=30,
        ge=1,
        validation_alias="TRANSPORT_BREAKER_RESET_TIMEOUT",
        description="Seconds an open circuit waits before letting a trial call through."
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level."
    )
    log_json: bool = Field(
        default=False,
        validation_alias="LOG_JSON",
        description="Emit logs as JSON objects (one per line)."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def configure_env(self, env: str) -> None:
        """Loads environment-specific variables and reloads settings."""
        if not env:
            return

        load_dotenv(f".env.{env}", override=True)
        new_settings = Settings()
        self.__dict__.update(new_settings.__dict__)

settings = Settings()

# Configure logging during import
from cluster_catalog.common.logger import configure_logging
configure_logging(
    level=settings.log_level,
    json_format=settings.log_json
)
