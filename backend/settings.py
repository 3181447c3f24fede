from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Telemetry Dashboard"
    version: str = "1.0.0"
    # development/test echo handler error messages in 500 responses; production does not
    environment: Literal["development", "test", "production"] = "development"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000
    # CORS: "*" for dev; in production set to comma-separated origins
    cors_origins: str = "*"
    public_dir: str = "public"  # Dashboard static files; path relative to backend root, or absolute

    # Rolling stats for /api/stats
    stats_window_size: int = 100  # Most recent response times kept for the average
    stats_top_endpoints: int = 6
    # Label used for requests no route matched (bounds Prometheus label cardinality)
    unmatched_route_label: str = "unmatched"

    @property
    def echo_errors(self) -> bool:
        return self.environment != "production"


def get_settings() -> Settings:
    return Settings()
