"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Relational store (TiDB / MySQL-protocol compatible) ────────────────
    db_host: str = "tidb"
    db_port: int = 4000
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "dance_community"
    # Full SQLAlchemy URL; takes precedence over the db_* parts when set
    database_url: Optional[str] = None
    db_pool_size: int = 20
    db_max_overflow: int = 10

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"mysql+aiomysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Auth (tokens are issued by the platform's auth service) ────────────
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"

    # ── Recommendation engine ──────────────────────────────────────────────
    people_pool_size: int = 100
    event_pool_size: int = 100
    instructor_pool_size: int = 100
    content_pool_size: int = 200
    content_window_days: int = 30        # rolling recency window for posts
    default_limit: int = 10              # people / events / instructors
    content_default_limit: int = 20
    max_limit: int = 50
    overview_limit: int = 5              # per domain on /overview

    # ── Observability ──────────────────────────────────────────────────────
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "recommendation-service"
    environment: str = "development"
    tracing_enabled: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
