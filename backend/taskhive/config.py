"""TaskHive configuration — settings loaded from the environment."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///data/taskhive.db"

    # CORS (comma-separated origins)
    cors_origins: str = "http://localhost:3000"

    # API key for the HTTP surface
    taskhive_api_key: str = ""  # Empty = auth disabled (dev mode)

    # Invite links
    invite_token_bytes: int = 32  # 32 bytes -> 64 hex chars
    invite_join_role: str = "developer"

    # Compare-and-set retries for project/task writes
    project_write_max_attempts: int = 3

    # Logging
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
