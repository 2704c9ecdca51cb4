"""Driver configuration via environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    # Model under evaluation
    provider: str = "openai"
    model: str = "gpt-4o-mini"
    api_key: str | None = None
    min_request_interval_s: float = 0.0

    # Dataset
    dataset: str = "jsonl"
    dataset_path: str | None = None

    # Persistence (completions + generation results); disabled when unset
    db_path: str | None = None

    # Run shape
    outer_concurrency: int = 2
    test_timeout_s: float | None = None

    model_config = {
        "env_prefix": "EE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }
