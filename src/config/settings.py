# Configuration management

from pydantic_settings import BaseSettings  # type: ignore
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Application
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = True

    # Upload intake
    max_json_size: int = 10 * 1024 * 1024  # 10MB

    # Schema Decision
    schema_max_depth: int = 3
    schema_max_avg_fields: int = 50
    schema_consistency_threshold: float = 0.8
    schema_depth_cap: int = 10
    schema_strict_single_object: bool = True

    # Schema Derivation
    table_prefix: str = "data_"

    # Security
    allowed_origins: List[str] = [
        "http://localhost:3000", "http://localhost:8000"]

    # Observability
    metrics_enabled: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
