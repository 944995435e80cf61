from pydantic_settings import BaseSettings
from functools import lru_cache
from dotenv import load_dotenv
from typing import Optional

load_dotenv()


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "PrintJob Service"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./printjob.db"

    # Redis (queue print sink)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Security - empty disables the X-API-Key check
    API_KEY: str = ""

    # Print sink
    PRINT_SINK: str = "redis"  # "redis" or "http"
    PRINT_SINK_URL: str = ""
    PRINT_SINK_TIMEOUT: float = 5.0
    PRINT_QUEUE_PREFIX: str = "print_queue"
    PRINTER_REGISTRY_KEY: str = "print_printers"

    # Printer resolution
    DEFAULT_PRINTER_ID: Optional[str] = None

    # Retention
    JOB_RETENTION_SECONDS: int = 3600
    JANITOR_INTERVAL_SECONDS: int = 0  # 0 = sweep only on submission

    # Document root for relative file paths
    FILE_STORAGE_PATH: str = "./documents"

    # Listing
    LIST_DEFAULT_LIMIT: int = 100
    LIST_MAX_LIMIT: int = 500

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"  # Allow extra fields


@lru_cache()
def get_settings():
    return Settings()
