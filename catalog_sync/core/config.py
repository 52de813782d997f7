from typing import Optional
from pydantic import Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Загрузка .env (нужна и для воркеров Celery)
load_dotenv()

class Settings(BaseSettings):
    PROJECT_NAME: str = "Catalog Sync API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # База данных
    DATABASE_URL: str = "sqlite:///./catalog_sync.db"
    DATABASE_ECHO: bool = False

    # Redis для Celery
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_URL: Optional[str] = Field(None, validate_default=True)

    @field_validator("REDIS_URL", mode="before")
    @classmethod
    def assemble_redis_connection(cls, v: Optional[str], info: ValidationInfo) -> str:
        if isinstance(v, str):
            return v
        host = info.data.get("REDIS_HOST", "localhost")
        port = info.data.get("REDIS_PORT", 6379)
        return f"redis://{host}:{port}"

    # Celery
    CELERY_BROKER_URL: Optional[str] = Field(None, validate_default=True)
    CELERY_RESULT_BACKEND: Optional[str] = Field(None, validate_default=True)
    CELERY_TIMEZONE: str = "UTC"
    CELERY_TASK_ALWAYS_EAGER: bool = False
    CELERY_WORKER_CONCURRENCY: int = 4

    @field_validator("CELERY_BROKER_URL", mode="before")
    @classmethod
    def assemble_celery_broker_url(cls, v: Optional[str], info: ValidationInfo) -> str:
        if isinstance(v, str):
            return v
        return f"{info.data.get('REDIS_URL')}/{info.data.get('REDIS_DB', 0)}"

    @field_validator("CELERY_RESULT_BACKEND", mode="before")
    @classmethod
    def assemble_celery_result_backend(cls, v: Optional[str], info: ValidationInfo) -> str:
        if isinstance(v, str):
            return v
        return f"{info.data.get('REDIS_URL')}/{info.data.get('REDIS_DB', 0) + 1}"

    # Подключение к магазину (WooCommerce REST API)
    STORE_URL: str = "http://localhost:8080"
    STORE_CONSUMER_KEY: str = ""
    STORE_CONSUMER_SECRET: str = ""
    STORE_API_VERSION: str = "wc/v3"
    STORE_TIMEOUT: int = 40
    STORE_VERIFY_SSL: bool = False
    STORE_MAX_RETRIES: int = 1
    # "http" - реальный API, "memory" - детерминированная заглушка
    STORE_CLIENT: str = "http"

    # Настройки синхронизации
    SYNC_PAGE_SIZE: int = 100
    SYNC_MAX_ATTEMPTS: int = 3
    SYNC_RETRY_DELAY: int = 10  # секунды
    RECONCILE_SCHEDULE_MINUTES: int = 0  # 0 - без расписания

    # Настройки логирования
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env", extra="ignore")

settings = Settings()
