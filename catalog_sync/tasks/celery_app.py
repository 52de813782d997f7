from celery import Celery, signals
from celery.schedules import crontab
from catalog_sync.core.config import settings
from catalog_sync.core.logging import setup_logging

def make_celery():
    """Создание и настройка Celery приложения"""

    celery_app = Celery(
        "catalog_sync",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
        include=["catalog_sync.tasks.sync_tasks"]
    )

    # Конфигурация
    celery_app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone=settings.CELERY_TIMEZONE,
        enable_utc=True,

        # Настройки задач
        task_track_started=True,
        task_time_limit=30 * 60,  # 30 минут
        task_soft_time_limit=25 * 60,  # 25 минут
        task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
        # Задача подтверждается после выполнения: при падении воркера она не теряется
        task_acks_late=True,

        # Настройки брокера
        broker_connection_retry_on_startup=True,
        broker_connection_max_retries=10,

        # Результаты
        result_expires=3600,  # 1 час

        # Очереди
        task_routes={
            "catalog_sync.tasks.sync_tasks.*": {"queue": "sync"},
        },

        # Работники
        worker_prefetch_multiplier=1,
        worker_max_tasks_per_child=1000,
        worker_concurrency=settings.CELERY_WORKER_CONCURRENCY
    )

    # Периодическая сверка каталога
    if settings.RECONCILE_SCHEDULE_MINUTES > 0:
        celery_app.conf.beat_schedule = {
            "reconcile-catalog": {
                "task": "catalog_sync.tasks.sync_tasks.reconcile_catalog",
                "schedule": crontab(minute=f"*/{settings.RECONCILE_SCHEDULE_MINUTES}"),
                "args": ("celery",),
                "options": {"queue": "sync"}
            },
        }

    return celery_app

@signals.setup_logging.connect
def configure_worker_logging(**kwargs):
    setup_logging()

# Создаем экземпляр Celery
celery_app = make_celery()
