# catalog_sync/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from catalog_sync.core.config import settings

def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # SQLite используется в разработке и тестах
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,   # Проверка соединения
        "pool_recycle": 300,     # Пересоздание каждые 5 мин
    }

# Создание движка SQLAlchemy
engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    **_engine_options(settings.DATABASE_URL)
)

# Фабрика сессий
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False
)

# Базовый класс для моделей
Base = declarative_base()

def get_db():
    """FastAPI dependency для получения сессии БД"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Создание таблиц при старте (dev)
def create_tables():
    # Модели должны быть импортированы до create_all
    from catalog_sync.models import product, sync_log  # noqa: F401
    Base.metadata.create_all(bind=engine)
