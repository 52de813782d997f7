from sqlalchemy import Column, Integer, String, Text, Float, DateTime
from sqlalchemy.sql import func
from catalog_sync.database import Base

class SyncLog(Base):
    """Журнал запусков сверки каталога"""
    __tablename__ = "sync_logs"

    id = Column(Integer, primary_key=True, index=True)

    # Источник запуска: "api", "celery", "cli"
    trigger = Column(String(20), nullable=False, default="api")

    # Статус: "running", "completed", "failed"
    status = Column(String(20), nullable=False, index=True)
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Результаты
    pages_fetched = Column(Integer, default=0)
    total_items = Column(Integer, default=0)
    created_items = Column(Integer, default=0)
    updated_items = Column(Integer, default=0)

    # Ошибки
    error_message = Column(Text, nullable=True)

    # Длительность
    duration_seconds = Column(Float, nullable=True)

    def __repr__(self):
        return f"<SyncLog {self.id} ({self.status})>"
