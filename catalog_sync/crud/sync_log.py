# catalog_sync/crud/sync_log.py
from datetime import datetime, timezone
from typing import Optional, List
from sqlalchemy.orm import Session
from catalog_sync.models.sync_log import SyncLog

def create_sync_log(db: Session, trigger: str = "api") -> SyncLog:
    """Запись о начале сверки"""
    sync_log = SyncLog(trigger=trigger, status="running", started_at=datetime.now(timezone.utc))
    db.add(sync_log)
    db.commit()
    db.refresh(sync_log)
    return sync_log

def finish_sync_log(
    db: Session,
    sync_log: SyncLog,
    status: str,
    pages_fetched: int = 0,
    total_items: int = 0,
    created_items: int = 0,
    updated_items: int = 0,
    error_message: Optional[str] = None
) -> SyncLog:
    """Запись результата сверки"""
    completed_at = datetime.now(timezone.utc)
    started_at = sync_log.started_at
    if started_at is not None and started_at.tzinfo is None:
        # SQLite не хранит часовой пояс
        started_at = started_at.replace(tzinfo=timezone.utc)

    sync_log.status = status
    sync_log.completed_at = completed_at
    sync_log.pages_fetched = pages_fetched
    sync_log.total_items = total_items
    sync_log.created_items = created_items
    sync_log.updated_items = updated_items
    sync_log.error_message = error_message
    sync_log.duration_seconds = (completed_at - started_at).total_seconds() if started_at else None

    db.commit()
    db.refresh(sync_log)
    return sync_log

def get_sync_logs(
    db: Session,
    skip: int = 0,
    limit: int = 50,
    status: Optional[str] = None
) -> List[SyncLog]:
    """Журнал запусков сверки (последние первыми)"""
    query = db.query(SyncLog)

    if status:
        query = query.filter(SyncLog.status == status)

    return query.order_by(SyncLog.id.desc()).offset(skip).limit(limit).all()
