# catalog_sync/schemas/sync_log.py
from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

class SyncLog(BaseModel):
    id: int
    trigger: str
    status: str
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    pages_fetched: Optional[int]
    total_items: Optional[int]
    created_items: Optional[int]
    updated_items: Optional[int]
    error_message: Optional[str]
    duration_seconds: Optional[float]

    model_config = ConfigDict(from_attributes=True)
