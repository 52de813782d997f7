# catalog_sync/api/v1/endpoints/sync.py
from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session
from catalog_sync.core.config import settings
from catalog_sync.database import get_db
from catalog_sync.api.deps import get_catalog_client
from catalog_sync.crud.sync_log import get_sync_logs
from catalog_sync.schemas.sync_log import SyncLog
from catalog_sync.services.catalog_client import CatalogClient
from catalog_sync.services.reconciler import CatalogReconciler

router = APIRouter()

@router.post("/sync")
async def sync_catalog(
    db: Session = Depends(get_db),
    client: CatalogClient = Depends(get_catalog_client)
) -> Any:
    """Сверка всего каталога магазина с локальной базой"""
    reconciler = CatalogReconciler(db, client, page_size=settings.SYNC_PAGE_SIZE)
    result = await reconciler.run_logged(trigger="api")

    return {
        "status": "success",
        "message": "Products synchronized successfully",
        "statistics": result.to_dict()
    }

@router.get("/sync/logs")
def read_sync_logs(
    db: Session = Depends(get_db),
    skip: int = 0,
    limit: int = Query(50, ge=1, le=500),
    status: Optional[str] = Query(None)
) -> Any:
    """Журнал запусков сверки"""
    logs = get_sync_logs(db, skip=skip, limit=limit, status=status)
    return {
        "status": "success",
        "logs": jsonable_encoder([SyncLog.model_validate(log) for log in logs])
    }
