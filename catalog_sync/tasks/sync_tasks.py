import asyncio
import logging
from typing import Dict, Any
from sqlalchemy.orm import Session
from catalog_sync.core.config import settings
from catalog_sync.database import SessionLocal
from catalog_sync.services.factory import build_catalog_client
from catalog_sync.services.propagation import (
    AttemptOutcome,
    AttemptStatus,
    Operation,
    PropagationTask,
    PropagationWorker,
)
from catalog_sync.services.reconciler import CatalogReconciler, ReconcileResult
from catalog_sync.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

@celery_app.task(
    bind=True,
    max_retries=settings.SYNC_MAX_ATTEMPTS - 1,
    default_retry_delay=settings.SYNC_RETRY_DELAY
)
def propagate_product(self, product_id: int, operation: str):
    """
    Задача отправки локального изменения товара в магазин.

    Args:
        product_id: внутренний ID товара
        operation: "create" или "update"
    """
    task = PropagationTask(
        product_id=product_id,
        operation=Operation(operation),
        attempt=self.request.retries + 1
    )
    logger.info(f"Propagation task {self.request.id}: product {product_id}, {operation}, attempt {task.attempt}")

    db: Session = SessionLocal()
    try:
        outcome = asyncio.run(_run_attempt(db, task))
    finally:
        db.close()

    if outcome.status == AttemptStatus.RETRY:
        # Фиксированная задержка между попытками
        raise self.retry(exc=outcome.error, countdown=settings.SYNC_RETRY_DELAY)

    return outcome.to_dict()

async def _run_attempt(db: Session, task: PropagationTask) -> AttemptOutcome:
    async with build_catalog_client() as client:
        worker = PropagationWorker(db, client, max_attempts=settings.SYNC_MAX_ATTEMPTS)
        return await worker.attempt(task)

def enqueue_propagation(product_id: int, operation: Operation) -> str:
    """Поставить товар в очередь на отправку в магазин. Возвращает ID задачи."""
    result = propagate_product.apply_async(args=[product_id, Operation(operation).value])
    logger.info(f"Queued {Operation(operation).value} propagation for product {product_id}: task {result.id}")
    return result.id

@celery_app.task
def reconcile_catalog(trigger: str = "celery") -> Dict[str, Any]:
    """Задача сверки каталога магазина с локальной базой"""
    db: Session = SessionLocal()
    try:
        result = asyncio.run(_run_reconcile(db, trigger))
        return {"status": "completed", **result.to_dict()}
    except Exception as e:
        # Результат уже записан в sync_logs, повтор запускает оператор
        logger.error(f"Catalog reconcile task failed: {e}")
        return {"status": "failed", "error": str(e)}
    finally:
        db.close()

async def _run_reconcile(db: Session, trigger: str) -> ReconcileResult:
    async with build_catalog_client() as client:
        reconciler = CatalogReconciler(db, client, page_size=settings.SYNC_PAGE_SIZE)
        return await reconciler.run_logged(trigger=trigger)
