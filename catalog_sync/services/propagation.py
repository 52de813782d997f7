"""
Отправка локальных изменений товара в магазин.

Одна попытка = один вызов магазина + обновление sync_status/sync_error.
Повторы и задержка между ними - забота того, кто запускает попытки
(задача Celery или PropagationWorker.run).
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, replace
from typing import Optional, Dict, Any, Callable, Awaitable
from sqlalchemy.orm import Session
from catalog_sync.core.exceptions import (
    ConflictError,
    NotFoundError,
    PreconditionError,
)
from catalog_sync.crud import product as product_crud
from catalog_sync.models.product import Product
from catalog_sync.services.catalog_client import CatalogClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 10

# Ошибки, которые повтор не исправит
NON_RETRYABLE_ERRORS = (PreconditionError, ConflictError, NotFoundError)

class Operation(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"

class AttemptStatus(str, enum.Enum):
    SYNCED = "synced"
    RETRY = "retry"
    FAILED = "failed"
    SKIPPED = "skipped"

@dataclass(frozen=True)
class PropagationTask:
    """Задача отправки товара в магазин"""
    product_id: int
    operation: Operation
    attempt: int = 1

    def next_attempt(self) -> "PropagationTask":
        return replace(self, attempt=self.attempt + 1)

@dataclass
class AttemptOutcome:
    status: AttemptStatus
    task: PropagationTask
    error: Optional[Exception] = None
    external_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "product_id": self.task.product_id,
            "operation": self.task.operation.value,
            "attempt": self.task.attempt,
            "external_id": self.external_id,
            "error": str(self.error) if self.error else None,
        }

def build_payload(product: Product) -> Dict[str, Any]:
    """Тело запроса к магазину. Пустые поля не отправляются."""
    data: Dict[str, Any] = {
        "name": product.name,
        "sku": product.sku,
        "regular_price": str(product.price) if product.price is not None else None,
        "description": product.description,
        "short_description": product.short_description,
    }
    data = {key: value for key, value in data.items() if value is not None}

    if product.weight is not None:
        data["weight"] = str(product.weight)

    # Управление остатками, если указано количество
    if product.quantity is not None:
        data["manage_stock"] = True
        data["stock_quantity"] = product.quantity

    if product.categories:
        data["categories"] = [{"id": c["id"]} for c in product.categories]

    return data

def permanent_failure_message(attempts: int, message: str) -> str:
    return f"Permanently failed after {attempts} attempts: {message}"

class PropagationWorker:
    """Отправка товара в магазин и учёт результата в локальной базе"""

    def __init__(self, db: Session, client: CatalogClient, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self.db = db
        self.client = client
        self.max_attempts = max_attempts

    async def attempt(self, task: PropagationTask) -> AttemptOutcome:
        """Одна попытка отправки"""
        product = product_crud.get_product(self.db, task.product_id)
        if product is None:
            logger.warning(f"Product {task.product_id} no longer exists, dropping {task.operation.value} task")
            return AttemptOutcome(AttemptStatus.SKIPPED, task)

        logger.info(
            f"Syncing product {product.id} to store: operation={task.operation.value}, "
            f"attempt {task.attempt}/{self.max_attempts}"
        )

        try:
            external_id = await self._dispatch(product, task.operation)
        except NON_RETRYABLE_ERRORS as e:
            logger.error(f"Cannot sync product {task.product_id} ({task.operation.value}): {e}")
            self._record_failure(task.product_id, str(e))
            return AttemptOutcome(AttemptStatus.FAILED, task, error=e)
        except Exception as e:
            logger.error(
                f"Failed to sync product {task.product_id} ({task.operation.value}), "
                f"attempt {task.attempt}/{self.max_attempts}: {e}"
            )
            # Ошибка видна в записи сразу, ещё до следующей попытки
            self._record_failure(task.product_id, str(e))

            if task.attempt >= self.max_attempts:
                self.fail_permanently(task, str(e))
                return AttemptOutcome(AttemptStatus.FAILED, task, error=e)
            return AttemptOutcome(AttemptStatus.RETRY, task, error=e)

        return AttemptOutcome(AttemptStatus.SYNCED, task, external_id=external_id)

    async def _dispatch(self, product: Product, operation: Operation) -> int:
        payload = build_payload(product)

        if operation == Operation.CREATE and product.external_id is not None:
            # Повторная доставка задачи после успешного создания
            logger.warning(
                f"Product {product.id} already exists in store (external_id={product.external_id}), "
                f"sending create as update"
            )
            operation = Operation.UPDATE

        if operation == Operation.CREATE:
            remote = await self.client.create_product(payload)
            product_crud.mark_synced(self.db, product, external_id=remote.id)
            logger.info(f"Product {product.id} created in store: external_id={remote.id}")
            return remote.id

        if product.external_id is None:
            raise PreconditionError(f"Cannot update product {product.id} without external ID")

        await self.client.update_product(product.external_id, payload)
        product_crud.mark_synced(self.db, product)
        logger.info(f"Product {product.id} updated in store: external_id={product.external_id}")
        return product.external_id

    def _record_failure(self, product_id: int, message: str):
        self.db.rollback()
        product = product_crud.get_product(self.db, product_id)
        if product is not None:
            product_crud.mark_failed(self.db, product, message)

    def fail_permanently(self, task: PropagationTask, message: str):
        """Финальный шаг после исчерпания попыток"""
        logger.error(
            f"Propagation permanently failed for product {task.product_id} "
            f"({task.operation.value}) after {task.attempt} attempts: {message}"
        )
        self._record_failure(task.product_id, permanent_failure_message(task.attempt, message))

    async def run(
        self,
        task: PropagationTask,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ) -> AttemptOutcome:
        """Попытки подряд с фиксированной задержкой до успеха или исчерпания"""
        while True:
            outcome = await self.attempt(task)
            if outcome.status != AttemptStatus.RETRY:
                return outcome

            logger.info(f"Retrying product {task.product_id} in {retry_delay}s")
            await sleep(retry_delay)
            task = task.next_attempt()
