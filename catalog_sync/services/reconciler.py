"""
Сверка локального каталога с магазином.

Забирает каталог магазина постранично и сливает его в локальную базу:
товар с известным external_id обновляется, новый создаётся. Товары,
исчезнувшие из магазина, локально не удаляются.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, asdict
from typing import Dict, Any, List, Optional
from sqlalchemy.orm import Session
from catalog_sync.crud import product as product_crud
from catalog_sync.crud.sync_log import create_sync_log, finish_sync_log
from catalog_sync.models.product import SyncStatus
from catalog_sync.services.catalog_client import CatalogClient, RemoteProduct

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100

@dataclass
class ReconcileResult:
    total_synced: int = 0
    new_count: int = 0
    updated_count: int = 0
    pages_fetched: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

def map_remote_product(remote: RemoteProduct) -> Dict[str, Any]:
    """Поля товара магазина для локальной записи.

    В результат попадают только заданные поля: пустое значение в магазине
    не стирает локальное.
    """
    data: Dict[str, Any] = {}

    if remote.name is not None:
        data["name"] = remote.name
    if remote.sku is not None:
        data["sku"] = remote.sku

    price = remote.price if remote.price is not None else remote.regular_price
    if price is not None:
        data["price"] = price

    if remote.description is not None:
        data["description"] = remote.description
    if remote.short_description is not None:
        data["short_description"] = remote.short_description
    if remote.stock_quantity is not None:
        data["quantity"] = remote.stock_quantity
    if remote.weight is not None:
        data["weight"] = remote.weight
    if remote.categories is not None:
        data["categories"] = [{"id": c["id"]} for c in remote.categories]

    return data

class CatalogReconciler:
    """Однопроходная сверка каталога магазина с локальной базой"""

    def __init__(self, db: Session, client: CatalogClient, page_size: int = DEFAULT_PAGE_SIZE):
        self.db = db
        self.client = client
        self.page_size = page_size

    async def reconcile(self, result: Optional[ReconcileResult] = None) -> ReconcileResult:
        """Забрать все страницы каталога и слить их в локальную базу.

        Ошибка магазина прерывает проход; уже обработанные страницы
        остаются сохранёнными, повторный запуск безопасен.
        """
        result = result if result is not None else ReconcileResult()
        page = 1

        logger.info(f"Starting catalog reconcile (page size {self.page_size})")

        while True:
            remote_products = await self.client.list_products(page=page, per_page=self.page_size)
            result.pages_fetched += 1

            if not remote_products:
                break

            # Запись в БД синхронная: выполняем вне цикла событий
            await asyncio.to_thread(self._merge_page, remote_products, result)

            logger.info(
                f"Reconciled page {page}: {len(remote_products)} products "
                f"(new={result.new_count}, updated={result.updated_count})"
            )

            # Неполная страница - последняя
            if len(remote_products) < self.page_size:
                break
            page += 1

        logger.info(
            f"Catalog reconcile completed: total={result.total_synced}, "
            f"new={result.new_count}, updated={result.updated_count}, pages={result.pages_fetched}"
        )
        return result

    def _merge_page(self, remote_products: List[RemoteProduct], result: ReconcileResult):
        for remote in remote_products:
            self._merge(remote, result)

    def _merge(self, remote: RemoteProduct, result: ReconcileResult):
        data = map_remote_product(remote)
        data.update({
            "sync_status": SyncStatus.SYNCED,
            "sync_error": None,
            "last_synced_at": product_crud.utcnow(),
        })

        local = product_crud.get_product_by_external_id(self.db, remote.id)

        if local:
            product_crud.update_product(self.db, local, data)
            result.updated_count += 1
        else:
            data["external_id"] = remote.id
            data.setdefault("name", remote.sku or f"Product {remote.id}")
            product_crud.create_product(self.db, data)
            result.new_count += 1

        result.total_synced += 1

    async def run_logged(self, trigger: str = "api") -> ReconcileResult:
        """Сверка с записью в журнал sync_logs"""
        sync_log = await asyncio.to_thread(create_sync_log, self.db, trigger)
        start_time = time.monotonic()
        result = ReconcileResult()

        try:
            await self.reconcile(result)
        except Exception as e:
            logger.error(f"Catalog reconcile failed after {time.monotonic() - start_time:.2f}s: {e}")
            self.db.rollback()
            await asyncio.to_thread(
                finish_sync_log,
                self.db, sync_log, "failed",
                pages_fetched=result.pages_fetched,
                total_items=result.total_synced,
                created_items=result.new_count,
                updated_items=result.updated_count,
                error_message=str(e),
            )
            raise

        await asyncio.to_thread(
            finish_sync_log,
            self.db, sync_log, "completed",
            pages_fetched=result.pages_fetched,
            total_items=result.total_synced,
            created_items=result.new_count,
            updated_items=result.updated_count,
        )
        return result
