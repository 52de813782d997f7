# catalog_sync/api/deps.py
from typing import AsyncGenerator, Callable
from catalog_sync.services.catalog_client import CatalogClient
from catalog_sync.services.factory import build_catalog_client
from catalog_sync.services.propagation import Operation
from catalog_sync.tasks.sync_tasks import enqueue_propagation

# Постановка товара в очередь на отправку: (product_id, operation) -> task_id
PropagationDispatcher = Callable[[int, Operation], str]

async def get_catalog_client() -> AsyncGenerator[CatalogClient, None]:
    """Клиент магазина на время запроса"""
    async with build_catalog_client() as client:
        yield client

def get_propagation_dispatcher() -> PropagationDispatcher:
    """Очередь отправки изменений в магазин"""
    return enqueue_propagation
