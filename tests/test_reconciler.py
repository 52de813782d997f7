import pytest
import threading
from decimal import Decimal
from catalog_sync.core.exceptions import RemoteTransportError
from catalog_sync.crud import product as product_crud
from catalog_sync.crud.sync_log import get_sync_logs
from catalog_sync.models import SyncStatus
from catalog_sync.services.catalog_client import RemoteProduct
from catalog_sync.services.memory_client import InMemoryCatalogClient, demo_catalog
from catalog_sync.services.reconciler import CatalogReconciler, map_remote_product

def _catalog(remote_item, count: int, first_id: int = 1) -> InMemoryCatalogClient:
    return InMemoryCatalogClient(products=[remote_item(first_id + i) for i in range(count)])

@pytest.mark.asyncio
async def test_reconcile_creates_new_products(db_session):
    """Тест сверки: пустая база + два товара в магазине"""
    store = demo_catalog()

    result = await CatalogReconciler(db_session, store).reconcile()

    assert result.total_synced == 2
    assert result.new_count == 2
    assert result.updated_count == 0

    first = product_crud.get_product_by_external_id(db_session, 101)
    assert first.sku == "MOCK-001"
    assert first.name == "Mock Product 1"
    assert first.price == Decimal("19.99")
    assert first.sync_status == SyncStatus.SYNCED
    assert first.last_synced_at is not None
    assert product_crud.get_product_by_external_id(db_session, 102).sku == "MOCK-002"
    assert product_crud.count_products(db_session) == 2

@pytest.mark.asyncio
async def test_reconcile_updates_existing_product(db_session, make_product, remote_item):
    """Тест сверки: товар с известным external_id обновляется"""
    local = make_product(name="Old", sku="KEEP-1", external_id=101)
    store = InMemoryCatalogClient(products=[remote_item(101, name="New", sku="KEEP-1")])

    result = await CatalogReconciler(db_session, store).reconcile()

    assert result.updated_count == 1
    assert result.new_count == 0
    product = product_crud.get_product(db_session, local.id)
    assert product.name == "New"
    assert product.sync_status == SyncStatus.SYNCED
    assert product_crud.count_products(db_session) == 1

@pytest.mark.asyncio
async def test_reconcile_is_idempotent(db_session, remote_item):
    """Тест повторной сверки без изменений в магазине"""
    store = _catalog(remote_item, 3)
    reconciler = CatalogReconciler(db_session, store)

    await reconciler.reconcile()
    second = await reconciler.reconcile()

    assert second.new_count == 0
    assert second.updated_count == 3
    assert product_crud.count_products(db_session) == 3

@pytest.mark.asyncio
async def test_empty_remote_field_does_not_clear_local(db_session, make_product, remote_item):
    """Тест: пустое значение в магазине не стирает локальное"""
    local = make_product(
        name="Local name", sku="LOCAL-SKU", external_id=7,
        description="Local description", quantity=4
    )
    store = InMemoryCatalogClient(products=[
        remote_item(7, name="Remote name", sku="", description="", stock_quantity=0, price="0", regular_price="")
    ])

    await CatalogReconciler(db_session, store).reconcile()

    product = product_crud.get_product(db_session, local.id)
    assert product.name == "Remote name"
    assert product.sku == "LOCAL-SKU"
    assert product.description == "Local description"
    assert product.quantity == 4
    assert product.price == Decimal("10.00")

@pytest.mark.asyncio
async def test_reconcile_walks_pages_until_short_page(db_session, remote_item):
    """Тест пагинации: неполная страница - последняя"""
    store = _catalog(remote_item, 5)

    result = await CatalogReconciler(db_session, store, page_size=2).reconcile()

    assert result.total_synced == 5
    assert result.pages_fetched == 3
    pages = [args[0] for name, args in store.calls if name == "list_products"]
    assert pages == [1, 2, 3]
    assert all(args[1] == 2 for name, args in store.calls if name == "list_products")

@pytest.mark.asyncio
async def test_reconcile_stops_on_empty_page(db_session, remote_item):
    """Тест пагинации: после полной страницы запрашивается следующая, пустая останавливает"""
    store = _catalog(remote_item, 4)

    result = await CatalogReconciler(db_session, store, page_size=2).reconcile()

    assert result.total_synced == 4
    assert result.pages_fetched == 3
    assert store.call_count("list_products") == 3

@pytest.mark.asyncio
async def test_reconcile_empty_store(db_session):
    """Тест сверки с пустым магазином"""
    store = InMemoryCatalogClient()

    result = await CatalogReconciler(db_session, store).reconcile()

    assert result.total_synced == 0
    assert result.pages_fetched == 1

@pytest.mark.asyncio
async def test_fetch_failure_keeps_processed_pages(db_session, remote_item):
    """Тест сбоя магазина на второй странице: первая уже сохранена"""

    class FailOnSecondPage(InMemoryCatalogClient):
        async def list_products(self, page=1, per_page=10, search=None, sku=None):
            if page == 2:
                raise RemoteTransportError("Connection failed: timeout")
            return await super().list_products(page=page, per_page=per_page, search=search, sku=sku)

    store = FailOnSecondPage(products=[remote_item(i) for i in range(1, 5)])
    reconciler = CatalogReconciler(db_session, store, page_size=2)

    with pytest.raises(RemoteTransportError):
        await reconciler.reconcile()

    assert product_crud.count_products(db_session) == 2
    assert product_crud.get_product_by_external_id(db_session, 1) is not None
    assert product_crud.get_product_by_external_id(db_session, 3) is None

@pytest.mark.asyncio
async def test_reconcile_never_deletes_local_products(db_session, make_product, remote_item):
    """Тест: товары, которых нет в магазине, остаются локально"""
    orphan = make_product(sku="ORPHAN", external_id=999)
    store = _catalog(remote_item, 2)

    await CatalogReconciler(db_session, store).reconcile()

    assert product_crud.get_product(db_session, orphan.id) is not None
    assert product_crud.count_products(db_session) == 3

@pytest.mark.asyncio
async def test_run_logged_records_completed_run(db_session):
    """Тест журнала сверки: успешный запуск"""
    store = demo_catalog()

    await CatalogReconciler(db_session, store).run_logged(trigger="test")

    logs = get_sync_logs(db_session)
    assert len(logs) == 1
    assert logs[0].status == "completed"
    assert logs[0].trigger == "test"
    assert logs[0].created_items == 2
    assert logs[0].pages_fetched == 1
    assert logs[0].duration_seconds is not None

@pytest.mark.asyncio
async def test_run_logged_records_failed_run(db_session):
    """Тест журнала сверки: ошибка магазина"""
    store = demo_catalog()
    store.fail_next("list_products")

    with pytest.raises(RemoteTransportError):
        await CatalogReconciler(db_session, store).run_logged(trigger="test")

    logs = get_sync_logs(db_session, status="failed")
    assert len(logs) == 1
    assert "Simulated store failure" in logs[0].error_message
    assert logs[0].total_items == 0

def test_map_remote_product_skips_blank_fields():
    """Тест преобразования товара магазина"""
    remote = RemoteProduct.from_api({
        "id": 5,
        "name": "Chair",
        "sku": "",
        "price": "",
        "regular_price": "12.50",
        "stock_quantity": 3,
        "weight": "0",
        "categories": [{"id": 9, "name": "Furniture"}],
    })

    data = map_remote_product(remote)

    assert data == {
        "name": "Chair",
        "price": Decimal("12.50"),
        "quantity": 3,
        "categories": [{"id": 9}],
    }

@pytest.mark.asyncio
async def test_reconcile_writes_outside_event_loop(db_session, remote_item):
    """Тест: запись страницы в БД идёт не в потоке цикла событий"""
    threads = []

    class RecordingReconciler(CatalogReconciler):
        def _merge(self, remote, result):
            threads.append(threading.get_ident())
            super()._merge(remote, result)

    result = await RecordingReconciler(db_session, _catalog(remote_item, 2)).reconcile()

    assert result.new_count == 2
    assert len(threads) == 2
    assert threading.get_ident() not in threads
