import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from catalog_sync.main import app
from catalog_sync.database import get_db
from catalog_sync.api.deps import get_catalog_client, get_propagation_dispatcher
from catalog_sync.crud import product as product_crud
from catalog_sync.models import SyncStatus
from catalog_sync.services.propagation import Operation

@pytest.fixture
def dispatched():
    """Задачи, поставленные в очередь во время запроса"""
    return []

@pytest.fixture
def api_client(db_session, store, dispatched):
    def dispatch(product_id, operation):
        dispatched.append((product_id, operation))
        return f"task-{len(dispatched)}"

    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_catalog_client] = lambda: store
    app.dependency_overrides[get_propagation_dispatcher] = lambda: dispatch

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()

def test_health(api_client):
    response = api_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"

def test_create_product_queues_propagation(api_client, db_session, dispatched):
    """Тест создания: ответ сразу, отправка в магазин через очередь"""
    response = api_client.post("/api/v1/products", json={
        "name": "Desk",
        "sku": "DSK-1",
        "price": "120.00",
        "quantity": 5,
        "category_ids": [15],
    })

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "success"
    assert body["sync_status"] == "pending"
    assert body["task_id"] == "task-1"
    assert dispatched == [(body["product_id"], Operation.CREATE)]

    product = product_crud.get_product(db_session, body["product_id"])
    assert product.sku == "DSK-1"
    assert product.price == Decimal("120.00")
    assert product.categories == [{"id": 15}]
    assert product.sync_status == SyncStatus.PENDING

def test_create_product_validation_error(api_client, dispatched):
    """Тест: обязательные поля"""
    response = api_client.post("/api/v1/products", json={"name": "No sku", "price": "1.00"})

    assert response.status_code == 422
    body = response.json()
    assert body["status"] == "error"
    assert body["message"] == "Validation failed"
    assert body["errors"]
    assert dispatched == []

def test_create_product_negative_price_rejected(api_client):
    response = api_client.post("/api/v1/products", json={"name": "Bad", "sku": "BAD", "price": "-1"})

    assert response.status_code == 422

def test_create_duplicate_sku_conflict(api_client, make_product, dispatched):
    """Тест: занятый SKU -> 409"""
    make_product(sku="TAKEN")

    response = api_client.post("/api/v1/products", json={"name": "Copy", "sku": "TAKEN", "price": "5.00"})

    assert response.status_code == 409
    assert response.json()["status"] == "error"
    assert "TAKEN" in response.json()["message"]
    assert dispatched == []

def test_update_product_sets_pending_and_queues_update(api_client, db_session, make_product, dispatched):
    """Тест обновления: статус сбрасывается в pending"""
    product = make_product(sku="UPD")
    product_crud.mark_synced(db_session, product, external_id=77)

    response = api_client.put(f"/api/v1/products/{product.id}", json={"price": "25.00", "name": "Updated"})

    assert response.status_code == 200
    assert response.json()["external_id"] == 77
    assert dispatched == [(product.id, Operation.UPDATE)]

    product = product_crud.get_product(db_session, product.id)
    assert product.name == "Updated"
    assert product.price == Decimal("25.00")
    assert product.sync_status == SyncStatus.PENDING
    assert product.sku == "UPD"

@pytest.mark.parametrize("field", ["name", "sku", "price"])
def test_update_with_null_required_field_is_rejected(api_client, db_session, make_product, dispatched, field):
    """Тест: обязательное поле нельзя стереть через null"""
    product = make_product(name="Keep me", sku="NN-1")

    response = api_client.put(f"/api/v1/products/{product.id}", json={field: None})

    assert response.status_code == 422
    assert response.json()["status"] == "error"
    assert response.json()["message"] == "Validation failed"
    assert dispatched == []
    product = product_crud.get_product(db_session, product.id)
    assert product.name == "Keep me"
    assert product.sku == "NN-1"

def test_update_missing_product_returns_404(api_client, dispatched):
    response = api_client.put("/api/v1/products/12345", json={"name": "Ghost"})

    assert response.status_code == 404
    assert response.json() == {"status": "error", "message": "Product 12345 not found"}
    assert dispatched == []

def test_get_product_shows_sync_state(api_client, db_session, make_product):
    """Тест: товар с состоянием синхронизации"""
    product = make_product(sku="STATE")
    product_crud.mark_failed(db_session, product, "Store API error: 500")

    response = api_client.get(f"/api/v1/products/{product.id}")

    assert response.status_code == 200
    data = response.json()["product"]
    assert data["sku"] == "STATE"
    assert data["sync_status"] == "failed"
    assert data["sync_error"] == "Store API error: 500"

def test_list_products_with_search_and_pagination(api_client, make_product):
    """Тест списка: поиск и пагинация"""
    make_product(name="Oak table", sku="T-1")
    make_product(name="Pine table", sku="T-2")
    make_product(name="Oak chair", sku="C-1")
    make_product(name="Lamp", sku="L-1")

    response = api_client.get("/api/v1/products", params={"search": "oak"})
    assert {p["sku"] for p in response.json()["data"]} == {"T-1", "C-1"}

    response = api_client.get("/api/v1/products", params={"page": 2, "per_page": 3})
    body = response.json()
    assert body["source"] == "local"
    assert len(body["data"]) == 1
    assert body["pagination"]["total"] == 4
    assert body["pagination"]["last_page"] == 2
    assert body["pagination"]["from"] == 4

def test_list_products_filters_by_status(api_client, db_session, make_product):
    make_product(sku="P-1")
    failed = make_product(sku="F-1")
    product_crud.mark_failed(db_session, failed, "boom")

    response = api_client.get("/api/v1/products", params={"sync_status": "failed"})

    assert [p["sku"] for p in response.json()["data"]] == ["F-1"]

def test_list_live_products(api_client, store):
    """Тест списка напрямую из магазина"""
    store.add_product({"id": 501, "name": "Remote chair", "sku": "RC-1", "regular_price": "40.00"})

    response = api_client.get("/api/v1/products", params={"source": "live"})

    body = response.json()
    assert body["source"] == "live"
    assert body["fetched"] == 1
    assert body["data"][0]["id"] == 501

def test_remote_product_not_found(api_client):
    response = api_client.get("/api/v1/remote/products/404404")

    assert response.status_code == 404
    assert response.json()["status"] == "error"

def test_delete_product_removes_it_from_store(api_client, db_session, store, make_product):
    """Тест удаления: локально и в магазине"""
    remote = store.add_product({"name": "Doomed", "sku": "DEL-1"})
    product = make_product(sku="DEL-1", external_id=remote["id"])

    response = api_client.delete(f"/api/v1/products/{product.id}")

    assert response.status_code == 200
    assert product_crud.get_product(db_session, product.id) is None
    assert store.products == []
    assert store.call_count("delete_product") == 1

def test_delete_local_only_product(api_client, db_session, store, make_product):
    product = make_product()

    response = api_client.delete(f"/api/v1/products/{product.id}")

    assert response.status_code == 200
    assert product_crud.get_product(db_session, product.id) is None
    assert store.call_count() == 0

def test_resync_picks_operation(api_client, db_session, make_product, dispatched):
    """Тест повторной отправки: create без external_id, иначе update"""
    fresh = make_product(sku="FRESH")
    linked = make_product(sku="LINKED", external_id=900)
    product_crud.mark_failed(db_session, linked, "Permanently failed after 3 attempts: timeout")

    first = api_client.post(f"/api/v1/products/{fresh.id}/resync")
    second = api_client.post(f"/api/v1/products/{linked.id}/resync")

    assert first.status_code == 202
    assert first.json()["operation"] == "create"
    assert second.json()["operation"] == "update"
    assert dispatched == [(fresh.id, Operation.CREATE), (linked.id, Operation.UPDATE)]
    assert product_crud.get_product(db_session, linked.id).sync_status == SyncStatus.PENDING

def test_categories(api_client):
    response = api_client.get("/api/v1/categories")

    body = response.json()
    assert body["count"] == 1
    assert body["categories"][0]["name"] == "Uncategorized"

def test_batch_passes_through(api_client, store):
    """Тест пакетной операции"""
    response = api_client.post("/api/v1/products/batch", json={"create": [{"name": "A", "sku": "BA-1"}]})

    assert response.status_code == 200
    assert response.json()["result"]["create"][0]["sku"] == "BA-1"
    assert len(store.products) == 1

def test_sync_endpoint_reports_statistics(api_client, db_session, store):
    """Тест ручной сверки каталога"""
    store.add_product({"id": 101, "name": "Mock Product 1", "sku": "MOCK-001", "regular_price": "19.99"})
    store.add_product({"id": 102, "name": "Mock Product 2", "sku": "MOCK-002", "regular_price": "29.99"})

    response = api_client.post("/api/v1/sync")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["statistics"]["total_synced"] == 2
    assert body["statistics"]["new_count"] == 2
    assert body["statistics"]["updated_count"] == 0
    assert product_crud.get_product_by_external_id(db_session, 101).sku == "MOCK-001"

    logs = api_client.get("/api/v1/sync/logs").json()["logs"]
    assert len(logs) == 1
    assert logs[0]["status"] == "completed"
    assert logs[0]["trigger"] == "api"

def test_sync_endpoint_store_failure(api_client, store):
    """Тест: сбой магазина при сверке -> 500 с сообщением"""
    store.fail_next("list_products")

    response = api_client.post("/api/v1/sync")

    assert response.status_code == 500
    assert response.json()["status"] == "error"
    assert "Simulated store failure" in response.json()["message"]

    logs = api_client.get("/api/v1/sync/logs", params={"status": "failed"}).json()["logs"]
    assert len(logs) == 1
