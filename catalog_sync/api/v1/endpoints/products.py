# catalog_sync/api/v1/endpoints/products.py
import math
from dataclasses import asdict
from typing import Any, Dict, Optional
from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session
from catalog_sync.database import get_db
from catalog_sync.api.deps import get_catalog_client, get_propagation_dispatcher, PropagationDispatcher
from catalog_sync.core.exceptions import NotFoundError
from catalog_sync.crud import product as product_crud
from catalog_sync.models.product import SyncStatus
from catalog_sync.schemas.product import Product, ProductCreate, ProductUpdate
from catalog_sync.services.catalog_client import CatalogClient
from catalog_sync.services.propagation import Operation
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

def _get_product_or_404(db: Session, product_id: int):
    product = product_crud.get_product(db, product_id=product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product

def _serialize(product) -> Dict[str, Any]:
    return jsonable_encoder(Product.model_validate(product))

@router.get("/products")
async def read_products(
    db: Session = Depends(get_db),
    client: CatalogClient = Depends(get_catalog_client),
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    sku: Optional[str] = None,
    sync_status: Optional[SyncStatus] = None,
    source: str = Query("local", pattern="^(local|live)$")
) -> Any:
    """
    Список товаров.
    По умолчанию из локальной базы, ?source=live - напрямую из магазина.
    """
    if source == "live":
        products = await client.list_products(page=page, per_page=per_page, search=search, sku=sku)
        return {
            "status": "success",
            "source": "live",
            "fetched": len(products),
            "data": jsonable_encoder([p.to_dict() for p in products])
        }

    skip = (page - 1) * per_page
    total = await run_in_threadpool(
        product_crud.count_products, db, sync_status=sync_status, search=search, sku=sku
    )
    products = await run_in_threadpool(
        product_crud.get_products,
        db, skip=skip, limit=per_page,
        sync_status=sync_status, search=search, sku=sku
    )

    return {
        "status": "success",
        "source": "local",
        "data": [_serialize(p) for p in products],
        "pagination": {
            "total": total,
            "per_page": per_page,
            "current_page": page,
            "last_page": max(1, math.ceil(total / per_page)),
            "from": skip + 1 if products else None,
            "to": skip + len(products) if products else None
        }
    }

@router.get("/products/{product_id}")
def read_product(
    product_id: int,
    db: Session = Depends(get_db)
) -> Any:
    """Товар из локальной базы по внутреннему ID (с состоянием синхронизации)"""
    product = _get_product_or_404(db, product_id)
    return {"status": "success", "source": "local", "product": _serialize(product)}

@router.get("/remote/products/{external_id}")
async def read_remote_product(
    external_id: int,
    client: CatalogClient = Depends(get_catalog_client)
) -> Any:
    """Товар напрямую из магазина"""
    product = await client.get_product(external_id)
    return {"status": "success", "source": "live", "product": jsonable_encoder(product.to_dict())}

@router.post("/products", status_code=status.HTTP_201_CREATED)
def create_new_product(
    *,
    db: Session = Depends(get_db),
    product_in: ProductCreate,
    dispatch: PropagationDispatcher = Depends(get_propagation_dispatcher)
) -> Any:
    """
    Создать товар локально и поставить в очередь на отправку в магазин.
    Ответ не ждёт магазина: результат виден позже в sync_status.
    """
    product = product_crud.create_product(db, product_in.to_model_data())
    task_id = dispatch(product.id, Operation.CREATE)

    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={
            "status": "success",
            "product_id": product.id,
            "sync_status": SyncStatus.PENDING.value,
            "task_id": task_id,
            "message": "Product created locally and queued for store sync"
        }
    )

@router.put("/products/{product_id}")
def update_existing_product(
    *,
    db: Session = Depends(get_db),
    product_id: int,
    product_in: ProductUpdate,
    dispatch: PropagationDispatcher = Depends(get_propagation_dispatcher)
) -> Any:
    """Обновить товар локально и поставить в очередь на отправку в магазин"""
    product = _get_product_or_404(db, product_id)

    data = product_in.to_model_data()
    data["sync_status"] = SyncStatus.PENDING
    product = product_crud.update_product(db, product, data)
    task_id = dispatch(product.id, Operation.UPDATE)

    return {
        "status": "success",
        "product_id": product.id,
        "external_id": product.external_id,
        "sync_status": SyncStatus.PENDING.value,
        "task_id": task_id,
        "message": "Product updated locally and queued for store sync"
    }

@router.post("/products/{product_id}/resync", status_code=status.HTTP_202_ACCEPTED)
def resync_product(
    *,
    db: Session = Depends(get_db),
    product_id: int,
    dispatch: PropagationDispatcher = Depends(get_propagation_dispatcher)
) -> Any:
    """Повторная отправка товара (например, после окончательной ошибки)"""
    product = _get_product_or_404(db, product_id)
    operation = Operation.CREATE if product.external_id is None else Operation.UPDATE

    product = product_crud.update_product(db, product, {"sync_status": SyncStatus.PENDING})
    task_id = dispatch(product.id, operation)

    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content={
            "status": "success",
            "product_id": product.id,
            "operation": operation.value,
            "task_id": task_id,
            "message": f"Product queued for store {operation.value}"
        }
    )

@router.delete("/products/{product_id}")
async def delete_existing_product(
    product_id: int,
    db: Session = Depends(get_db),
    client: CatalogClient = Depends(get_catalog_client)
) -> Any:
    """Удалить товар локально и, если он уже есть в магазине, в магазине"""
    product = await run_in_threadpool(_get_product_or_404, db, product_id)
    external_id = product.external_id

    await run_in_threadpool(product_crud.delete_product, db, product)
    logger.info(f"Product {product_id} deleted locally")

    if external_id is None:
        return {"status": "success", "message": "Product deleted from local database."}

    await client.delete_product(external_id, force=True)
    return {"status": "success", "message": "Product deleted from local database and store."}

@router.get("/categories")
async def read_categories(
    client: CatalogClient = Depends(get_catalog_client)
) -> Any:
    """Категории магазина"""
    categories = await client.list_categories()
    return {
        "status": "success",
        "count": len(categories),
        "categories": [asdict(c) for c in categories]
    }

@router.post("/products/batch")
async def batch_products(
    payload: Dict[str, Any] = Body(...),
    client: CatalogClient = Depends(get_catalog_client)
) -> Any:
    """Пакетное создание/обновление/удаление в магазине (передаётся как есть)"""
    result = await client.batch(payload)
    return {"status": "success", "result": jsonable_encoder(result)}
