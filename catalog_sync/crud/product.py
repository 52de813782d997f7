# catalog_sync/crud/product.py
import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, Query
from catalog_sync.core.exceptions import ConflictError
from catalog_sync.models.product import Product, SyncStatus

logger = logging.getLogger(__name__)

# Поля, которые можно записывать через create/update
PRODUCT_FIELDS = (
    "external_id", "name", "sku", "price", "description", "short_description",
    "quantity", "weight", "categories", "sync_status", "sync_error", "last_synced_at",
)

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def get_product(db: Session, product_id: int) -> Optional[Product]:
    """Получить товар по внутреннему ID"""
    return db.query(Product).filter(Product.id == product_id).first()

def get_product_by_external_id(db: Session, external_id: int) -> Optional[Product]:
    """Получить товар по ID в магазине"""
    return db.query(Product).filter(Product.external_id == external_id).first()

def get_product_by_sku(db: Session, sku: str) -> Optional[Product]:
    """Получить товар по SKU"""
    return db.query(Product).filter(Product.sku == sku).first()

def _filtered_query(
    db: Session,
    sync_status: Optional[SyncStatus] = None,
    search: Optional[str] = None,
    sku: Optional[str] = None
) -> Query:
    query = db.query(Product)

    if sync_status:
        query = query.filter(Product.sync_status == sync_status)

    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))

    if sku:
        query = query.filter(Product.sku.ilike(f"%{sku}%"))

    return query

def get_products(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    sync_status: Optional[SyncStatus] = None,
    search: Optional[str] = None,
    sku: Optional[str] = None
) -> List[Product]:
    """Получить список товаров с фильтрами (новые первыми)"""
    query = _filtered_query(db, sync_status=sync_status, search=search, sku=sku)
    return query.order_by(Product.created_at.desc(), Product.id.desc()).offset(skip).limit(limit).all()

def count_products(
    db: Session,
    sync_status: Optional[SyncStatus] = None,
    search: Optional[str] = None,
    sku: Optional[str] = None
) -> int:
    return _filtered_query(db, sync_status=sync_status, search=search, sku=sku).count()

def search_products(db: Session, query: str, skip: int = 0, limit: int = 50) -> List[Product]:
    """Поиск по подстроке в названии или SKU"""
    return get_products(db, skip=skip, limit=limit, search=query)

def _ensure_unique(
    db: Session,
    sku: Optional[str] = None,
    external_id: Optional[int] = None,
    exclude_id: Optional[int] = None
):
    """Проверка уникальности sku и external_id до записи"""
    if sku is not None:
        existing = get_product_by_sku(db, sku)
        if existing and existing.id != exclude_id:
            raise ConflictError(f"Product with SKU '{sku}' already exists (id={existing.id})")

    if external_id is not None:
        existing = get_product_by_external_id(db, external_id)
        if existing and existing.id != exclude_id:
            raise ConflictError(f"Product with external ID {external_id} already exists (id={existing.id})")

def _is_unique_violation(error: IntegrityError) -> bool:
    # 23505 - unique_violation в PostgreSQL; SQLite сообщает только текстом
    if getattr(error.orig, "pgcode", None) == "23505":
        return True
    return "unique" in str(error.orig).lower()

def _commit(db: Session, product: Product) -> Product:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if not _is_unique_violation(e):
            logger.error(f"Integrity error for product {product.id}: {e.orig}")
            raise
        logger.warning(f"Unique constraint violated for product {product.id}: {e.orig}")
        raise ConflictError(f"Product violates a uniqueness constraint: {e.orig}") from e
    db.refresh(product)
    return product

def create_product(db: Session, data: Dict[str, Any]) -> Product:
    """Создать товар. Без явного статуса товар ждёт отправки (pending)."""
    values = {key: data[key] for key in PRODUCT_FIELDS if key in data}
    values.setdefault("sync_status", SyncStatus.PENDING)

    _ensure_unique(db, sku=values.get("sku"), external_id=values.get("external_id"))

    db_product = Product(**values)
    db.add(db_product)
    return _commit(db, db_product)

def update_product(db: Session, product: Product, data: Dict[str, Any]) -> Product:
    """Обновить товар целиком одной записью"""
    values = {key: data[key] for key in PRODUCT_FIELDS if key in data}

    _ensure_unique(
        db,
        sku=values.get("sku"),
        external_id=values.get("external_id"),
        exclude_id=product.id
    )

    for field, value in values.items():
        setattr(product, field, value)

    return _commit(db, product)

def delete_product(db: Session, product: Product) -> None:
    """Удалить товар"""
    db.delete(product)
    db.commit()

def mark_synced(db: Session, product: Product, external_id: Optional[int] = None) -> Product:
    """Товар совпадает с магазином"""
    data: Dict[str, Any] = {
        "sync_status": SyncStatus.SYNCED,
        "sync_error": None,
        "last_synced_at": utcnow(),
    }
    if external_id is not None:
        data["external_id"] = external_id
    return update_product(db, product, data)

def mark_failed(db: Session, product: Product, message: str) -> Product:
    """Отправка в магазин не удалась"""
    return update_product(db, product, {
        "sync_status": SyncStatus.FAILED,
        "sync_error": message or "Unknown error",
    })
