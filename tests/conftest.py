import os

# Настройки окружения до импорта приложения
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STORE_CLIENT", "memory")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")

import pytest
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from catalog_sync.database import Base
from catalog_sync.crud import product as product_crud
from catalog_sync.models import Product
from catalog_sync.services.memory_client import InMemoryCatalogClient

@pytest.fixture
def db_session():
    """Чистая SQLite в памяти на каждый тест"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()

@pytest.fixture
def store() -> InMemoryCatalogClient:
    return InMemoryCatalogClient()

@pytest.fixture
def make_product(db_session):
    """Фабрика локальных товаров"""
    counter = {"n": 0}

    def _make(**overrides) -> Product:
        counter["n"] += 1
        data = {
            "name": f"Product {counter['n']}",
            "sku": f"SKU-{counter['n']:03d}",
            "price": Decimal("10.00"),
        }
        data.update(overrides)
        return product_crud.create_product(db_session, data)

    return _make

@pytest.fixture
def remote_item():
    """Товар в формате ответа магазина"""
    def _item(product_id: int, **fields):
        item = {
            "id": product_id,
            "name": f"Remote {product_id}",
            "sku": f"R-{product_id}",
            "price": "19.99",
            "regular_price": "19.99",
            "description": "",
            "short_description": "",
            "stock_quantity": None,
            "weight": "",
            "categories": [],
        }
        item.update(fields)
        return item

    return _item
