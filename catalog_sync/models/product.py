from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, JSON, Enum
from sqlalchemy.sql import func
import enum
from catalog_sync.database import Base

class SyncStatus(str, enum.Enum):
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"

class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)

    # ID товара в магазине (появляется после первой успешной отправки)
    external_id = Column(Integer, unique=True, index=True, nullable=True)

    # Данные товара
    name = Column(String(255), nullable=False, index=True)
    sku = Column(String(100), unique=True, index=True, nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    description = Column(Text, nullable=True)
    short_description = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=True)
    weight = Column(Numeric(8, 2), nullable=True)

    # Категории магазина: [{"id": 15}, ...]
    categories = Column(JSON, nullable=True)

    # Состояние синхронизации
    sync_status = Column(
        Enum(SyncStatus, values_callable=lambda e: [m.value for m in e]),
        default=SyncStatus.PENDING,
        nullable=False,
        index=True
    )
    sync_error = Column(Text, nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)

    # Даты
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Product {self.name} (ID: {self.id}, external: {self.external_id})>"
