# catalog_sync/schemas/product.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal
from catalog_sync.models.product import SyncStatus

# Поля запроса, которые пишутся в товар как есть
DIRECT_FIELDS = ("name", "sku", "price", "description", "short_description", "quantity", "weight")

class ProductBase(BaseModel):
    description: Optional[str] = None
    short_description: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)
    weight: Optional[Decimal] = Field(None, ge=0, max_digits=8, decimal_places=2)
    category_ids: Optional[List[int]] = None

    def to_model_data(self) -> Dict[str, Any]:
        """Только переданные поля; category_ids -> categories [{"id": ...}]"""
        data = self.model_dump(exclude_unset=True)
        values = {key: data[key] for key in DIRECT_FIELDS if key in data}
        if "category_ids" in data:
            category_ids = data["category_ids"]
            values["categories"] = [{"id": c} for c in category_ids] if category_ids else None
        return values

# Создание товара
class ProductCreate(ProductBase):
    name: str = Field(..., min_length=1, max_length=255)
    sku: str = Field(..., min_length=1, max_length=100)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)

# Обновление товара
class ProductUpdate(ProductBase):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    sku: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)

    @field_validator("name", "sku", "price")
    @classmethod
    def not_null(cls, v):
        # Поле можно не передавать, но нельзя стереть
        if v is None:
            raise ValueError("field cannot be null")
        return v

class CategoryRef(BaseModel):
    id: int

# Ответ API
class Product(BaseModel):
    id: int
    external_id: Optional[int]
    name: str
    sku: Optional[str]
    price: Optional[Decimal]
    description: Optional[str]
    short_description: Optional[str]
    quantity: Optional[int]
    weight: Optional[Decimal]
    categories: Optional[List[CategoryRef]]
    sync_status: SyncStatus
    sync_error: Optional[str]
    last_synced_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)
