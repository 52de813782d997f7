# catalog_sync/api/v1/api.py
from fastapi import APIRouter
from catalog_sync.api.v1.endpoints import products, sync

api_router = APIRouter()
api_router.include_router(products.router, tags=["products"])
api_router.include_router(sync.router, tags=["sync"])
