# mock_store/mock_server.py
from fastapi import FastAPI, HTTPException, Depends, Query, Body
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from typing import List, Optional, Dict, Any, Iterable
from dataclasses import asdict
import uvicorn
from catalog_sync.core.exceptions import NotFoundError
from catalog_sync.services.memory_client import InMemoryCatalogClient, demo_catalog

API_PREFIX = "/wp-json/wc/v3"

def create_app(
    catalog: Optional[InMemoryCatalogClient] = None,
    api_keys: Optional[Iterable[str]] = None
) -> FastAPI:
    """Фейковый магазин с REST API в стиле WooCommerce поверх заглушки в памяти"""
    catalog = catalog or demo_catalog()
    allowed_keys = set(api_keys or [])

    app = FastAPI(title="Mock Store API", version="1.0")
    app.state.catalog = catalog

    # Dependency для проверки ключа
    def verify_consumer_key(consumer_key: Optional[str] = Query(None)):
        if allowed_keys and consumer_key not in allowed_keys:
            raise HTTPException(status_code=401, detail="Invalid consumer key")
        return consumer_key

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content={"code": "woocommerce_rest_product_invalid_id", "message": str(exc), "data": {"status": 404}}
        )

    @app.get(f"{API_PREFIX}/products", dependencies=[Depends(verify_consumer_key)])
    async def list_products(
        page: int = Query(1, ge=1),
        per_page: int = Query(10, ge=1, le=100),
        search: Optional[str] = None,
        sku: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        products = await catalog.list_products(page=page, per_page=per_page, search=search, sku=sku)
        return jsonable_encoder([p.to_dict() for p in products])

    @app.get(f"{API_PREFIX}/products/categories", dependencies=[Depends(verify_consumer_key)])
    async def list_categories() -> List[Dict[str, Any]]:
        return [asdict(c) for c in await catalog.list_categories()]

    @app.post(f"{API_PREFIX}/products/batch", dependencies=[Depends(verify_consumer_key)])
    async def batch(payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        return jsonable_encoder(await catalog.batch(payload))

    @app.get(f"{API_PREFIX}/products/{{product_id}}", dependencies=[Depends(verify_consumer_key)])
    async def get_product(product_id: int) -> Dict[str, Any]:
        return jsonable_encoder((await catalog.get_product(product_id)).to_dict())

    @app.post(f"{API_PREFIX}/products", status_code=201, dependencies=[Depends(verify_consumer_key)])
    async def create_product(payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        if not payload.get("name"):
            raise HTTPException(status_code=400, detail="Product name is required")
        return jsonable_encoder((await catalog.create_product(payload)).to_dict())

    @app.put(f"{API_PREFIX}/products/{{product_id}}", dependencies=[Depends(verify_consumer_key)])
    async def update_product(product_id: int, payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        return jsonable_encoder((await catalog.update_product(product_id, payload)).to_dict())

    @app.delete(f"{API_PREFIX}/products/{{product_id}}", dependencies=[Depends(verify_consumer_key)])
    async def delete_product(product_id: int, force: bool = Query(False)) -> Dict[str, Any]:
        return jsonable_encoder(await catalog.delete_product(product_id, force=force))

    return app

app = create_app(api_keys=["ck_test_123"])

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8080)
