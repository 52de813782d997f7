import copy
import logging
from collections import defaultdict, deque
from typing import Optional, Dict, Any, List, Iterable
from catalog_sync.core.exceptions import NotFoundError, RemoteTransportError
from catalog_sync.services.catalog_client import CatalogClient, RemoteProduct, RemoteCategory

logger = logging.getLogger(__name__)

# Поля, которые магазин принимает в теле запроса на создание/обновление
WRITABLE_FIELDS = (
    "name", "sku", "regular_price", "description", "short_description",
    "manage_stock", "stock_quantity", "weight", "categories", "status",
)

DEFAULT_CATEGORIES = [
    {"id": 15, "name": "Uncategorized", "slug": "uncategorized", "parent": 0},
]

class InMemoryCatalogClient(CatalogClient):
    """Детерминированная заглушка магазина.

    Хранит товары в памяти, выдаёт id по порядку начиная с first_id,
    записывает все вызовы в calls и умеет имитировать сбои (fail_next).
    """

    def __init__(
        self,
        products: Optional[Iterable[Dict[str, Any]]] = None,
        categories: Optional[Iterable[Dict[str, Any]]] = None,
        first_id: int = 1000
    ):
        self._products: Dict[int, Dict[str, Any]] = {}
        self._categories = [dict(c) for c in (categories or DEFAULT_CATEGORIES)]
        self._next_id = first_id
        self._failures: Dict[str, deque] = defaultdict(deque)
        self.calls: List[tuple] = []

        for item in products or []:
            self.add_product(item)

    # Управление заглушкой

    def add_product(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """Положить товар напрямую (без записи в calls)"""
        item = copy.deepcopy(item)
        if "id" not in item:
            item["id"] = self._allocate_id()
        else:
            self._next_id = max(self._next_id, int(item["id"]) + 1)
        item.setdefault("price", item.get("regular_price", ""))
        self._products[int(item["id"])] = item
        return item

    def fail_next(self, method: str, times: int = 1, error: Optional[Exception] = None):
        """Следующие `times` вызовов метода завершатся ошибкой"""
        for _ in range(times):
            self._failures[method].append(error or RemoteTransportError(f"Simulated store failure in {method}"))

    def call_count(self, method: Optional[str] = None) -> int:
        if method is None:
            return len(self.calls)
        return sum(1 for name, _ in self.calls if name == method)

    @property
    def products(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(self._products[key]) for key in sorted(self._products)]

    def _allocate_id(self) -> int:
        new_id = self._next_id
        self._next_id += 1
        return new_id

    def _record(self, method: str, *args):
        self.calls.append((method, args))
        if self._failures[method]:
            error = self._failures[method].popleft()
            logger.info(f"Mock store: failing {method} with {error!r}")
            raise error

    def _find(self, external_id: int) -> Dict[str, Any]:
        item = self._products.get(int(external_id)) if external_id is not None else None
        if item is None:
            raise NotFoundError(f"Store product {external_id} not found")
        return item

    def _apply(self, item: Dict[str, Any], payload: Dict[str, Any]):
        for key in WRITABLE_FIELDS:
            if key in payload:
                item[key] = copy.deepcopy(payload[key])
        if "regular_price" in payload:
            item["price"] = payload["regular_price"]

    def _create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        item = {"id": self._allocate_id(), "status": "publish"}
        self._apply(item, payload)
        self._products[item["id"]] = item
        return item

    def _update(self, external_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        item = self._find(external_id)
        self._apply(item, payload)
        return item

    def _delete(self, external_id: int) -> Dict[str, Any]:
        item = self._products.pop(int(self._find(external_id)["id"]))
        return {**item, "deleted": True}

    # Контракт CatalogClient

    async def list_products(
        self,
        page: int = 1,
        per_page: int = 10,
        search: Optional[str] = None,
        sku: Optional[str] = None
    ) -> List[RemoteProduct]:
        self._record("list_products", page, per_page, search, sku)
        items = self.products
        if search:
            needle = search.lower()
            items = [i for i in items if needle in (i.get("name") or "").lower()]
        if sku:
            items = [i for i in items if i.get("sku") == sku]

        start = (max(page, 1) - 1) * per_page
        page_items = items[start:start + per_page]
        logger.info(f"Mock store: page {page} has {len(page_items)} products")
        return [RemoteProduct.from_api(i) for i in page_items]

    async def get_product(self, external_id: int) -> RemoteProduct:
        self._record("get_product", external_id)
        return RemoteProduct.from_api(copy.deepcopy(self._find(external_id)))

    async def create_product(self, payload: Dict[str, Any]) -> RemoteProduct:
        self._record("create_product", payload)
        item = self._create(payload)
        logger.info(f"Mock store: created product {item['id']}")
        return RemoteProduct.from_api(copy.deepcopy(item))

    async def update_product(self, external_id: int, payload: Dict[str, Any]) -> RemoteProduct:
        self._record("update_product", external_id, payload)
        item = self._update(external_id, payload)
        logger.info(f"Mock store: updated product {external_id}")
        return RemoteProduct.from_api(copy.deepcopy(item))

    async def delete_product(self, external_id: int, force: bool = True) -> Dict[str, Any]:
        self._record("delete_product", external_id, force)
        result = self._delete(external_id)
        logger.info(f"Mock store: deleted product {external_id}")
        return result

    async def list_categories(self, params: Optional[Dict[str, Any]] = None) -> List[RemoteCategory]:
        self._record("list_categories", params)
        return [RemoteCategory.from_api(c) for c in self._categories]

    async def batch(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._record("batch", payload)
        result: Dict[str, List[Dict[str, Any]]] = {"create": [], "update": [], "delete": []}

        for data in payload.get("create", []):
            result["create"].append(copy.deepcopy(self._create(data)))

        for data in payload.get("update", []):
            data = dict(data)
            external_id = data.pop("id", None)
            try:
                result["update"].append(copy.deepcopy(self._update(external_id, data)))
            except NotFoundError as e:
                result["update"].append({"id": external_id, "error": {"code": "not_found", "message": str(e)}})

        for external_id in payload.get("delete", []):
            try:
                result["delete"].append(self._delete(external_id))
            except NotFoundError as e:
                result["delete"].append({"id": external_id, "error": {"code": "not_found", "message": str(e)}})

        return result

def demo_catalog() -> InMemoryCatalogClient:
    """Заглушка с парой демонстрационных товаров"""
    return InMemoryCatalogClient(products=[
        {
            "id": 101,
            "name": "Mock Product 1",
            "sku": "MOCK-001",
            "price": "19.99",
            "regular_price": "19.99",
            "status": "publish",
        },
        {
            "id": 102,
            "name": "Mock Product 2",
            "sku": "MOCK-002",
            "price": "29.99",
            "regular_price": "29.99",
            "status": "publish",
        },
    ])
