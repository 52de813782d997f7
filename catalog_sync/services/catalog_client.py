import httpx
import asyncio
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
import logging
from catalog_sync.core.exceptions import (
    NotFoundError,
    RemoteTransportError,
    RemoteResponseError,
)

logger = logging.getLogger(__name__)

def _is_blank(value: Any) -> bool:
    """Пустое значение магазина считается отсутствующим полем, а не очисткой"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False

def _text(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    return str(value).strip()

def _decimal(value: Any) -> Optional[Decimal]:
    # Для чисел ноль тоже означает "не задано"
    if _is_blank(value) or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        logger.warning(f"Ignoring non-numeric value from store: {value!r}")
        return None
    return number if number != 0 else None

def _integer(value: Any) -> Optional[int]:
    number = _decimal(value)
    return int(number) if number is not None else None

def _categories(value: Any) -> Optional[List[Dict[str, Any]]]:
    if _is_blank(value) or not isinstance(value, list):
        return None
    refs = [c for c in value if isinstance(c, dict) and c.get("id") is not None]
    return refs or None

@dataclass
class RemoteProduct:
    """Товар магазина. Пустые поля ответа приводятся к None при разборе."""
    id: int
    name: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[Decimal] = None
    regular_price: Optional[Decimal] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    stock_quantity: Optional[int] = None
    weight: Optional[Decimal] = None
    categories: Optional[List[Dict[str, Any]]] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "RemoteProduct":
        return cls(
            id=int(item["id"]),
            name=_text(item.get("name")),
            sku=_text(item.get("sku")),
            price=_decimal(item.get("price")),
            regular_price=_decimal(item.get("regular_price")),
            description=_text(item.get("description")),
            short_description=_text(item.get("short_description")),
            stock_quantity=_integer(item.get("stock_quantity")),
            weight=_decimal(item.get("weight")),
            categories=_categories(item.get("categories")),
            raw=dict(item),
        )

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.raw) if self.raw else {"id": self.id, "name": self.name, "sku": self.sku}

@dataclass
class RemoteCategory:
    """Категория товаров магазина"""
    id: int
    name: Optional[str] = None
    slug: Optional[str] = None
    parent: Optional[int] = None
    count: Optional[int] = None

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "RemoteCategory":
        return cls(
            id=int(item["id"]),
            name=item.get("name"),
            slug=item.get("slug"),
            parent=item.get("parent"),
            count=item.get("count"),
        )

class CatalogClient(ABC):
    """Контракт клиента каталога магазина.

    Реализации: WooCommerceClient (HTTP) и InMemoryCatalogClient
    (детерминированная заглушка для тестов и локального запуска).
    Нужная реализация передаётся в сервисы явно при создании.
    """

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    async def connect(self):
        pass

    async def disconnect(self):
        pass

    @abstractmethod
    async def list_products(
        self,
        page: int = 1,
        per_page: int = 10,
        search: Optional[str] = None,
        sku: Optional[str] = None
    ) -> List[RemoteProduct]:
        ...

    @abstractmethod
    async def get_product(self, external_id: int) -> RemoteProduct:
        ...

    @abstractmethod
    async def create_product(self, payload: Dict[str, Any]) -> RemoteProduct:
        ...

    @abstractmethod
    async def update_product(self, external_id: int, payload: Dict[str, Any]) -> RemoteProduct:
        ...

    @abstractmethod
    async def delete_product(self, external_id: int, force: bool = True) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def list_categories(self, params: Optional[Dict[str, Any]] = None) -> List[RemoteCategory]:
        ...

    @abstractmethod
    async def batch(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...

class WooCommerceClient(CatalogClient):
    """Клиент для работы с REST API магазина (WooCommerce wc/v3)"""

    def __init__(
        self,
        base_url: str,
        consumer_key: str = "",
        consumer_secret: str = "",
        api_version: str = "wc/v3",
        timeout: int = 40,
        verify_ssl: bool = False,
        max_retries: int = 1,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.api_url = f"{self.base_url}/wp-json/{api_version.strip('/')}"
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.max_retries = max(1, max_retries)

        # Сессия HTTP (можно передать готовую, например с ASGITransport)
        self._client: Optional[httpx.AsyncClient] = http_client
        self._owns_client = http_client is None

    async def connect(self):
        """Создание HTTP сессии"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                verify=self.verify_ssl,
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                headers=self._get_headers()
            )
            self._owns_client = True
            logger.info(f"Connected to store API at {self.api_url}")

    async def disconnect(self):
        """Закрытие HTTP сессии"""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None
            logger.info("Disconnected from store API")

    def _get_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": "CatalogSync/1.0",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _auth_params(self) -> Dict[str, str]:
        # Ключи в query string: некоторые хостинги вырезают заголовок Authorization
        if not self.consumer_key:
            return {}
        return {
            "consumer_key": self.consumer_key,
            "consumer_secret": self.consumer_secret,
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None
    ) -> Any:
        """Выполнение HTTP запроса с повторными попытками при сбое соединения"""

        if self._client is None:
            await self.connect()

        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        query = {**(params or {}), **self._auth_params()}

        for attempt in range(self.max_retries):
            try:
                logger.debug(f"Request to store: {method} {url} (attempt {attempt + 1})")

                response = await self._client.request(
                    method=method,
                    url=url,
                    params=query,
                    json=json
                )
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                if attempt == self.max_retries - 1:
                    logger.error(f"Failed to reach store after {self.max_retries} attempts: {e}")
                    raise RemoteTransportError(f"Connection failed: {e}") from e

                # Экспоненциальная задержка
                wait_time = 2 ** attempt
                logger.warning(f"Retrying in {wait_time}s... (attempt {attempt + 1})")
                await asyncio.sleep(wait_time)
                continue
            except httpx.HTTPError as e:
                logger.error(f"Unexpected error during store request: {e}")
                raise RemoteTransportError(f"Unexpected error: {e}") from e

            return self._parse_response(response)

    def _parse_response(self, response: httpx.Response) -> Any:
        if response.status_code >= 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = None
            detail = error_data if error_data is not None else response.text[:200]
            error_msg = f"Store API error: {response.status_code} - {detail}"

            if response.status_code == 404:
                raise NotFoundError(error_msg)
            raise RemoteResponseError(error_msg, response.status_code, error_data)

        if response.content:
            return response.json()
        return {}

    async def list_products(
        self,
        page: int = 1,
        per_page: int = 10,
        search: Optional[str] = None,
        sku: Optional[str] = None
    ) -> List[RemoteProduct]:
        params: Dict[str, Any] = {"page": page, "per_page": per_page}
        if search:
            params["search"] = search
        if sku:
            params["sku"] = sku

        logger.info(f"Fetching store products: {params}")
        try:
            items = await self._request("GET", "products", params=params)
        except RemoteTransportError as e:
            logger.error(f"Store fetch error: {e}")
            raise

        products = [RemoteProduct.from_api(item) for item in items]
        logger.info(f"Fetched {len(products)} products.")
        return products

    async def get_product(self, external_id: int) -> RemoteProduct:
        logger.info(f"Fetching store product ID: {external_id}")
        try:
            item = await self._request("GET", f"products/{external_id}")
        except (NotFoundError, RemoteTransportError) as e:
            logger.error(f"Store fetch error for ID {external_id}: {e}")
            raise
        return RemoteProduct.from_api(item)

    async def create_product(self, payload: Dict[str, Any]) -> RemoteProduct:
        logger.info(f"Creating store product: {payload.get('sku') or payload.get('name')}")
        try:
            item = await self._request("POST", "products", json=payload)
        except RemoteTransportError as e:
            logger.error(f"Store create error: {e}")
            raise

        product = RemoteProduct.from_api(item)
        logger.info(f"Product created successfully. ID: {product.id}")
        return product

    async def update_product(self, external_id: int, payload: Dict[str, Any]) -> RemoteProduct:
        logger.info(f"Updating store product ID: {external_id}")
        try:
            item = await self._request("PUT", f"products/{external_id}", json=payload)
        except (NotFoundError, RemoteTransportError) as e:
            logger.error(f"Store update error for ID {external_id}: {e}")
            raise

        logger.info("Product updated successfully.")
        return RemoteProduct.from_api(item)

    async def delete_product(self, external_id: int, force: bool = True) -> Dict[str, Any]:
        logger.info(f"Deleting store product ID: {external_id}")
        try:
            result = await self._request(
                "DELETE",
                f"products/{external_id}",
                params={"force": "true" if force else "false"}
            )
        except (NotFoundError, RemoteTransportError) as e:
            logger.error(f"Store delete error for ID {external_id}: {e}")
            raise

        logger.info("Product deleted successfully.")
        return result

    async def list_categories(self, params: Optional[Dict[str, Any]] = None) -> List[RemoteCategory]:
        logger.info(f"Fetching store categories: {params or {}}")
        try:
            items = await self._request("GET", "products/categories", params=params)
        except RemoteTransportError as e:
            logger.error(f"Store categories fetch error: {e}")
            raise

        categories = [RemoteCategory.from_api(item) for item in items]
        logger.info(f"Fetched {len(categories)} categories.")
        return categories

    async def batch(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        logger.info("Batch processing store products")
        try:
            result = await self._request("POST", "products/batch", json=payload)
        except RemoteTransportError as e:
            logger.error(f"Store batch error: {e}")
            raise

        logger.info("Batch processing completed.")
        return result
