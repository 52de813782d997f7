import logging
from typing import Optional
from catalog_sync.core.config import Settings, settings as default_settings
from catalog_sync.services.catalog_client import CatalogClient, WooCommerceClient
from catalog_sync.services.memory_client import InMemoryCatalogClient, demo_catalog

logger = logging.getLogger(__name__)

# Заглушка одна на процесс, чтобы данные жили между запросами
_memory_client: Optional[InMemoryCatalogClient] = None

def get_memory_client() -> InMemoryCatalogClient:
    global _memory_client
    if _memory_client is None:
        _memory_client = demo_catalog()
        logger.info("Using in-memory store client")
    return _memory_client

def build_catalog_client(config: Optional[Settings] = None) -> CatalogClient:
    """Клиент магазина по настройке STORE_CLIENT ("http" или "memory")"""
    config = config or default_settings

    if config.STORE_CLIENT == "memory":
        return get_memory_client()

    if config.STORE_CLIENT != "http":
        raise ValueError(f"Unknown STORE_CLIENT: {config.STORE_CLIENT}")

    return WooCommerceClient(
        base_url=config.STORE_URL,
        consumer_key=config.STORE_CONSUMER_KEY,
        consumer_secret=config.STORE_CONSUMER_SECRET,
        api_version=config.STORE_API_VERSION,
        timeout=config.STORE_TIMEOUT,
        verify_ssl=config.STORE_VERIFY_SSL,
        max_retries=config.STORE_MAX_RETRIES
    )
