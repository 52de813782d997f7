from catalog_sync.models.product import Product, SyncStatus
from catalog_sync.models.sync_log import SyncLog
