# scripts/reconcile_catalog.py
import asyncio
import sys
from catalog_sync.core.config import settings
from catalog_sync.core.logging import setup_logging
from catalog_sync.database import SessionLocal, create_tables
from catalog_sync.services.factory import build_catalog_client
from catalog_sync.services.reconciler import CatalogReconciler

async def run() -> int:
    """Одна сверка каталога магазина с локальной базой"""
    create_tables()
    db = SessionLocal()
    try:
        async with build_catalog_client() as client:
            reconciler = CatalogReconciler(db, client, page_size=settings.SYNC_PAGE_SIZE)
            result = await reconciler.run_logged(trigger="cli")
    except Exception as e:
        print(f"❌ Reconcile failed: {e}")
        print("   Already reconciled pages are saved; it is safe to run again.")
        return 1
    finally:
        db.close()

    print("✅ Reconcile completed")
    print(f"  Total:   {result.total_synced}")
    print(f"  New:     {result.new_count}")
    print(f"  Updated: {result.updated_count}")
    print(f"  Pages:   {result.pages_fetched}")
    return 0

if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run()))
