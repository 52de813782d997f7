import logging
import sys
from pathlib import Path
from typing import Optional
from catalog_sync.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Настройка логирования для API, воркеров и скриптов"""
    level = (level or settings.LOG_LEVEL).upper()
    log_file = log_file or settings.LOG_FILE

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=logging.getLevelName(level),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )

    # Меньше шума от HTTP-клиента
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
