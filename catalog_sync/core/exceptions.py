from typing import Any, Optional

class CatalogSyncError(Exception):
    """Базовое исключение сервиса синхронизации каталога"""
    pass

class ValidationError(CatalogSyncError):
    """Некорректные входные данные (отклоняются до вызова ядра)"""
    pass

class ConflictError(CatalogSyncError):
    """Нарушена уникальность sku или external_id"""
    pass

class NotFoundError(CatalogSyncError):
    """Товар не найден (локально или в магазине)"""
    pass

class RemoteTransportError(CatalogSyncError):
    """Ошибка сети или API магазина. Можно повторить."""
    pass

class RemoteResponseError(RemoteTransportError):
    """Магазин ответил кодом ошибки"""
    def __init__(self, message: str, status_code: int, response: Optional[Any] = None):
        self.status_code = status_code
        self.response = response
        super().__init__(message)

class PreconditionError(CatalogSyncError):
    """Операция невозможна в текущем состоянии. Повтор не поможет."""
    pass
