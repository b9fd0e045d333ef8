class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class StockLedgerError(BaseServiceError):
    """Base exception for stock ledger errors."""
    pass

class InvalidStockError(StockLedgerError):
    """Raised when a requested stock value or reason is malformed."""
    pass

class SkuNotFoundError(StockLedgerError):
    """Raised when the SKU does not exist in the master table."""
    pass

class StockStorageError(StockLedgerError):
    """Raised when the ledger transaction fails for any other reason."""
    pass

class PlatformServiceError(BaseServiceError):
    """Base exception for platform service errors."""
    pass

class MercadoLibreServiceError(PlatformServiceError):
    """Base exception for MercadoLibre-specific errors."""
    pass

class MercadoLibreAPIError(MercadoLibreServiceError):
    """Raised when MercadoLibre API calls fail."""

    def __init__(self, message: str, status_code: int = None, detail=None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

class MercadoLibreAuthError(MercadoLibreServiceError):
    """Raised when no usable MercadoLibre token can be obtained."""
    pass

class TiendaNubeServiceError(PlatformServiceError):
    """Base exception for TiendaNube-specific errors."""
    pass

class TiendaNubeAPIError(TiendaNubeServiceError):
    """Raised when TiendaNube API calls fail."""

    def __init__(self, message: str, status_code: int = None, detail=None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

class TiendaNubeAuthError(TiendaNubeServiceError):
    """Raised when the app authorization cannot be completed."""
    pass

class WebhookSignatureError(BaseServiceError):
    """Raised when a webhook signature is missing or does not match."""
    pass

class WorkerPoolFullError(BaseServiceError):
    """Raised when a job cannot be queued because the worker pool is saturated."""
    pass
