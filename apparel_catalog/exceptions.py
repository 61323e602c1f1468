"""
Catalog Exception Classes

Structured errors shared by the importers, the live supplier client and the
static canonical mapping loader.
"""
from typing import Optional, Dict, Any
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CatalogError(Exception):
    """
    Base exception for all catalog errors

    Attributes:
        message: human readable message
        error_code: stable error code
        severity: error severity
        context: extra context for logs
        recoverable: whether the caller may continue without this item
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = False
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.severity = severity
        self.context = context or {}
        self.recoverable = recoverable
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context,
            "recoverable": self.recoverable
        }


class SupplierApiError(CatalogError):
    """
    Live supplier call failures (network error, timeout, non-success status)

    Attributes:
        supplier: supplier code
        status_code: HTTP status code, None for transport failures
        url: request URL
        response_body: truncated response body
    """

    def __init__(
        self,
        message: str,
        supplier: Optional[str] = None,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        response_body: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        recoverable: bool = True,
        **kwargs
    ):
        context = {
            "supplier": supplier,
            "status_code": status_code,
            "url": url,
            "response_body": response_body[:500] if response_body else None,
        }
        context.update(kwargs)
        super().__init__(
            message=message,
            error_code="SUPPLIER_API_ERROR",
            severity=severity,
            context=context,
            recoverable=recoverable
        )
        self.supplier = supplier
        self.status_code = status_code
        self.url = url
        self.response_body = response_body

    @property
    def is_transient(self) -> bool:
        """Timeouts, connection failures, throttling and server errors are worth a retry."""
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


class CanonicalMappingError(CatalogError):
    """
    Static canonical mapping integrity violation. Always fatal at load time.

    Attributes:
        canonical_sku: record that triggered the violation
        conflict_with: record that already owns the key
        key: the duplicated SKU, alias or SUPPLIER:STYLE pair
    """

    def __init__(
        self,
        message: str,
        canonical_sku: Optional[str] = None,
        conflict_with: Optional[str] = None,
        key: Optional[str] = None,
        **kwargs
    ):
        context = {
            "canonical_sku": canonical_sku,
            "conflict_with": conflict_with,
            "key": key,
        }
        context.update(kwargs)
        super().__init__(
            message=message,
            error_code="CANONICAL_MAPPING_ERROR",
            severity=ErrorSeverity.CRITICAL,
            context=context,
            recoverable=False
        )
        self.canonical_sku = canonical_sku
        self.conflict_with = conflict_with
        self.key = key


class CacheError(CatalogError):
    """Cache read/write failure. Callers warn and fall through to the store or live source."""

    def __init__(self, message: str, key: Optional[str] = None, operation: Optional[str] = None, **kwargs):
        context = {"key": key, "operation": operation}
        context.update(kwargs)
        super().__init__(
            message=message,
            error_code="CACHE_ERROR",
            severity=ErrorSeverity.LOW,
            context=context,
            recoverable=True
        )
        self.key = key
        self.operation = operation


class CatalogImportError(CatalogError):
    """
    Job-level import failure (missing feed file, unusable header, failed replace transaction).
    Row-level problems are counted and skipped instead.
    """

    def __init__(
        self,
        message: str,
        supplier: Optional[str] = None,
        source: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.HIGH,
        **kwargs
    ):
        context = {"supplier": supplier, "source": source}
        context.update(kwargs)
        super().__init__(
            message=message,
            error_code="CATALOG_IMPORT_ERROR",
            severity=severity,
            context=context,
            recoverable=False
        )
        self.supplier = supplier
        self.source = source


class SupplierUnavailableError(SupplierApiError):
    """Transient upstream failure (timeout, connection error, 429, 5xx). Safe to retry."""
