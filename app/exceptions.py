"""Domain error taxonomy for the URL shortener.

Every error raised by the service layer derives from ServiceError and carries
the HTTP status the routing layer should answer with. A single exception
handler registered in app.main turns them into ``{"detail": message}``.

Error Map
=========
::
    ServiceError
    ├─ InvalidInput                (400)  malformed URL, bad pagination
    ├─ NotFound                    (404)  unknown / expired / inactive code
    ├─ NotAProduct                 (400)  metadata requested for a non-product URL
    ├─ CodeSpaceExhausted          (500)  no free short code after max attempts
    ├─ ExternalServiceUnavailable  (503)  product page fetch or extraction failed
    └─ StorageError                (500)  database failure

    FetchFailed (not a ServiceError)      raised by the fetcher only, always
                                          converted to ExternalServiceUnavailable
"""

__all__ = [
    "ServiceError",
    "InvalidInput",
    "NotFound",
    "NotAProduct",
    "CodeSpaceExhausted",
    "ExternalServiceUnavailable",
    "StorageError",
    "FetchFailed",
]


class ServiceError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ServiceError):
    status_code = 400


class NotFound(ServiceError):
    status_code = 404


class NotAProduct(ServiceError):
    status_code = 400


class CodeSpaceExhausted(ServiceError):
    status_code = 500


class ExternalServiceUnavailable(ServiceError):
    status_code = 503


class StorageError(ServiceError):
    status_code = 500


class FetchFailed(Exception):
    """Outbound page fetch failed (non-2xx, timeout, redirect loop, network)."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
