"""Status enums shared by the services, schemas and metric labels."""

from enum import StrEnum

__all__ = ["HealthStatus", "RequestStatus", "CacheStatus", "FetchStatus", "ScrapeStatus"]


class HealthStatus(StrEnum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class RequestStatus(StrEnum):
    """Outcome label for request counters."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    ERROR = "error"


class CacheStatus(StrEnum):
    """Freshness of stored product metadata when it is requested."""

    HIT = "hit"
    MISS = "miss"
    BYPASS = "bypass"


class FetchStatus(StrEnum):
    """Outcome label for outbound product page fetches."""

    SUCCESS = "success"
    HTTP_ERROR = "http_error"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"


class ScrapeStatus(StrEnum):
    SUCCESS = "success"
    FETCH_FAILED = "fetch_failed"
    EXTRACT_FAILED = "extract_failed"
