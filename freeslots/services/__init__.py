"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import (
    AvailabilityQuery,
    AvailabilityResult,
    AvailabilityService,
    CalendarClientProtocol,
    error_response,
    resolve_query,
    http_status_for,
)

__all__ = [
    "AvailabilityQuery",
    "AvailabilityResult",
    "AvailabilityService",
    "CalendarClientProtocol",
    "error_response",
    "resolve_query",
    "http_status_for",
]
