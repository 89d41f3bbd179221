"""
Domain-specific exception hierarchy for the free slot finder.
"""


class AvailabilityError(Exception):
    """Base class for all application-level errors."""


class InvalidZoneError(AvailabilityError):
    """Raised when a time zone is not a recognised IANA identifier."""


class InvalidRangeError(AvailabilityError):
    """Raised when a date range is unparseable or ends before it starts."""


class InvalidWorkingHoursError(AvailabilityError):
    """Raised when working hours are not HH:MM or do not open before they close."""


class CalendarAPIError(AvailabilityError):
    """Raised when calendar data cannot be fetched or parsed."""


class CalendarNotFoundError(CalendarAPIError):
    """Raised when none of the configured calendars exist."""


class CalendarTimeoutError(CalendarAPIError):
    """Raised when the calendar list cannot be retrieved in time."""


class AuthenticationError(AvailabilityError):
    """Raised when authentication or token handling fails."""
