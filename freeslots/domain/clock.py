"""
Conversions between civil (wall-clock) time and absolute instants.

All conversions go through the IANA tz database via pendulum, so DST
transitions and historical offset changes are honoured. Wall times that fall
on a transition are resolved the same way every time:

* an ambiguous time (clocks fall back) maps to its later, standard-time
  occurrence;
* a nonexistent time (clocks spring forward) is shifted forward by the
  length of the gap.
"""

from datetime import date, time

import pendulum
from pendulum import DateTime

from .exceptions import InvalidZoneError
from .models import CivilTime


class TimeZoneClock:
    """
    Converts civil date/time triples to instants and back.

    Instants are ``pendulum.DateTime`` objects normalised to UTC.
    """

    def validate_zone(self, zone: str) -> None:
        """
        Ensure ``zone`` names a zone in the tz database.

        Raises:
            InvalidZoneError: If the identifier is unknown or malformed
        """
        if not isinstance(zone, str) or not zone.strip():
            raise InvalidZoneError(f"Invalid timezone: {zone!r}")

        try:
            pendulum.timezone(zone)
        except (ValueError, KeyError) as exc:
            raise InvalidZoneError(f"Invalid timezone: {zone!r}") from exc

    def to_instant(self, civil_date: date, civil_time: time, zone: str) -> DateTime:
        """Convert a wall-clock reading in ``zone`` to a UTC instant."""
        local = pendulum.datetime(
            civil_date.year,
            civil_date.month,
            civil_date.day,
            civil_time.hour,
            civil_time.minute,
            tz=zone,
            fold=1,
        )
        return local.in_timezone("UTC")

    def to_civil(self, instant: DateTime, zone: str) -> CivilTime:
        """Read the wall clock in ``zone`` at the given instant."""
        return CivilTime.from_datetime(self.render(instant, zone))

    def render(self, instant: DateTime, zone: str) -> DateTime:
        """Express an instant as a zone-local datetime, for output."""
        return pendulum.instance(instant).in_timezone(zone)

    def start_of_day(self, civil_date: date, zone: str) -> DateTime:
        """Instant at which ``civil_date`` begins in ``zone``."""
        return self.to_instant(civil_date, time(0, 0), zone)
