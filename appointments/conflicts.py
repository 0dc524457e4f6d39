from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from appointments.models import Booking, TimeInterval
from appointments.services import DEFAULT_CATALOG, CodedEntryUnits, ServiceCatalog

TOO_MANY_OVERLAPS = "Two overlapping appointments already exist at this time"
PRIMARY_CONTENDED = (
    "Two codings on the primary network cannot be scheduled at the same time"
)
SECONDARY_CONTENDED = (
    "Two codings on the secondary network cannot be scheduled at the same time"
)


@dataclass(frozen=True)
class Admissibility:
    admissible: bool
    reason: str | None = None


ADMISSIBLE = Admissibility(admissible=True)


class ConflictChecker:
    """
    Decides whether a candidate interval may be booked next to the bookings
    that already overlap it. Pure: the overlap set is supplied by the caller.

    Rules, first match wins:
      1. ``max_overlapping`` or more overlapping bookings -> reject.
      2. coded entry with primary units vs. an overlapping coded entry with
         primary units -> reject (same physical resource).
      3. same as 2 for secondary units.
    Primary and secondary categories are independent of each other.
    """

    def __init__(
        self,
        catalog: ServiceCatalog = DEFAULT_CATALOG,
        *,
        max_overlapping: int = 2,
    ) -> None:
        self.catalog = catalog
        self.max_overlapping = max_overlapping

    def check(
        self,
        interval: TimeInterval,
        service_type: str,
        details: Mapping[str, Any] | None,
        existing_overlaps: Sequence[Booking],
    ) -> Admissibility:
        overlaps = [b for b in existing_overlaps if b.interval.overlaps(interval)]
        if len(overlaps) >= self.max_overlapping:
            return Admissibility(False, TOO_MANY_OVERLAPS)

        if not self.catalog.is_coded_entry(service_type):
            return ADMISSIBLE

        units = CodedEntryUnits.from_details(details)
        coded = [
            CodedEntryUnits.from_details(b.details)
            for b in overlaps
            if self.catalog.is_coded_entry(b.service_type)
        ]
        if units.primary > 0 and any(other.primary > 0 for other in coded):
            return Admissibility(False, PRIMARY_CONTENDED)
        if units.secondary > 0 and any(other.secondary > 0 for other in coded):
            return Admissibility(False, SECONDARY_CONTENDED)
        return ADMISSIBLE
