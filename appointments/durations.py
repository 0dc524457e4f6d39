from collections.abc import Mapping
from typing import Any

from appointments.services import (
    DEFAULT_CATALOG,
    MINUTES_PER_UNIT,
    CodedEntryUnits,
    ServiceCatalog,
)


def duration_minutes(
    service_type: str | None,
    details: Mapping[str, Any] | None,
    catalog: ServiceCatalog = DEFAULT_CATALOG,
) -> int:
    """
    Minutes an appointment of ``service_type`` occupies.

    Coded-entry requests take 10 minutes per unit of whichever unit count is
    larger, never less than 10. Other known services use their catalog
    duration and unknown ones the catalog default. Always >= 1.
    """
    service = catalog.resolve(service_type)
    if service is None:
        return max(catalog.default_duration_minutes, 1)
    if service.coded_entry:
        units = CodedEntryUnits.from_details(details)
        return max(
            units.primary * MINUTES_PER_UNIT,
            units.secondary * MINUTES_PER_UNIT,
            MINUTES_PER_UNIT,
        )
    return max(service.duration_minutes, 1)
