"""
Service catalog: the single source of truth for what each service type means.

Callers send free-form, case-insensitive labels in Hebrew or English. Labels
are resolved here to one canonical ``ServiceDefinition`` so that duration
rules, same-day policy and exclusivity checks never match strings themselves.
"""

import math
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

MINUTES_PER_UNIT = 10

# alternate spellings accepted for each unit count, first truthy one wins
PRIMARY_UNIT_FIELDS = ("primary_units", "sodi", "numS")
SECONDARY_UNIT_FIELDS = ("secondary_units", "anan", "numA")

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class BookingMode(str, Enum):
    EXPLICIT = "explicit"  # caller picks a time from the availability list
    AUTO = "auto"  # earliest admissible slot is assigned


@dataclass(frozen=True)
class ServiceDefinition:
    id: str
    labels: tuple[str, ...]
    duration_minutes: int = 5
    keywords: tuple[str, ...] = ()
    coded_entry: bool = False
    same_day_only: bool = False
    mode: BookingMode = BookingMode.AUTO

    def to_public(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "labels": list(self.labels),
            "durationMinutes": self.duration_minutes,
            "codedEntry": self.coded_entry,
            "sameDayOnly": self.same_day_only,
            "mode": self.mode.value,
        }


def normalize_service_type(service_type: str | None) -> str:
    return (service_type or "").strip().casefold()


class ServiceCatalog:
    def __init__(
        self,
        services: Iterable[ServiceDefinition],
        *,
        default_duration_minutes: int = 5,
    ) -> None:
        self._services = tuple(services)
        self.default_duration_minutes = default_duration_minutes
        self._by_label: dict[str, ServiceDefinition] = {}
        for service in self._services:
            for label in (service.id, *service.labels):
                key = normalize_service_type(label)
                if key in self._by_label and self._by_label[key] is not service:
                    raise ValueError(f"Label {label!r} is used by two services")
                self._by_label[key] = service

    def __iter__(self) -> Iterator[ServiceDefinition]:
        return iter(self._services)

    def __len__(self) -> int:
        return len(self._services)

    def resolve(self, service_type: str | None) -> ServiceDefinition | None:
        """Exact label match first, then keyword substring match."""
        key = normalize_service_type(service_type)
        if not key:
            return None
        exact = self._by_label.get(key)
        if exact is not None:
            return exact
        for service in self._services:
            if any(normalize_service_type(k) in key for k in service.keywords):
                return service
        return None

    def is_coded_entry(self, service_type: str | None) -> bool:
        service = self.resolve(service_type)
        return service is not None and service.coded_entry

    def same_day_only(self, service_type: str | None) -> bool:
        service = self.resolve(service_type)
        return service is not None and service.same_day_only


DEFAULT_CATALOG = ServiceCatalog(
    [
        ServiceDefinition(
            id="kidud",
            labels=("kidud", "קידוד"),
            keywords=("kidud", "קידוד"),
            duration_minutes=MINUTES_PER_UNIT,
            coded_entry=True,
            mode=BookingMode.EXPLICIT,
        ),
        ServiceDefinition(
            id="hotzla",
            labels=('אישור הוצל"א', "hotzla"),
            duration_minutes=15,
            mode=BookingMode.EXPLICIT,
        ),
        ServiceDefinition(
            id="hashchara",
            labels=("השחרה", "hashchara"),
            duration_minutes=15,
        ),
        ServiceDefinition(
            id="tiulim-out",
            labels=("טיולים יוצא", "טופס טיולים - יוצא", "tiulim-out"),
            mode=BookingMode.EXPLICIT,
        ),
        ServiceDefinition(
            id="chul",
            labels=('חו"ל', 'טופס חו"ל', "chul"),
            mode=BookingMode.EXPLICIT,
        ),
        ServiceDefinition(
            id="permanent-entry",
            labels=("אישור כניסה קבוע", "permanent-entry"),
            keywords=("אישור כניסה קבוע",),
            same_day_only=True,
        ),
        ServiceDefinition(
            id="contractor-entry",
            labels=('אישור כניסה לקבלן/אזרח/לקבלת שירות מהב"ם', "contractor-entry"),
        ),
        ServiceDefinition(
            id="identity-management",
            labels=("אישור בניהול זהויות", "identity-management"),
        ),
        ServiceDefinition(
            id="tiulim-in",
            labels=("טופס טיולים - נכנס", "tiulim-in"),
        ),
    ]
)


def _coerce_units(raw: Any) -> int:
    """Best-effort non-negative integer; anything unreadable counts as 0."""
    if isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, float):
        value = int(raw) if math.isfinite(raw) else 0
    elif isinstance(raw, str):
        match = _LEADING_INT.match(raw)
        value = int(match.group(1)) if match else 0
    else:
        value = 0
    return max(value, 0)


def _first_truthy(details: Mapping[str, Any], fields: tuple[str, ...]) -> Any:
    for name in fields:
        value = details.get(name)
        if value:
            return value
    return 0


@dataclass(frozen=True)
class CodedEntryUnits:
    """Unit counts of a coded-entry request, each its own exclusivity category."""

    primary: int = 0
    secondary: int = 0

    @classmethod
    def from_details(cls, details: Mapping[str, Any] | None) -> "CodedEntryUnits":
        details = details or {}
        return cls(
            primary=_coerce_units(_first_truthy(details, PRIMARY_UNIT_FIELDS)),
            secondary=_coerce_units(_first_truthy(details, SECONDARY_UNIT_FIELDS)),
        )
