from datetime import datetime

import pytest
from conftest import MONDAY, at

from appointments.conflicts import (
    PRIMARY_CONTENDED,
    SECONDARY_CONTENDED,
    TOO_MANY_OVERLAPS,
    ConflictChecker,
)
from appointments.models import Booking, TimeInterval

_ids = iter(range(1, 1000))


def _booking(
    start: datetime, minutes: int, service_type: str = "hotzla", **details
) -> Booking:
    return Booking(
        id=next(_ids),
        service_type=service_type,
        details=details,
        interval=TimeInterval.starting_at(start, minutes),
        created_at=at(MONDAY, 7, 0),
    )


@pytest.fixture
def checker() -> ConflictChecker:
    return ConflictChecker()


CANDIDATE = TimeInterval.starting_at(at(MONDAY, 9, 0), 30)


def test_empty_window_is_admissible(checker) -> None:
    decision = checker.check(CANDIDATE, "hotzla", {}, [])
    assert decision.admissible
    assert decision.reason is None


def test_one_unrelated_overlap_is_allowed(checker) -> None:
    existing = [_booking(at(MONDAY, 9, 10), 15)]
    assert checker.check(CANDIDATE, "chul", {}, existing).admissible


def test_two_overlaps_reject_any_service(checker) -> None:
    existing = [_booking(at(MONDAY, 9, 0), 15), _booking(at(MONDAY, 9, 20), 15)]
    decision = checker.check(CANDIDATE, "chul", {}, existing)
    assert not decision.admissible
    assert decision.reason == TOO_MANY_OVERLAPS


def test_adjacent_bookings_do_not_count(checker) -> None:
    existing = [
        _booking(at(MONDAY, 8, 45), 15),  # ends exactly at 09:00
        _booking(at(MONDAY, 9, 30), 15),  # starts exactly at 09:30
    ]
    assert checker.check(CANDIDATE, "chul", {}, existing).admissible


def test_primary_units_are_exclusive(checker) -> None:
    existing = [_booking(at(MONDAY, 9, 0), 30, "kidud", sodi=3)]
    decision = checker.check(CANDIDATE, "kidud", {"sodi": 1}, existing)
    assert not decision.admissible
    assert decision.reason == PRIMARY_CONTENDED


def test_secondary_units_are_exclusive(checker) -> None:
    existing = [_booking(at(MONDAY, 9, 0), 10, "קידוד", numA=1)]
    decision = checker.check(CANDIDATE, "KIDUD", {"anan": 2}, existing)
    assert not decision.admissible
    assert decision.reason == SECONDARY_CONTENDED


def test_primary_and_secondary_categories_are_independent(checker) -> None:
    existing = [_booking(at(MONDAY, 9, 0), 30, "kidud", sodi=3)]
    assert checker.check(CANDIDATE, "kidud", {"anan": 3}, existing).admissible


def test_exclusivity_only_applies_between_coded_entries(checker) -> None:
    # details on a non coded-entry booking carry no category
    existing = [_booking(at(MONDAY, 9, 0), 15, "hotzla", sodi=3)]
    assert checker.check(CANDIDATE, "kidud", {"sodi": 3}, existing).admissible
    coded = [_booking(at(MONDAY, 9, 0), 30, "kidud", sodi=3)]
    assert checker.check(CANDIDATE, "hotzla", {"sodi": 3}, coded).admissible


def test_overlap_cap_is_checked_before_exclusivity(checker) -> None:
    existing = [
        _booking(at(MONDAY, 9, 0), 30, "kidud", sodi=3),
        _booking(at(MONDAY, 9, 5), 10),
    ]
    decision = checker.check(CANDIDATE, "kidud", {"sodi": 1}, existing)
    assert decision.reason == TOO_MANY_OVERLAPS


def test_overlap_cap_is_configurable() -> None:
    existing = [_booking(at(MONDAY, 9, 0), 15)]
    decision = ConflictChecker(max_overlapping=1).check(CANDIDATE, "chul", {}, existing)
    assert not decision.admissible
