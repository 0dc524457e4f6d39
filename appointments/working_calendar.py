from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta, tzinfo

from appointments.config import Settings, WorkingBlock
from appointments.models import TimeInterval


class WorkingCalendar:
    """
    Daily working-hour blocks in one fixed zone.

    Weekend days behave as if they had no blocks at all: they produce no
    slots and no interval fits on them.
    """

    def __init__(
        self,
        blocks: Sequence[WorkingBlock],
        zone: tzinfo,
        *,
        step_minutes: int = 5,
        weekend_days: Iterable[int] = (4, 5),
    ) -> None:
        if not blocks:
            raise ValueError("at least one working block is required")
        if step_minutes < 1:
            raise ValueError(f"step_minutes must be >= 1, got {step_minutes}")
        self.blocks = tuple(sorted(blocks, key=lambda b: b.start))
        self.zone = zone
        self.step = timedelta(minutes=step_minutes)
        self.weekend_days = frozenset(weekend_days)

    @classmethod
    def from_settings(cls, settings: Settings) -> "WorkingCalendar":
        return cls(
            settings.working_blocks,
            settings.zone,
            step_minutes=settings.slot_step_minutes,
            weekend_days=settings.weekend_days,
        )

    @property
    def longest_block_minutes(self) -> int:
        """No appointment longer than this can fit on any day."""
        return max(
            (block.end.hour * 60 + block.end.minute)
            - (block.start.hour * 60 + block.start.minute)
            for block in self.blocks
        )

    def local_day(self, moment: datetime) -> date:
        return moment.astimezone(self.zone).date()

    def is_working_day(self, day: date) -> bool:
        return day.weekday() not in self.weekend_days

    def blocks_for_day(self, day: date) -> list[TimeInterval]:
        if not self.is_working_day(day):
            return []
        return [
            TimeInterval(
                start=datetime.combine(day, block.start, tzinfo=self.zone),
                end=datetime.combine(day, block.end, tzinfo=self.zone),
            )
            for block in self.blocks
        ]

    def slots_for_day(self, day: date) -> list[datetime]:
        """Candidate starts every step inside each block, in chronological order."""
        slots: list[datetime] = []
        for block in self.blocks_for_day(day):
            current = block.start
            while current < block.end:
                slots.append(current)
                current += self.step
        return slots

    def fits_within_block(self, interval: TimeInterval) -> bool:
        day = self.local_day(interval.start)
        return any(
            block.start <= interval.start and interval.end <= block.end
            for block in self.blocks_for_day(day)
        )
