# blueprints/schedule/intervals.py
from __future__ import annotations
import re
from dataclasses import dataclass

from errors import ValidationFailure

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class TimeOfDay(int):
    """Minutes since midnight (0..1439), written as strict 24h ``HH:MM``."""

    def __new__(cls, minutes: int):
        if not 0 <= minutes < 24 * 60:
            raise ValueError(f"minutes out of range: {minutes}")
        return super().__new__(cls, minutes)

    @classmethod
    def parse(cls, value, field: str = "time") -> "TimeOfDay":
        if isinstance(value, TimeOfDay):
            return value
        m = _HHMM.match(value) if isinstance(value, str) else None
        if not m:
            raise ValidationFailure("Time must be in HH:MM format (24-hour)",
                                    field=field, code="INVALID_TIME_FORMAT")
        return cls(int(m.group(1)) * 60 + int(m.group(2)))

    @staticmethod
    def is_valid(value) -> bool:
        return isinstance(value, str) and bool(_HHMM.match(value))

    def __str__(self) -> str:
        return f"{self // 60:02d}:{self % 60:02d}"

    def __repr__(self) -> str:
        return f"TimeOfDay({str(self)!r})"


@dataclass(frozen=True)
class TimeInterval:
    """Half-open ``[start, end)`` range within one day."""
    start: TimeOfDay
    end: TimeOfDay

    def __post_init__(self):
        if self.start >= self.end:
            raise ValidationFailure("End time must be after start time",
                                    field="end_time", code="INVALID_TIME_RANGE")

    @classmethod
    def parse(cls, start: str, end: str) -> "TimeInterval":
        return cls(TimeOfDay.parse(start, "start_time"), TimeOfDay.parse(end, "end_time"))

    def overlaps(self, other: "TimeInterval") -> bool:
        # touching endpoints do not overlap
        return self.start < other.end and self.end > other.start

    @property
    def minutes(self) -> int:
        return self.end - self.start

    def to_dict(self) -> dict:
        return {"start_time": str(self.start), "end_time": str(self.end)}

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"
