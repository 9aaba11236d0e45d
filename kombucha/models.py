from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

SECONDS_PER_DAY = 24 * 60 * 60


class TeaType(str, Enum):
    BLACK = "Black"
    GREEN = "Green"
    HERBAL = "Herbal"
    OOLONG = "Oolong"
    OTHER = "Other"

    @property
    def display_name(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["TeaType"]:
        if value is None or not str(value).strip():
            return None
        text = str(value).strip()
        for member in cls:
            if member.value.lower() == text.lower():
                return member
        raise ValueError(f"Unknown tea type: {value}")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def compute_progress(start: datetime, end: datetime, now: datetime) -> float:
    total = (end - start).total_seconds()
    if total <= 0:
        return 1.0
    elapsed = (now - start).total_seconds()
    return min(max(elapsed / total, 0.0), 1.0)


def compute_time_remaining(end: datetime, now: datetime) -> timedelta:
    return max(timedelta(0), end - now)


def whole_days(start: datetime, end: datetime) -> int:
    return max(0, int((end - start).total_seconds() // SECONDS_PER_DAY))


@dataclass(frozen=True)
class BrewingProfile:
    """What went into a batch: SCOBY, tea, sugar, starter liquid and free notes."""

    scoby_name: Optional[str] = None
    tea_type: Optional[TeaType] = None
    sugar: Optional[str] = None
    starter_liquid_amount: Optional[str] = None
    active_notes: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "scoby_name", _clean(self.scoby_name))
        object.__setattr__(self, "sugar", _clean(self.sugar))
        object.__setattr__(self, "starter_liquid_amount", _clean(self.starter_liquid_amount))
        object.__setattr__(self, "active_notes", _clean(self.active_notes))
        if self.tea_type is not None and not isinstance(self.tea_type, TeaType):
            object.__setattr__(self, "tea_type", TeaType.parse(self.tea_type))

    @property
    def is_empty(self) -> bool:
        return not any(
            [
                self.scoby_name,
                self.tea_type,
                self.sugar,
                self.starter_liquid_amount,
                self.active_notes,
            ]
        )


@dataclass
class Batch:
    id: str
    name: str
    start_date: datetime
    end_date: datetime
    duration_days: int
    rating: Optional[int] = None
    notes: Optional[str] = None
    profile: BrewingProfile = field(default_factory=BrewingProfile)

    def progress(self, now: datetime) -> float:
        return compute_progress(self.start_date, self.end_date, now)

    def time_remaining(self, now: datetime) -> timedelta:
        return compute_time_remaining(self.end_date, now)

    def is_complete(self, now: datetime) -> bool:
        return now >= self.end_date

    def with_duration(self, days: int) -> "Batch":
        return replace(
            self,
            end_date=self.start_date + timedelta(days=days),
            duration_days=days,
        )

    def with_end_date(self, end_date: datetime) -> "Batch":
        # duration_days always tracks the span actually covered by end_date
        end_date = max(end_date, self.start_date)
        return replace(
            self,
            end_date=end_date,
            duration_days=whole_days(self.start_date, end_date),
        )


__all__ = [
    "TeaType",
    "BrewingProfile",
    "Batch",
    "compute_progress",
    "compute_time_remaining",
    "whole_days",
]
