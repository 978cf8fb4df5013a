"""Activity records read from the activity source."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

__all__ = ["ActivityType", "ActivityRecord", "WorkoutSplit", "DistanceSample"]


class ActivityType(str, Enum):
    """Categorical workout tag sent as ``workoutType``."""

    RUNNING = "running"
    WALKING = "walking"
    CYCLING = "cycling"
    HIKING = "hiking"
    OTHER = "other"

    @classmethod
    def parse(cls, value) -> "ActivityType":
        """Map a source-provided tag to a known type, defaulting to OTHER."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class WorkoutSplit:
    """A single mile split (the last one may be partial)."""

    split_number: int
    distance: float  # miles
    duration: float  # seconds
    pace: float  # seconds per mile

    @property
    def pace_minutes_per_mile(self) -> float:
        return self.pace / 60.0

    @property
    def formatted_pace(self) -> str:
        minutes = int(self.pace // 60)
        seconds = int(self.pace % 60)
        return f"{minutes}:{seconds:02d}"


@dataclass(frozen=True)
class DistanceSample:
    """Raw distance reading covering ``[start, end]``."""

    start: datetime
    end: datetime
    meters: float

    @property
    def duration(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass(frozen=True)
class ActivityRecord:
    """One completed workout session.

    Owned by the activity source; the sync engine only reads it.
    """

    id: str
    start_time: datetime
    end_time: datetime
    distance_miles: float = 0.0
    energy_kilocalories: float = 0.0
    splits: tuple[WorkoutSplit, ...] = field(default_factory=tuple)
    activity_type: ActivityType = ActivityType.OTHER

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("ActivityRecord.id must not be empty")
        if self.start_time.tzinfo is None or self.end_time.tzinfo is None:
            raise ValueError(f"Workout {self.id}: timestamps must be timezone-aware")
        if self.end_time <= self.start_time:
            raise ValueError(
                f"Workout {self.id}: end_time {self.end_time} is not after "
                f"start_time {self.start_time}"
            )
        if self.distance_miles < 0:
            raise ValueError(f"Workout {self.id}: negative distance")
        if self.energy_kilocalories < 0:
            raise ValueError(f"Workout {self.id}: negative energy")
        # Normalise inputs without giving up immutability
        object.__setattr__(self, "splits", tuple(self.splits))
        object.__setattr__(self, "activity_type", ActivityType.parse(self.activity_type))

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()
