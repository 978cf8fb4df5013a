"""Wire representation of workouts for the upload endpoint."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from typing import Iterable, Optional

from .models import ActivityRecord, ActivityType

__all__ = ["WorkoutPayload", "encode_batch"]


@dataclass(frozen=True)
class WorkoutPayload:
    """One element of the upload request body.

    ``local_date`` is emitted as both ``localDate`` and ``date``; the
    receiving schema still requires the duplicate.
    """

    workout_id: str
    distance: float  # miles
    local_date: date
    timezone_offset: int  # minutes from UTC
    workout_type: ActivityType
    device_end_date: datetime
    calories: float
    total_duration: float  # seconds
    split_times: tuple[float, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.workout_id:
            raise ValueError("workoutId is required")
        if self.distance < 0 or self.calories < 0 or self.total_duration < 0:
            raise ValueError(f"Workout {self.workout_id}: negative measurement")
        if self.device_end_date.tzinfo is None:
            raise ValueError(f"Workout {self.workout_id}: deviceEndDate must be timezone-aware")
        if not isinstance(self.workout_type, ActivityType):
            raise ValueError(f"Workout {self.workout_id}: unknown workoutType {self.workout_type!r}")

    @classmethod
    def from_record(cls, record: ActivityRecord, tz: Optional[tzinfo] = None) -> "WorkoutPayload":
        """Build the payload for ``record``.

        Args:
            record: Workout read from the activity source
            tz: Zone used for the local date and offset (machine local if None)
        """
        local_start = record.start_time.astimezone(tz)
        offset = local_start.utcoffset()
        offset_minutes = int(offset.total_seconds() // 60) if offset is not None else 0
        return cls(
            workout_id=record.id,
            distance=float(record.distance_miles),
            local_date=local_start.date(),
            timezone_offset=offset_minutes,
            workout_type=record.activity_type,
            device_end_date=record.end_time.astimezone(timezone.utc),
            calories=float(record.energy_kilocalories),
            total_duration=record.duration_seconds,
            split_times=tuple(float(s.duration) for s in record.splits),
        )

    def to_dict(self) -> dict:
        local_date = self.local_date.isoformat()
        return {
            "workoutId": self.workout_id,
            "distance": self.distance,
            "localDate": local_date,
            "date": local_date,
            "timezoneOffset": self.timezone_offset,
            "workoutType": self.workout_type.value,
            "deviceEndDate": self.device_end_date.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "calories": self.calories,
            "totalDuration": self.total_duration,
            "splitTimes": list(self.split_times),
        }


def encode_batch(records: Iterable[ActivityRecord], tz: Optional[tzinfo] = None) -> list[dict]:
    """Encode a batch as the JSON array the upload endpoint expects."""
    return [WorkoutPayload.from_record(r, tz).to_dict() for r in records]
