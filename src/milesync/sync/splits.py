"""Mile split calculation from raw distance samples."""

import logging
from datetime import datetime
from typing import Iterable

from .models import DistanceSample, WorkoutSplit

__all__ = ["calculate_splits", "METERS_PER_MILE", "MAX_HUMAN_SPEED"]

logger = logging.getLogger(__name__)

METERS_PER_MILE = 1609.34

# m/s, roughly a 2:00 mile; anything faster is a sensor glitch
MAX_HUMAN_SPEED = 13.4


def _is_valid(sample: DistanceSample) -> bool:
    if sample.meters <= 0 or sample.duration <= 0:
        return False
    return sample.meters / sample.duration <= MAX_HUMAN_SPEED


def calculate_splits(
    workout_start: datetime,
    samples: Iterable[DistanceSample],
    include_partial: bool = True,
) -> list[WorkoutSplit]:
    """Calculate mile splits for a workout.

    Durations are timestamp based: each sample accounts for the time since
    the previous sample ended, starting from ``workout_start``. A sample
    that crosses one or more mile boundaries is apportioned by distance.

    Args:
        workout_start: Start time of the workout
        samples: Distance samples ordered by start time
        include_partial: Emit a final split for the leftover distance

    Returns:
        Splits in order; the last may cover less than a mile
    """
    samples = list(samples)
    valid = [s for s in samples if _is_valid(s)]
    if len(valid) < len(samples):
        logger.debug(f"Filtered out {len(samples) - len(valid)} bad sample(s)")
    if not valid:
        return []

    splits: list[WorkoutSplit] = []
    cumulative = 0.0
    current = 0.0
    previous_end = workout_start

    for sample in valid:
        sample_distance = sample.meters
        sample_duration = (sample.end - previous_end).total_seconds()
        cumulative += sample_distance
        previous_end = sample.end

        remaining = sample_duration
        while cumulative >= (len(splits) + 1) * METERS_PER_MILE:
            next_mile = (len(splits) + 1) * METERS_PER_MILE
            overflow_ratio = (cumulative - next_mile) / sample_distance
            current += remaining - sample_duration * overflow_ratio
            remaining = sample_duration * overflow_ratio

            splits.append(
                WorkoutSplit(
                    split_number=len(splits) + 1,
                    distance=1.0,
                    duration=current,
                    pace=current,
                )
            )
            current = 0.0

        current += remaining

    if include_partial and current > 0:
        leftover_meters = cumulative % METERS_PER_MILE
        distance = leftover_meters / METERS_PER_MILE
        pace = (METERS_PER_MILE / leftover_meters) * current if leftover_meters > 0 else 0.0
        splits.append(
            WorkoutSplit(
                split_number=len(splits) + 1,
                distance=distance,
                duration=current,
                pace=pace,
            )
        )

    return splits
