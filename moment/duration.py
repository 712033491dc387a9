"""
Duration classifier: target minutes -> accepted band in seconds + coarse bucket.

The bucket thresholds mirror YouTube's `videoDuration` search filter
(short < 4 min, medium 4-20 min, long > 20 min).
"""
import math
from dataclasses import dataclass
from typing import Literal, Tuple

MIN_TARGET_MINUTES = 5
MAX_TARGET_MINUTES = 120
TARGET_STEP_MINUTES = 5

SHORT_MAX_SECONDS = 240
MEDIUM_MAX_SECONDS = 1200

Bucket = Literal["short", "medium", "long"]


@dataclass(frozen=True)
class DurationBand:
    min_seconds: int
    max_seconds: int

    def contains(self, seconds: int) -> bool:
        return self.min_seconds <= seconds <= self.max_seconds


def duration_band(target_minutes: int) -> DurationBand:
    # 20% under the target, never below one minute; up to twice the target.
    # Out-of-range targets are the caller's problem.
    min_seconds = max(60, math.floor(target_minutes * 60 * 4 / 5))
    max_seconds = math.floor(target_minutes * 60 * 2)
    return DurationBand(min_seconds=min_seconds, max_seconds=max_seconds)


def duration_bucket(max_seconds: int | None) -> Bucket:
    if max_seconds is None:
        return "medium"
    if max_seconds <= SHORT_MAX_SECONDS:
        return "short"
    if max_seconds <= MEDIUM_MAX_SECONDS:
        return "medium"
    return "long"


def classify(target_minutes: int) -> Tuple[DurationBand, Bucket]:
    band = duration_band(target_minutes)
    return band, duration_bucket(band.max_seconds)


def describe_target(target_minutes: int) -> str:
    """Natural-language phrase used when framing the request for the ranking oracle."""
    if target_minutes <= 5:
        return "around 5 minutes long or less"
    if target_minutes <= 15:
        return "between 5 and 15 minutes long"
    if target_minutes <= 30:
        return "between 15 and 30 minutes long"
    if target_minutes <= 60:
        return "between 30 and 60 minutes long"
    return "between 1 and 2 hours long"
