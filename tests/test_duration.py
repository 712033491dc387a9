import pytest

from moment.duration import DurationBand, classify, describe_target, duration_band, duration_bucket


def test_band_for_fifteen_minutes():
    assert duration_band(15) == DurationBand(min_seconds=720, max_seconds=1800)


def test_band_lower_bound_clamped_to_one_minute():
    # 0.8 * 5 min = 240 s, already above the one-minute floor
    assert duration_band(5) == DurationBand(min_seconds=240, max_seconds=600)
    # 0.8 * 1 min is under a minute, so the floor kicks in
    assert duration_band(1) == DurationBand(min_seconds=60, max_seconds=120)


def test_band_does_not_reject_out_of_range_targets():
    band = duration_band(200)
    assert band.min_seconds == 9600
    assert band.max_seconds == 24000


@pytest.mark.parametrize("target", range(5, 125, 5))
def test_band_brackets_target(target):
    band = duration_band(target)
    assert band.min_seconds <= target * 60 <= band.max_seconds


@pytest.mark.parametrize(
    "max_seconds,bucket",
    [(None, "medium"), (120, "short"), (240, "short"), (241, "medium"), (1200, "medium"), (1201, "long")],
)
def test_bucket_thresholds(max_seconds, bucket):
    assert duration_bucket(max_seconds) == bucket


def test_classify_uses_band_max():
    band, bucket = classify(15)
    assert band.max_seconds == 1800
    assert bucket == "long"
    assert classify(10)[1] == "medium"


def test_band_contains_is_inclusive():
    band = duration_band(15)
    assert band.contains(720)
    assert band.contains(1800)
    assert not band.contains(719)
    assert not band.contains(1801)


def test_describe_target():
    assert describe_target(5) == "around 5 minutes long or less"
    assert describe_target(15) == "between 5 and 15 minutes long"
    assert describe_target(45) == "between 30 and 60 minutes long"
    assert describe_target(120) == "between 1 and 2 hours long"
