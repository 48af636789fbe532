# tests/unit/services/test_durations.py
from __future__ import annotations

from datetime import timedelta

import pytest
from authsvc.services._shared.durations import (
    InvalidDuration,
    as_timedelta,
    duration_seconds,
    parse_duration,
)


@pytest.mark.parametrize(
    "text, seconds",
    [
        ("45s", 45),
        ("30m", 1800),
        ("2h", 7200),
        ("14d", 1_209_600),
        ("0s", 0),
    ],
)
def test_duration_seconds_accepts_every_unit(text, seconds):
    assert duration_seconds(text) == seconds


@pytest.mark.parametrize(
    "text",
    ["", "30", "m", "1.5h", "-5m", " 30m", "30m ", "10w", "30M", "1h30m", None],
)
def test_duration_seconds_rejects_other_shapes(text):
    """Anything other than ``<digits><s|m|h|d>`` is rejected, never guessed."""
    with pytest.raises(InvalidDuration):
        duration_seconds(text)


def test_invalid_duration_is_a_value_error():
    with pytest.raises(ValueError):
        parse_duration("soon")


def test_parse_duration_returns_timedelta():
    assert parse_duration("90m") == timedelta(hours=1, minutes=30)


def test_as_timedelta_passes_timedelta_through():
    delta = timedelta(seconds=7)
    assert as_timedelta(delta) is delta
    assert as_timedelta("7s") == delta
