"""Compact duration strings (``"30m"``, ``"14d"``) used for token lifetimes."""

from __future__ import annotations

import re
from datetime import timedelta

_DURATION_RE = re.compile(r"([0-9]+)([smhd])")

_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
}


class InvalidDuration(ValueError):
    """Raised when a lifetime string does not match ``<digits><s|m|h|d>``."""


def duration_seconds(text: str) -> int:
    """
    Convert a duration string to whole seconds.

    :param text: Value such as ``"45s"``, ``"30m"``, ``"2h"`` or ``"14d"``.
    :type text: str
    :returns: Number of seconds.
    :rtype: int
    :raises InvalidDuration: On any other shape, including surrounding
        whitespace, signs, decimals and unknown units.
    """
    match = _DURATION_RE.fullmatch(text) if isinstance(text, str) else None
    if match is None:
        raise InvalidDuration(f"Invalid duration format: {text!r}")
    value, unit = match.groups()
    return int(value) * _UNIT_SECONDS[unit]


def parse_duration(text: str) -> timedelta:
    """Return :func:`duration_seconds` as a :class:`~datetime.timedelta`."""
    return timedelta(seconds=duration_seconds(text))


def as_timedelta(lifetime: str | timedelta) -> timedelta:
    """Accept either a duration string or an already-parsed ``timedelta``."""
    if isinstance(lifetime, timedelta):
        return lifetime
    return parse_duration(lifetime)
