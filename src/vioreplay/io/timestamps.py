"""Per-device timestamp logs.

Every timestamp is normalized to integer nanoseconds, the unit of the IMU
stream. Three textual forms are accepted:

    1317384506400000000             integer, already nanoseconds
    2011-09-26 13:02:25.964389445   UTC date-time, up to 9 fractional digits
    1317384506.40                   decimal seconds
"""

from __future__ import annotations

import calendar
import re
from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from pathlib import Path

from ..errors import ConfigurationError, ParseError

NS_PER_SECOND = 1_000_000_000

_INTEGER = re.compile(r"^[+-]?\d+$")
_DATETIME = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[ T](\d{2}:\d{2}:\d{2})(?:\.(\d{1,9}))?$"
)


def timestamp_format(text: str) -> str:
    """Name the form of a textual timestamp: "integer", "datetime" or "seconds"."""
    text = text.strip()
    if _INTEGER.match(text):
        return "integer"
    if _DATETIME.match(text):
        return "datetime"
    return "seconds"


def parse_timestamp(text: str) -> int:
    """Convert one textual timestamp to nanoseconds.

    Args:
        text: Timestamp in one of the accepted forms

    Returns:
        Timestamp in nanoseconds

    Raises:
        ValueError: If the text is not a timestamp
    """
    text = text.strip()
    form = timestamp_format(text)

    if form == "integer":
        return int(text)

    if form == "datetime":
        date, clock, fraction = _DATETIME.match(text).groups()
        # Python datetimes stop at microseconds, so the fraction is added separately
        dt = datetime.strptime(f"{date} {clock}", "%Y-%m-%d %H:%M:%S")
        seconds = calendar.timegm(dt.timetuple())
        return seconds * NS_PER_SECOND + int((fraction or "").ljust(9, "0"))

    try:
        value = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"Not a timestamp: '{text}'") from e
    if not value.is_finite():
        raise ValueError(f"Not a timestamp: '{text}'")
    return int((value * NS_PER_SECOND).to_integral_value(rounding=ROUND_HALF_EVEN))


def parse_timestamps(timestamps_path: str | Path) -> list[int]:
    """Parse a timestamp log, one timestamp per line.

    Blank lines are skipped. The first timestamp fixes the form (and so the
    unit) of the whole log. The list is returned only if every line parses.

    Args:
        timestamps_path: Path to the log

    Returns:
        Timestamps in nanoseconds, in file order

    Raises:
        ConfigurationError: If the file does not exist
        ParseError: If any non-blank line is not a timestamp, is written in a
            different form than the first one, or the file is not UTF-8 text
    """
    path = Path(timestamps_path)
    if not path.exists():
        raise ConfigurationError(f"Timestamp log not found: {path}")

    timestamps: list[int] = []
    log_format: str | None = None
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    timestamps.append(parse_timestamp(line))
                except ValueError as e:
                    raise ParseError(f"Invalid timestamp '{line}'", path, line_number) from e

                form = timestamp_format(line)
                if log_format is None:
                    log_format = form
                elif form != log_format:
                    raise ParseError(
                        f"Timestamp '{line}' is in {form} form but the log uses {log_format}",
                        path,
                        line_number,
                    )
    except UnicodeDecodeError as e:
        raise ParseError(f"Not a UTF-8 text file: {e}", path) from e

    return timestamps
