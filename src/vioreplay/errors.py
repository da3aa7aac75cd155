"""Exception hierarchy for dataset parsing and replay."""

from __future__ import annotations

from pathlib import Path


class ReplayError(Exception):
    """Base class for all errors raised by vioreplay."""


class ConfigurationError(ReplayError):
    """Dataset root, a required sub-path or a config value is unusable."""


class ParseError(ReplayError, ValueError):
    """A calibration, timestamp, IMU or parameter file is malformed.

    Attributes:
        path: File that failed to parse
        line_number: 1-based line of the offending record, if known
    """

    def __init__(
        self, message: str, path: str | Path | None = None, line_number: int | None = None
    ) -> None:
        self.path = Path(path) if path is not None else None
        self.line_number = line_number
        location = ""
        if self.path is not None:
            location = f"{self.path}"
            if line_number is not None:
                location += f":{line_number}"
            location += ": "
        super().__init__(f"{location}{message}")


class ConsistencyError(ReplayError, ValueError):
    """Parsed files disagree (counts, ordering, frame range)."""


class DecodeError(ReplayError):
    """An image could not be loaded during replay."""

    def __init__(self, message: str, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__(message)
