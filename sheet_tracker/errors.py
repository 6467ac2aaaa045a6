"""Error taxonomy shared by the pipeline, the CLI and the dashboard."""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for every failure sheet-tracker raises on purpose."""


class TransportFailure(TrackerError):
    def __init__(self, url: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class MalformedInput(TrackerError):
    def __init__(self, line_count: int) -> None:
        super().__init__(
            f"Need a header row and at least one data row; found {line_count} non-blank line(s)"
        )
        self.line_count = line_count


class ConfigError(TrackerError):
    pass
