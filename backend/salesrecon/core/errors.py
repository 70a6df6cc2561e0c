from __future__ import annotations


class SalesError(Exception):
    """Base class for errors raised by the sales reporting layer."""

    code = "SALES_ERROR"
    status_code = 500


class UnknownChannelError(SalesError, KeyError):
    code = "UNKNOWN_CHANNEL"
    status_code = 404

    def __init__(self, channel: str):
        self.channel = channel
        super().__init__(channel)

    def __str__(self) -> str:
        return f"Unknown sales channel: {self.channel!r}"


class InvalidDateRangeError(SalesError, ValueError):
    code = "VALIDATION_ERROR"
    status_code = 400


class ImportFileError(SalesError, ValueError):
    """Uploaded spreadsheet could not be read."""

    code = "BAD_FILE"
    status_code = 400
