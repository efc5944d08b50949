"""Errors raised by draft storage adapters.

The draft store catches every ``DraftError`` and degrades to "no draft",
so none of these ever reach a form.
"""


class DraftError(Exception):
    """Base error for the draft subsystem."""


class StorageUnavailable(DraftError):
    """The backing key-value storage could not be read or written."""

    def __init__(self, operation: str, key: str, reason: str = ""):
        self.operation = operation
        self.key = key
        self.reason = reason
        message = f"storage {operation} failed for {key!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class MalformedRecord(DraftError):
    """A stored value does not have the shape of a draft record."""

    def __init__(self, key: str, reason: str = ""):
        self.key = key
        self.reason = reason
        message = f"malformed draft record at {key!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
