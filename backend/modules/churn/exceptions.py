from typing import List


class ChurnError(Exception):
    """Base class for churn analytics failures."""


class ValidationFailed(ChurnError):
    """Malformed or out-of-policy request; nothing was computed."""

    def __init__(self, reasons: List[str]):
        self.reasons = list(reasons)
        super().__init__("; ".join(self.reasons))

    def to_payload(self) -> dict:
        return {"errors": {"base": self.reasons}}


class DataFetchFailed(ChurnError):
    """The raw subscription store could not be queried."""


class CacheUnavailable(ChurnError):
    """The series cache could not be read or written."""
