"""Deployment Assistant exception and warning hierarchy.

Errors derive from ``AssistantError`` and carry a machine-readable ``code``.
Data-quality problems are ``DataQualityWarning`` subclasses: they are never
raised by the reconciliation engine, only appended to an optional ``issues``
list and logged, so one corrupt historical record cannot block an account.
"""

from typing import Optional


class AssistantError(Exception):
    """Base exception for all Deployment Assistant errors."""

    def __init__(self, message: str = "", code: str = "ASSISTANT_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class PayloadParseError(AssistantError):
    """Raised when a snapshot payload is not structurally interpretable."""

    def __init__(self, snapshot_id: Optional[str] = None, detail: str = ""):
        self.snapshot_id = snapshot_id
        self.detail = detail
        message = f"Payload for snapshot {snapshot_id or '<unknown>'} could not be parsed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, code="PAYLOAD_PARSE_ERROR")


class UnorderedInputError(AssistantError):
    """Raised when snapshots have no resolvable chronological order."""

    def __init__(self, message: str = "Snapshots are not in chronological order"):
        super().__init__(message, code="UNORDERED_INPUT")


class SnapshotNotFoundError(AssistantError):
    """Raised when a snapshot cannot be found in the database."""

    def __init__(self, message: str = "Snapshot not found"):
        super().__init__(message, code="NOT_FOUND")


# ── Data-quality warnings ──


class DataQualityWarning(UserWarning):
    """Base class for recoverable data-quality problems."""

    def __init__(
        self,
        message: str,
        snapshot_id: Optional[str] = None,
        product_code: Optional[str] = None,
    ):
        self.message = message
        self.snapshot_id = snapshot_id
        self.product_code = product_code
        super().__init__(message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def as_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "snapshot_id": self.snapshot_id,
            "product_code": self.product_code,
        }


class MalformedDateWarning(DataQualityWarning):
    """A date field is present but unparsable; the field is treated as absent."""

    def __init__(
        self,
        field: str,
        value: object,
        snapshot_id: Optional[str] = None,
        product_code: Optional[str] = None,
    ):
        self.field = field
        self.value = value
        super().__init__(
            f"Unparsable {field} {value!r}", snapshot_id=snapshot_id, product_code=product_code,
        )


class InvertedDateRangeWarning(DataQualityWarning):
    """An entitlement starts after it ends; it is kept with the dates as given."""


class UnidentifiedEntryWarning(DataQualityWarning):
    """A payload entry has neither a product code nor a name and was skipped."""


class AmbiguousGroupingWarning(DataQualityWarning):
    """An entry with no usable product code was dropped from aggregation."""
