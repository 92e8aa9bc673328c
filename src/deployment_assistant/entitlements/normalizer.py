"""Entitlement normalizer: raw provisioning payload -> EntitlementRecords.

Payloads come from many generations of the provisioning form, so every
logical attribute is resolved from an ordered list of candidate keys and the
first non-empty value wins. Missing sections are empty; unusable entries are
skipped with a recorded warning rather than failing the snapshot.
"""

import json
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Optional

from deployment_assistant.common.exceptions import (
    InvertedDateRangeWarning,
    MalformedDateWarning,
    PayloadParseError,
    UnidentifiedEntryWarning,
)
from deployment_assistant.entitlements.dates import parse_date
from deployment_assistant.entitlements.issues import IssueSink, record_issue
from deployment_assistant.entitlements.types import CATEGORY_ORDER, Category, EntitlementRecord

ENTITLEMENTS_PATH = ("properties", "provisioningDetail", "entitlements")

# Nested sections are read first, then the legacy top-level keys.
SECTION_KEYS: dict[Category, tuple[str, ...]] = {
    Category.MODEL: ("modelEntitlements",),
    Category.DATA: ("dataEntitlements",),
    Category.APP: ("appEntitlements",),
}
FALLBACK_SECTION_KEYS: dict[Category, tuple[str, ...]] = {
    Category.MODEL: ("modelEntitlements", "productEntitlements"),
    Category.DATA: ("dataEntitlements",),
    Category.APP: ("appEntitlements",),
}

CODE_FIELDS = ("productCode", "product_code", "code", "id")
NAME_FIELDS = ("name", "productName", "product_name")
START_FIELDS = ("startDate", "start_date", "StartDate")
END_FIELDS = ("endDate", "end_date", "EndDate")
PACKAGE_FIELDS = ("packageName", "package_name")

TENANT_NAME_PATHS = (
    ("properties", "provisioningDetail", "tenantName"),
    ("properties", "tenantName"),
    ("preferredSubdomain1",),
    ("preferredSubdomain2",),
    ("properties", "preferredSubdomain1"),
    ("properties", "preferredSubdomain2"),
    ("tenantName",),
)
REGION_PATHS = (
    ("properties", "provisioningDetail", "region"),
    ("properties", "region"),
    ("region",),
)


@dataclass(frozen=True)
class PayloadMetadata:
    tenant_name: Optional[str] = None
    region: Optional[str] = None


def load_payload(raw_payload: Any, snapshot_id: Optional[str] = None) -> dict[str, Any]:
    """Parse a raw payload into a mapping; empty payloads become ``{}``."""
    if raw_payload is None:
        return {}
    if isinstance(raw_payload, (bytes, bytearray)):
        try:
            raw_payload = raw_payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PayloadParseError(snapshot_id, str(exc)) from exc
    if isinstance(raw_payload, str):
        if not raw_payload.strip():
            return {}
        try:
            raw_payload = json.loads(raw_payload)
        except json.JSONDecodeError as exc:
            raise PayloadParseError(snapshot_id, str(exc)) from exc
    if not isinstance(raw_payload, Mapping):
        raise PayloadParseError(
            snapshot_id, f"expected a JSON object, got {type(raw_payload).__name__}",
        )
    return dict(raw_payload)


def normalize_code(value: Any) -> str:
    return str(value).strip().upper()


def _dig(data: Any, path: tuple[str, ...]) -> Any:
    for key in path:
        if not isinstance(data, Mapping):
            return None
        data = data.get(key)
    return data


def _first(entry: Mapping, fields: tuple[str, ...]) -> Optional[str]:
    """Return the first scalar, non-blank value among ``fields``."""
    for name in fields:
        value = entry.get(name)
        if value is None or isinstance(value, (bool, Mapping, list)):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _first_raw(entry: Mapping, fields: tuple[str, ...]) -> tuple[Optional[str], Any]:
    for name in fields:
        value = entry.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        return name, value
    return None, None


def _sections(payload: Mapping, category: Category) -> Iterator[list]:
    nested = _dig(payload, ENTITLEMENTS_PATH)
    if isinstance(nested, Mapping):
        for key in SECTION_KEYS[category]:
            section = nested.get(key)
            if isinstance(section, list):
                yield section
    for key in FALLBACK_SECTION_KEYS[category]:
        section = payload.get(key)
        if isinstance(section, list):
            yield section


class NormalizedPayload:
    """Lazy, restartable view of the EntitlementRecords in one payload.

    Iterating walks the parsed payload again each time. Data-quality
    warnings are only recorded during the first pass.
    """

    def __init__(
        self,
        payload: Mapping[str, Any],
        snapshot_id: Optional[str] = None,
        issues: IssueSink = None,
    ):
        self.payload = payload
        self.snapshot_id = snapshot_id
        self._issues = issues
        self._reported = False

    def __iter__(self) -> Iterator[EntitlementRecord]:
        report = not self._reported
        self._reported = True
        for category in CATEGORY_ORDER:
            for section in _sections(self.payload, category):
                for entry in section:
                    record = self._to_record(entry, category, report)
                    if record is not None:
                        yield record

    def _warn(self, report: bool, warning) -> None:
        if report:
            record_issue(self._issues, warning)

    def _to_record(self, entry: Any, category: Category, report: bool) -> Optional[EntitlementRecord]:
        if not isinstance(entry, Mapping):
            self._warn(report, UnidentifiedEntryWarning(
                f"Skipping non-object {category.value} entry {entry!r}",
                snapshot_id=self.snapshot_id,
            ))
            return None

        code = _first(entry, CODE_FIELDS) or _first(entry, NAME_FIELDS)
        if code is None:
            self._warn(report, UnidentifiedEntryWarning(
                f"Skipping {category.value} entry with no product code or name",
                snapshot_id=self.snapshot_id,
            ))
            return None
        product_code = normalize_code(code)
        display_name = _first(entry, NAME_FIELDS) or code

        start_date = self._date(entry, START_FIELDS, product_code, report)
        end_date = self._date(entry, END_FIELDS, product_code, report)
        if start_date and end_date and start_date > end_date:
            self._warn(report, InvertedDateRangeWarning(
                f"startDate {start_date} is after endDate {end_date}",
                snapshot_id=self.snapshot_id,
                product_code=product_code,
            ))

        return EntitlementRecord(
            product_code=product_code,
            category=category,
            display_name=display_name,
            start_date=start_date,
            end_date=end_date,
            package_name=_first(entry, PACKAGE_FIELDS),
        )

    def _date(self, entry: Mapping, fields: tuple[str, ...], product_code: str, report: bool):
        field_name, value = _first_raw(entry, fields)
        if field_name is None:
            return None
        try:
            return parse_date(value)
        except ValueError:
            self._warn(report, MalformedDateWarning(
                field_name, value, snapshot_id=self.snapshot_id, product_code=product_code,
            ))
            return None


def normalize(
    raw_payload: Any,
    snapshot_id: Optional[str] = None,
    issues: IssueSink = None,
) -> NormalizedPayload:
    """
    Normalize a raw payload into EntitlementRecords.

    Records come out in category order Model, Data, App and keep input order
    within a category. Raises PayloadParseError when the payload is not a
    JSON object at all.
    """
    return NormalizedPayload(load_payload(raw_payload, snapshot_id), snapshot_id, issues)


def payload_metadata(raw_payload: Any, snapshot_id: Optional[str] = None) -> PayloadMetadata:
    """Extract tenant name and region from their known locations."""
    payload = load_payload(raw_payload, snapshot_id)

    def pick(paths):
        for path in paths:
            value = _dig(payload, path)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None

    return PayloadMetadata(tenant_name=pick(TENANT_NAME_PATHS), region=pick(REGION_PATHS))
