"""Build an account's rolled-up entitlement timeline from raw snapshots."""

import logging
from typing import Iterable

from deployment_assistant.common.exceptions import PayloadParseError
from deployment_assistant.entitlements.issues import IssueSink
from deployment_assistant.entitlements.normalizer import normalize
from deployment_assistant.entitlements.rollup import rollup
from deployment_assistant.entitlements.types import (
    Snapshot,
    SnapshotEntitlements,
    group_by_account,
    sort_snapshots,
)

logger = logging.getLogger(__name__)


def normalize_snapshot(snapshot: Snapshot, issues: IssueSink = None) -> SnapshotEntitlements:
    """Normalized (not rolled-up) entitlements of one snapshot."""
    records = normalize(snapshot.raw_payload, snapshot.request_id, issues)
    return SnapshotEntitlements(snapshot=snapshot, entitlements=tuple(records))


def build_timeline(
    snapshots: Iterable[Snapshot],
    issues: IssueSink = None,
    rolled: bool = True,
) -> list[SnapshotEntitlements]:
    """
    Normalize and roll up each snapshot, ordered by timestamp.

    A snapshot whose payload cannot be parsed is logged and left out; the
    rest of the timeline is still built.
    """
    timeline = []
    for snapshot in sort_snapshots(snapshots):
        try:
            entry = normalize_snapshot(snapshot, issues)
        except PayloadParseError as exc:
            logger.warning(
                "Skipping snapshot %s: %s", snapshot.request_id, exc.message,
                extra={"request_id": snapshot.request_id},
            )
            continue
        if rolled:
            entry = SnapshotEntitlements(snapshot=snapshot, entitlements=tuple(rollup(entry.entitlements)))
        timeline.append(entry)
    return timeline


def build_account_timelines(
    snapshots: Iterable[Snapshot],
    issues: IssueSink = None,
) -> dict[str, list[SnapshotEntitlements]]:
    """Rolled-up timelines keyed by account id."""
    return {
        account_id: build_timeline(items, issues)
        for account_id, items in group_by_account(list(snapshots)).items()
    }
