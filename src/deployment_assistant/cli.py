"""Typer CLI for the Deployment Assistant."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="deployment-assistant",
    help="Deployment Assistant: entitlement timeline reconciliation",
)
console = Console()


def _load_snapshots(path: Path):
    """Read a JSON array of snapshot objects in the ``POST /snapshots`` shape."""
    from deployment_assistant.entitlements.types import Snapshot
    from deployment_assistant.snapshots.schemas import SnapshotCreate

    items = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(items, dict):
        items = items.get("snapshots", [])
    snapshots = []
    for item in items:
        body = SnapshotCreate.model_validate(item)
        requested_at = body.requested_at
        if requested_at.tzinfo is None:
            requested_at = requested_at.replace(tzinfo=timezone.utc)
        snapshots.append(Snapshot(
            account_id=body.account_id,
            request_id=body.request_id,
            timestamp=requested_at,
            raw_payload=body.payload,
            request_name=body.request_name,
            request_type=body.request_type,
            account_name=body.account_name,
        ))
    return snapshots


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
):
    """Start the Deployment Assistant API server."""
    import uvicorn
    from deployment_assistant.app import create_app
    from deployment_assistant.common.config import get_settings
    from deployment_assistant.common.logging import setup_logging

    setup_logging(get_settings().log_level)
    console.print(f"[bold green]Starting Deployment Assistant on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def analyze(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file of snapshots"),
    window: int = typer.Option(30, help="Expiration lookahead in days"),
    now: Optional[datetime] = typer.Option(None, help="Reference date (defaults to today)"),
    show_extended: bool = typer.Option(False, help="Include extended expirations"),
):
    """Reconcile snapshot histories from a file (offline, no DB required)."""
    from deployment_assistant.common.exceptions import UnorderedInputError
    from deployment_assistant.entitlements.diff import diff_timeline
    from deployment_assistant.entitlements.expiration import (
        classify,
        expiring,
        group_expirations,
        summarize_expirations,
    )
    from deployment_assistant.entitlements.timeline import build_account_timelines

    if window < 0:
        console.print("[bold red]Error:[/bold red] window must be non-negative")
        raise typer.Exit(1)

    reference = now or datetime.now(timezone.utc)
    issues = []
    timelines = build_account_timelines(_load_snapshots(file), issues)

    changes = Table(title="Entitlement changes")
    changes.add_column("Account")
    changes.add_column("Request")
    changes.add_column("Added", justify="right")
    changes.add_column("Removed", justify="right")
    changes.add_column("Summary")

    records = []
    for account_id, timeline in timelines.items():
        try:
            diffs = diff_timeline(timeline)
            records.extend(classify(timeline, reference, window))
        except UnorderedInputError as e:
            console.print(f"[bold red]{account_id}[/bold red] {e.message}")
            continue
        for d in diffs:
            changes.add_row(
                d.current.account_name or account_id,
                d.current.label,
                str(len(d.result.added)),
                str(len(d.result.removed)),
                d.result.summary if d.result.has_removals else "",
            )
    console.print(changes)

    found = expiring(records)
    if not show_extended:
        found = [r for r in found if not r.is_extended]

    expirations = Table(title=f"Expiring within {window} days")
    expirations.add_column("Account")
    expirations.add_column("Request")
    expirations.add_column("Status")
    expirations.add_column("Urgency")
    expirations.add_column("Earliest", justify="right")
    expirations.add_column("Products")
    for group in group_expirations(found):
        expirations.add_row(
            group.account_name or group.account_id,
            group.request_name or group.snapshot_id,
            group.status.value,
            group.urgency.value,
            str(group.earliest_expiry),
            ", ".join(m.product_code for m in group.members),
        )
    console.print(expirations)

    summary = summarize_expirations(records)
    console.print(
        f"[bold]{summary.total_expiring}[/bold] expiring, "
        f"[red]{summary.at_risk}[/red] at risk, "
        f"[green]{summary.extended}[/green] extended "
        f"across {summary.accounts_affected} accounts"
    )
    if issues:
        console.print(f"[yellow]{len(issues)} data quality warnings[/yellow]")


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check Deployment Assistant server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] v{data['version']}")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
