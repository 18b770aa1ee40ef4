"""Command line entrypoint - run syncs without the HTTP server.

Usage:
    pagesync sync                        # Incremental sync of every data source
    pagesync sync --source blog --full   # Full sync of one data source
    pagesync sync --since 2025-01-01T00:00:00Z
    pagesync sync-page <page-id>         # Same path as the webhook
"""

import asyncio
import json
import sys
from datetime import datetime
from typing import List, Optional

import click

from pagesync.core.db import SessionLocal
from pagesync.core.errors import SyncError
from pagesync.core.logging import get_logger
from pagesync.policy import load_policies
from pagesync.schemas.sync import SyncSummary
from pagesync.services.sync_service import SyncService

logger = get_logger("cli")


def _service(policy_module: Optional[str]) -> SyncService:
    return SyncService(load_policies(policy_module), SessionLocal)


def _echo_summaries(summaries: List[SyncSummary]) -> None:
    for summary in summaries:
        line = (
            f"{summary.alias}: {summary.status} "
            f"(processed={summary.processed} skipped={summary.skipped} failed={summary.failed}, "
            f"{summary.duration_ms}ms)"
        )
        click.echo(line, err=summary.status == "error")
        if summary.details:
            click.echo(f"  {summary.details}", err=summary.status == "error")


@click.group()
@click.option("--policies", "policy_module", default=None, help="Policy module (defaults to SYNC_POLICY_MODULE).")
@click.pass_context
def cli(ctx: click.Context, policy_module: Optional[str]):
    """Sync Notion databases into the page store."""
    ctx.ensure_object(dict)
    ctx.obj["policy_module"] = policy_module


@cli.command()
@click.option("--source", "data_source", default=None, help="Data source id or alias (default: all).")
@click.option("--full", is_flag=True, help="Ignore the checkpoint and fetch every document.")
@click.option("--since", type=click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M:%SZ"]),
              default=None, help="Only documents edited after this time (UTC).")
@click.option("--wipe", is_flag=True, help="Delete the data source's pages before syncing.")
@click.option("--json", "as_json", is_flag=True, help="Print summaries as JSON.")
@click.pass_context
def sync(ctx: click.Context, data_source: Optional[str], full: bool, since: Optional[datetime], wipe: bool, as_json: bool):
    """Sync one or all data sources. Exits non-zero when any sync errored."""
    if wipe and not data_source:
        click.confirm("Wipe pages of EVERY data source?", abort=True)

    try:
        service = _service(ctx.obj["policy_module"])
        summaries = asyncio.run(service.run(data_source=data_source, since=since, full=full, wipe=wipe))
    except SyncError as exc:
        logger.error(f"Sync not started: {exc}")
        raise click.ClickException(str(exc))

    if as_json:
        click.echo(json.dumps([summary.model_dump(mode="json") for summary in summaries], indent=2))
    else:
        _echo_summaries(summaries)

    if any(summary.status == "error" for summary in summaries):
        sys.exit(1)


@cli.command("sync-page")
@click.argument("document_id")
@click.option("--source", "data_source", default=None, help="Data source id or alias of the page.")
@click.pass_context
def sync_page(ctx: click.Context, document_id: str, data_source: Optional[str]):
    """Sync a single page by id."""
    try:
        service = _service(ctx.obj["policy_module"])
        record = asyncio.run(service.process_webhook(document_id, data_source))
    except SyncError as exc:
        logger.error(f"Sync of {document_id} failed: {exc}")
        raise click.ClickException(f"{exc.kind}: {exc}")

    click.echo(f"{record.natural_id} -> {record.slug} (published={record.publish_at is not None})")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
