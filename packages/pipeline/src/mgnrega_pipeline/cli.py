"""
cli.py — Click CLI entrypoint for the MGNREGA sync engine.

Usage:
    mgnrega-pipeline sync
    mgnrega-pipeline sync --mode historical --months-back 6 --mock
    mgnrega-pipeline seed-regions
    mgnrega-pipeline status
    mgnrega-pipeline district 1201 --months 12
    mgnrega-pipeline worker --run-now
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import click
import structlog

from mgnrega_shared.config import settings
from mgnrega_pipeline.analytics.metrics import compare_region, summarize_region
from mgnrega_pipeline.loaders import BaseStore, get_store
from mgnrega_pipeline.pipelines.sync import SyncOrchestrator, SyncRequest, run_sync
from mgnrega_pipeline.utils.logging import configure_logging

log = structlog.get_logger(__name__)

# Periods compared against the state in `district`
COMPARISON_WINDOW = 6

STATUS_MARKS = {"success": "✓", "partial": "⚠", "failed": "✗"}


def _store(ctx: click.Context) -> BaseStore:
    return get_store(ctx.obj["backend"])


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, default=str, ensure_ascii=False))


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level",
)
@click.option(
    "--backend",
    default=settings.storage_backend,
    type=click.Choice(["duckdb", "supabase"]),
    help="Storage backend",
)
@click.pass_context
def main(ctx: click.Context, log_level: str, backend: str) -> None:
    """MGNREGA district data sync and analytics."""
    configure_logging(log_level=log_level)
    ctx.ensure_object(dict)
    ctx.obj["backend"] = backend


@main.command()
@click.option(
    "--mode",
    type=click.Choice(["current", "historical"]),
    default="current",
    show_default=True,
)
@click.option("--mock", "use_mock_data", is_flag=True, help="Use generated records instead of the API")
@click.option("--months-back", type=click.IntRange(min=1), default=settings.backfill_months, show_default=True)
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None, help="Deadline in seconds")
@click.pass_context
def sync(
    ctx: click.Context,
    mode: str,
    use_mock_data: bool,
    months_back: int,
    timeout: float | None,
) -> None:
    """Sync the current month or backfill trailing months."""
    request = SyncRequest(
        mode=mode,
        use_mock_data=use_mock_data,
        months_back=months_back,
        timeout=timeout,
    )
    orchestrator = SyncOrchestrator(_store(ctx))
    result = asyncio.run(run_sync(request, orchestrator=orchestrator))

    if isinstance(result, dict):
        _echo_json(result)
        return
    _echo_json(result.model_dump())
    if result.status == "failed":
        ctx.exit(1)


@main.command("seed-regions")
@click.pass_context
def seed_regions(ctx: click.Context) -> None:
    """Insert or correct every district from the static registry."""
    orchestrator = SyncOrchestrator(_store(ctx))
    regions = asyncio.run(orchestrator.seed_regions())
    click.echo(f"Seeded {len(regions)} regions.")


@main.command()
@click.option("--limit", type=click.IntRange(min=1), default=10, show_default=True)
@click.pass_context
def status(ctx: click.Context, limit: int) -> None:
    """Show store counts and the most recent sync runs."""
    store = _store(ctx)

    async def _collect() -> tuple[Any, list[Any]]:
        return await store.stats(), await store.recent_sync_runs(limit=limit)

    stats, runs = asyncio.run(_collect())
    click.echo(
        f"Regions: {stats.regions}  Performance records: {stats.performance_records}  "
        f"Last sync: {stats.last_sync_at or 'never'}"
    )
    if not runs:
        click.echo("  No sync runs found.")
        return
    for run in runs:
        mark = STATUS_MARKS.get(run.status, "?")
        click.echo(
            f"  {mark} {run.mode:10s} {run.status:8s} "
            f"{run.records_synced:5d} rows  {run.duration_seconds:7.2f}s  "
            f"{run.synced_at.isoformat()[:19]}"
        )
        for error in run.error_list[:3]:
            click.echo(f"      {error}")


@main.command()
@click.argument("code")
@click.option("--months", type=click.IntRange(min=1), default=12, show_default=True)
@click.pass_context
def district(ctx: click.Context, code: str, months: int) -> None:
    """Metrics, trends and state comparison for one district."""
    store = _store(ctx)

    async def _collect() -> dict[str, Any]:
        region = await store.get_region_by_code(code)
        if region is None:
            raise click.ClickException(f"Unknown region code: {code}")
        records = await store.list_region_performance(region.id, limit=months)
        summary = summarize_region(records)

        recent = records[:COMPARISON_WINDOW]
        window = {(r.month, r.year) for r in recent}
        state_rows = [
            r for r in await store.list_state_performance(region.state)
            if (r.month, r.year) in window
        ]
        comparison = compare_region(recent, state_rows) if recent else {}

        return {
            "region": region.model_dump(mode="json"),
            "periods": len(records),
            "summary": summary.model_dump(mode="json") if summary else None,
            "comparison": {m: c.model_dump() for m, c in comparison.items()},
        }

    _echo_json(asyncio.run(_collect()))


@main.command()
@click.option("--cron", default=None, help="Override SYNC_CRON_SCHEDULE")
@click.option("--mock", "use_mock_data", is_flag=True)
@click.option("--run-now", is_flag=True, help="Sync once immediately on start")
@click.pass_context
def worker(ctx: click.Context, cron: str | None, use_mock_data: bool, run_now: bool) -> None:
    """Run the scheduled current-period sync (requires SYNC_ENABLED)."""
    from mgnrega_pipeline.scheduler import run_worker

    if not settings.sync_enabled:
        click.echo("Sync worker disabled; set SYNC_ENABLED=true to enable.")
        return

    orchestrator = SyncOrchestrator(_store(ctx))
    try:
        asyncio.run(
            run_worker(
                orchestrator,
                cron=cron,
                use_mock_data=use_mock_data,
                run_now=run_now,
            )
        )
    except KeyboardInterrupt:
        log.info("sync_worker_interrupted")


if __name__ == "__main__":
    main()
