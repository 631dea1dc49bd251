#!/usr/bin/env python3
"""
Token Vesting CLI

Offline commands over schedule records stored as JSON files:
- create: build a schedule record
- evaluate: vested / releasable / progress at a point in time
- release, revoke: apply a controller transition and write the new record
- status: lifecycle classification

Every command takes the evaluation time explicitly (``--at``) and defaults
to the current wall clock only when it is omitted.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from token_vesting import controller
from token_vesting.config import LOG_LEVELS, ConfigurationError, LedgerConfig
from token_vesting.display import format_vesting_type, status_label, summarize
from token_vesting.exceptions import VestingError
from token_vesting.logging_config import configure_logging
from token_vesting.schedule import (
    CliffLinearVesting,
    CliffVesting,
    LinearVesting,
    Milestone,
    MilestoneVesting,
    VestingSchedule,
    create_schedule,
    schedule_from_dict,
    schedule_to_dict,
)
from token_vesting.units import format_amount

logger = logging.getLogger(__name__)
console = Console()

VESTING_TYPE_CHOICES = ("linear", "cliff", "cliff-linear", "milestone")


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, exc_info=not isinstance(exc, VestingError))
    code = getattr(exc, "code", type(exc).__name__)
    console.print(f"[bold red]Error ({code}):[/] {exc}")
    sys.exit(exit_code)


def _load_schedule(path: Path) -> VestingSchedule:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as exc:
        raise click.ClickException(f"{path} is not UTF-8 encoded: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"{path} is not valid JSON: {exc}") from exc
    return schedule_from_dict(data)


def _write_schedule(schedule: VestingSchedule, output: Path | None) -> None:
    payload = json.dumps(schedule_to_dict(schedule), indent=2)
    if output is None:
        click.echo(payload)
    else:
        output.write_text(payload + "\n", encoding="utf-8")
        console.print(f"[green]Schedule written to[/] {output}")


def _resolve_time(at: int | None) -> int:
    return int(time.time()) if at is None else at


def _parse_milestone(raw: str) -> Milestone:
    try:
        unlock_time, percentage = raw.split(":")
        return Milestone(unlock_time=int(unlock_time), percentage=int(percentage))
    except ValueError as exc:
        raise click.BadParameter(f"milestone must be UNLOCK_TIME:BASIS_POINTS, got {raw!r}") from exc


@click.group()
@click.option("--log-level", type=click.Choice(LOG_LEVELS, case_sensitive=False), default=None,
              help="Override VESTING_LOG_LEVEL")
@click.option("--json-logs", is_flag=True, default=False, help="Emit JSON log lines")
@click.option("--json-output", is_flag=True, default=False, help="Print results as JSON")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, json_logs: bool, json_output: bool):
    """Token vesting schedule tools."""
    try:
        config = LedgerConfig.from_env()
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc
    configure_logging(
        level=(log_level or config.log_level).upper(),
        json_output=json_logs or config.log_json,
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["json_output"] = json_output


@cli.command("create")
@click.option("--pool", required=True, help="Owning pool identifier")
@click.option("--beneficiary", required=True, help="Beneficiary identifier")
@click.option("--total", "total_amount", required=True, type=int, help="Total amount in base units")
@click.option("--start", "start_time", required=True, type=int, help="Start timestamp (seconds)")
@click.option("--duration", required=True, type=int, help="Vesting duration in seconds")
@click.option("--type", "vesting_kind", type=click.Choice(VESTING_TYPE_CHOICES), default="linear")
@click.option("--cliff-duration", type=int, default=0, help="Cliff length in seconds")
@click.option("--cliff-bps", type=int, default=0, help="Cliff unlock in basis points (cliff-linear)")
@click.option("--milestone", "milestones", multiple=True, help="UNLOCK_TIME:BASIS_POINTS, repeatable")
@click.option("--revocable/--no-revocable", default=False)
@click.option("--output", type=click.Path(dir_okay=False, path_type=Path), default=None)
def create_cmd(
    pool: str,
    beneficiary: str,
    total_amount: int,
    start_time: int,
    duration: int,
    vesting_kind: str,
    cliff_duration: int,
    cliff_bps: int,
    milestones: tuple[str, ...],
    revocable: bool,
    output: Path | None,
):
    """
    Build a schedule record.

    Example:
        token-vesting create --pool p1 --beneficiary alice --total 1000000 \\
            --start 0 --duration 126144000 --type cliff-linear \\
            --cliff-duration 31536000 --cliff-bps 2500
    """
    try:
        if vesting_kind == "linear":
            vesting_type: Any = LinearVesting()
        elif vesting_kind == "cliff":
            vesting_type = CliffVesting(cliff_duration=cliff_duration)
        elif vesting_kind == "cliff-linear":
            vesting_type = CliffLinearVesting(cliff_duration=cliff_duration, cliff_percentage=cliff_bps)
        else:
            vesting_type = MilestoneVesting(milestones=tuple(_parse_milestone(m) for m in milestones))

        schedule = create_schedule(
            pool=pool,
            beneficiary=beneficiary,
            vesting_type=vesting_type,
            total_amount=total_amount,
            start_time=start_time,
            duration=duration,
            is_revocable=revocable,
            created_at=int(time.time()),
        )
        _write_schedule(schedule, output)
    except VestingError as exc:
        _handle_cli_error(exc)


@cli.command("evaluate")
@click.argument("schedule_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--at", "at", type=int, default=None, help="Evaluation timestamp (default: now)")
@click.pass_context
def evaluate_cmd(ctx: click.Context, schedule_file: Path, at: int | None):
    """Show vested and releasable amounts for a schedule."""
    try:
        schedule = _load_schedule(schedule_file)
        current_time = _resolve_time(at)
        decimals = ctx.obj["config"].token_decimals
        summary = summarize(schedule, current_time, decimals)

        if ctx.obj.get("json_output"):
            click.echo(json.dumps(summary, indent=2))
            return

        table = Table(show_header=False, box=box.ROUNDED)
        table.add_row("[bold cyan]Beneficiary", summary["beneficiary"])
        table.add_row("[bold cyan]Type", summary["type"])
        table.add_row("[bold cyan]Status", summary["status"])
        table.add_row("[bold green]Total", format_amount(schedule.total_amount, decimals))
        table.add_row("[bold green]Vested", format_amount(summary["vested_amount"], decimals))
        table.add_row("[bold green]Released", format_amount(schedule.released_amount, decimals))
        table.add_row("[bold yellow]Releasable", format_amount(summary["releasable_amount"], decimals))
        table.add_row("[bold magenta]Progress", f"{summary['progress_percent']:.2f}%")
        table.add_row("[bold magenta]Days to full vest", str(summary["days_until_fully_vested"]))
        if summary["days_until_cliff_end"] is not None:
            table.add_row("[bold magenta]Days to cliff end", str(summary["days_until_cliff_end"]))
        console.print(Panel(table, title=f"[bold green]Schedule at {current_time}", border_style="green"))
    except (click.ClickException, VestingError, OSError) as exc:
        _handle_cli_error(exc)


@cli.command("release")
@click.argument("schedule_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--at", "at", type=int, default=None, help="Release timestamp (default: now)")
@click.option("--output", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Where to write the updated schedule (default: overwrite input)")
@click.pass_context
def release_cmd(ctx: click.Context, schedule_file: Path, at: int | None, output: Path | None):
    """Release everything currently vested and persist the new record."""
    try:
        schedule = _load_schedule(schedule_file)
        result = controller.release(schedule, _resolve_time(at), schedule_ref=str(schedule_file))
        _write_schedule(result.schedule, output or schedule_file)
        if ctx.obj.get("json_output"):
            click.echo(json.dumps({"amount": result.amount, "total_released": result.record.total_released}))
        else:
            decimals = ctx.obj["config"].token_decimals
            console.print(
                f"[bold green]Released[/] {format_amount(result.amount, decimals)} "
                f"to {schedule.beneficiary}"
            )
    except (click.ClickException, VestingError, OSError) as exc:
        _handle_cli_error(exc)


@cli.command("revoke")
@click.argument("schedule_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--reason", required=True, help="Reason stored on the revocation record")
@click.option("--at", "at", type=int, default=None, help="Revocation timestamp (default: now)")
@click.option("--output", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Where to write the updated schedule (default: overwrite input)")
@click.pass_context
def revoke_cmd(ctx: click.Context, schedule_file: Path, reason: str, at: int | None, output: Path | None):
    """Revoke a schedule, freezing it at its released amount."""
    try:
        schedule = _load_schedule(schedule_file)
        result = controller.revoke(schedule, _resolve_time(at), reason, schedule_ref=str(schedule_file))
        _write_schedule(result.schedule, output or schedule_file)
        record = result.record
        if ctx.obj.get("json_output"):
            click.echo(json.dumps({
                "revoked_at": record.revoked_at,
                "amount_vested": record.amount_vested,
                "amount_released": record.amount_released,
                "amount_revoked": record.amount_revoked,
                "reason": record.reason,
            }))
        else:
            console.print(
                f"[bold yellow]Revoked:[/] {record.amount_revoked} base units returned to pool "
                f"({record.reason})"
            )
    except (click.ClickException, VestingError, OSError) as exc:
        _handle_cli_error(exc)


@cli.command("status")
@click.argument("schedule_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--at", "at", type=int, default=None, help="Evaluation timestamp (default: now)")
def status_cmd(schedule_file: Path, at: int | None):
    """Print the lifecycle status of a schedule."""
    try:
        schedule = _load_schedule(schedule_file)
        vesting_status = controller.status(schedule, _resolve_time(at))
        click.echo(f"{status_label(vesting_status)} ({format_vesting_type(schedule.vesting_type)})")
    except (click.ClickException, VestingError, OSError) as exc:
        _handle_cli_error(exc)


def main() -> int:
    cli(obj={})
    return 0


if __name__ == "__main__":
    sys.exit(main())
