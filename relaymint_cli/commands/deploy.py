"""
Deployment commands: run, step, dry-run, rollback
"""

import json
from pathlib import Path

import typer
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from relaymint.checkpoint.model import StepName
from relaymint.core.errors import DeployError
from relaymint.orchestrator import RollbackReport, RunReport
from relaymint.steps import OutcomeStatus, StepOutcome

from relaymint_cli import context

STATUS_STYLES = {
    OutcomeStatus.ALREADY_COMPLETE: "blue",
    OutcomeStatus.APPLIED: "green",
    OutcomeStatus.SIMULATED: "yellow",
    OutcomeStatus.FAILED: "red",
}


def render_outcomes(outcomes) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Step", style="cyan")
    table.add_column("Result")
    table.add_column("Signature / Error")
    for outcome in outcomes:
        style = STATUS_STYLES[outcome.status]
        detail = str(outcome.error) if outcome.error else (outcome.signature or "")
        table.add_row(outcome.step.value, f"[{style}]{outcome.status.value}[/{style}]", escape(detail))
    context.console.print(table)

    for outcome in outcomes:
        for key, value in outcome.details.items():
            if isinstance(value, dict):
                for sub_key, sub_value in value.items():
                    context.console.print(f"   {outcome.step.value} {key} {sub_key}: {escape(str(sub_value))}")
            else:
                context.console.print(f"   {outcome.step.value} {key}: {escape(str(value))}")


def render_report(report: RunReport) -> None:
    if report.dry_run:
        context.console.print("[yellow]Dry run: nothing was submitted and no checkpoint was written[/yellow]")
    render_outcomes(report.outcomes)
    if report.ok:
        context.console.print("[green]Deployment steps finished[/green]")
    else:
        context.console.print(f"[red]Deployment stopped: {escape(str(report.failed.error))}[/red]")


def render_rollback(report: RollbackReport) -> None:
    console = context.console
    console.print(f"Asset exists: {'Yes' if report.asset_exists else 'No'}")
    console.print(f"Metadata exists: {'Yes' if report.metadata_exists else 'No'}")
    console.print("Note: on-chain data (asset, metadata) cannot be deleted.")
    if report.record_deleted:
        console.print(f"Deleted checkpoint {report.deployment_key}.")
    else:
        console.print(f"No checkpoint named {report.deployment_key}.")
    if report.identity_deleted:
        console.print("Deleted identity file.")
    console.print("Rollback complete.")


def _finish(report: RunReport, json_output: bool) -> None:
    if json_output:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        render_report(report)
    if not report.ok:
        raise typer.Exit(1)


def run_command(
    env_file: Path = typer.Option(context.DEFAULT_ENV_FILE, "--env-file", help="Path to .env file"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Run every deployment step, resuming after completed ones.

    Examples:
        relaymint run
        relaymint run --json
    """
    orchestrator = context.open_orchestrator(env_file)
    _finish(orchestrator.run_all(), json_output)


def dry_run_command(
    env_file: Path = typer.Option(context.DEFAULT_ENV_FILE, "--env-file", help="Path to .env file"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Build and sign every step without submitting or checkpointing.

    Examples:
        relaymint dry-run
    """
    orchestrator = context.open_orchestrator(env_file)
    _finish(orchestrator.run_all(dry_run=True), json_output)


def step_command(
    name: StepName = typer.Argument(..., help="Step to run"),
    env_file: Path = typer.Option(context.DEFAULT_ENV_FILE, "--env-file", help="Path to .env file"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Simulate instead of submitting"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Run a single deployment step.

    Examples:
        relaymint step asset_created
        relaymint step authorities_locked --dry-run
    """
    orchestrator = context.open_orchestrator(env_file)
    outcome: StepOutcome = orchestrator.run_step(name, dry_run=True if dry_run else None)
    if json_output:
        print(json.dumps(outcome.to_dict(), indent=2))
    else:
        render_outcomes([outcome])
    if not outcome.ok:
        raise typer.Exit(1)


def rollback_command(
    env_file: Path = typer.Option(context.DEFAULT_ENV_FILE, "--env-file", help="Path to .env file"),
    forget_identity: bool = typer.Option(
        False,
        "--forget-identity",
        help="Also delete the identity file (a new identity cannot manage the old asset)",
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """
    Delete the local checkpoint. On-chain effects are left untouched.

    Examples:
        relaymint rollback
        relaymint rollback --forget-identity --yes
    """
    orchestrator = context.open_orchestrator(env_file, preflight=False)
    if not yes and not Confirm.ask("Delete the local checkpoint?", default=False):
        context.console.print("Rollback cancelled.")
        return
    try:
        report = orchestrator.rollback(forget_identity=forget_identity)
    except DeployError as e:
        context.err_console.print(f"[red]Rollback failed: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    render_rollback(report)
