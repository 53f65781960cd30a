#!/usr/bin/env python3
"""
relaymint CLI - relay-funded token deployment

Main entrypoint for the relaymint command-line tool.
"""

from pathlib import Path

import typer
from rich.markup import escape
from rich.prompt import Confirm, Prompt
from rich.table import Table

from relaymint.core.errors import DeployError
from relaymint.core.metrics import write_metrics
from relaymint.orchestrator import Command, DeploymentStatus, Orchestrator, RollbackReport, RunReport
from relaymint.steps import StepOutcome

from relaymint_cli import context
from relaymint_cli.commands import deploy, init, status

app = typer.Typer(
    name="relaymint",
    help="Relay-funded token deployment",
    add_completion=False,
)

app.command("run")(deploy.run_command)
app.command("step")(deploy.step_command)
app.command("dry-run")(deploy.dry_run_command)
app.command("rollback")(deploy.rollback_command)
app.command("status")(status.status_command)
app.command("init")(init.init_command)


def confirm_owner(orchestrator: Orchestrator) -> bool:
    config = orchestrator.config
    context.console.print("\n[bold]Owner Address Announcement[/bold]")
    context.console.print(f"The treasury owner for {config.token.name} is set to: {config.treasury_pubkey}")
    context.console.print(f"This address will receive {config.token.supply:,} {config.token.symbol} tokens.")
    context.console.print(f"Authority policy: {config.authority_policy.describe()}")
    return Confirm.ask("Confirm this is correct", default=False)


def show_result(outcome) -> None:
    payload = outcome.payload
    if isinstance(payload, RunReport):
        deploy.render_report(payload)
    elif isinstance(payload, StepOutcome):
        deploy.render_outcomes([payload])
    elif isinstance(payload, DeploymentStatus):
        status.render_status(payload)
    elif isinstance(payload, RollbackReport):
        deploy.render_rollback(payload)
    elif outcome.exit_code:
        context.console.print(f"[red]{escape(outcome.message)}[/red]")


def interactive_menu(orchestrator: Orchestrator) -> None:
    context.console.print("\n[bold]Checking deployment status...[/bold]")
    show_result(orchestrator.dispatch(Command.STATUS))

    while True:
        table = Table(title="Available Actions", show_header=False, box=None)
        for command in Command:
            table.add_row(f"{command.value}.", command.label)
        context.console.print(table)

        choice = Prompt.ask("Select an action (1-9)").strip()
        outcome = orchestrator.dispatch(choice)
        if choice == Command.EXIT.value:
            context.console.print("Exiting relaymint")
            return
        show_result(outcome)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    run_all: bool = typer.Option(False, "--all", help="Run every step non-interactively, then show status"),
    env_file: Path = typer.Option(context.DEFAULT_ENV_FILE, "--env-file", help="Path to .env file"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip owner confirmation"),
):
    """
    Relay-funded token deployment. Without a command, opens the interactive menu.
    """
    if ctx.invoked_subcommand is not None:
        return

    orchestrator = context.open_orchestrator(env_file, preflight=False)
    if not yes and not confirm_owner(orchestrator):
        context.err_console.print("[red]Owner address not confirmed. Update TREASURY_PUBKEY in .env and try again.[/red]")
        raise typer.Exit(1)

    try:
        orchestrator.preflight()
    except DeployError as e:
        context.err_console.print(f"[red]Environment check failed: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if run_all:
        outcome = orchestrator.dispatch(Command.RUN_ALL)
        show_result(outcome)
        show_result(orchestrator.dispatch(Command.STATUS))
        raise typer.Exit(outcome.exit_code)

    interactive_menu(orchestrator)


@app.command()
def version():
    """Show version information."""
    from relaymint_cli import __version__
    from relaymint import __version__ as engine_version

    table = Table(show_header=False, box=None)
    table.add_row("[bold]relaymint CLI[/bold]", f"v{__version__}")
    table.add_row("Engine", f"v{engine_version}")

    context.console.print(table)


def main():
    """Main entrypoint."""
    try:
        app()
    finally:
        write_metrics()


if __name__ == "__main__":
    main()
