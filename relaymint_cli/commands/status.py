"""
Status command: live, ledger-reconciled view of the deployment.
"""

import json
from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from relaymint.checkpoint.model import STEP_ORDER
from relaymint.core.errors import DeployError
from relaymint.orchestrator import DeploymentStatus

from relaymint_cli import context


def render_status(status: DeploymentStatus) -> None:
    console = context.console
    console.print("\n[bold]Deployment Status[/bold]")
    console.print(f"Identity: {status.identity_address}")

    if status.asset_address is None:
        console.print("[red]Asset not created.[/red] Select \"Create asset\" to start.")
        return

    console.print(f"Asset: {status.asset_address}")
    console.print(f"   Explorer: {status.explorer.get('asset', '')}")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Step", style="cyan")
    table.add_column("Ledger")
    table.add_column("Checkpoint")
    for step in STEP_ORDER:
        live = "[green]done[/green]" if status.completed.get(step) else "[yellow]pending[/yellow]"
        recorded = "yes" if status.recorded.get(step) else "no"
        table.add_row(step.value, live, recorded)
    console.print(table)

    if status.supply is not None:
        console.print(f"Supply: {status.supply} base units, Decimals: {status.decimals}")
        console.print(f"   Mint Authority: {status.mint_authority or 'null'}")
        console.print(f"   Freeze Authority: {status.freeze_authority or 'null'}")
        if status.gate_closed:
            console.print("   [yellow]Authorities revoked; supply is permanently fixed[/yellow]")
    balance = "no account" if status.holding_balance is None else status.holding_balance
    console.print(f"Treasury holding: {status.holding_address}")
    console.print(f"   Balance: {balance}")
    console.print(f"Metadata: {'Set' if status.metadata_present else 'Not set'}")
    if status.metadata_present:
        console.print(f"   Metadata account: {status.metadata_address}")


def status_command(
    env_file: Path = typer.Option(context.DEFAULT_ENV_FILE, "--env-file", help="Path to .env file"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Show live deployment status.

    Examples:
        relaymint status
        relaymint status --json
    """
    orchestrator = context.open_orchestrator(env_file, preflight=False)
    try:
        status = orchestrator.status()
    except DeployError as e:
        context.err_console.print(f"[red]Error checking status: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if json_output:
        print(json.dumps(status.to_dict(), indent=2))
    else:
        render_status(status)
