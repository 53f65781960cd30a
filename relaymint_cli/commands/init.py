"""
Init command: write a sample environment file.
"""

from pathlib import Path

import typer

from relaymint.core.config import ENV_SAMPLE

from relaymint_cli import context


def init_command(
    output: Path = typer.Option(Path(".env.sample"), "--out", "-o", help="File to write"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
):
    """
    Write .env.sample with every supported setting.

    Examples:
        relaymint init
        relaymint init --out .env --force
    """
    if output.exists() and not force:
        context.console.print(f"[yellow]{output} already exists (use --force to overwrite)[/yellow]")
        return
    output.write_text(ENV_SAMPLE, encoding="utf-8")
    context.console.print(f"[green]Wrote {output}[/green]")
    context.console.print("Copy it to .env, fill in the values, then run: relaymint")
