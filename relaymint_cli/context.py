"""
Shared CLI setup: configuration, logging and orchestrator wiring.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from relaymint.core.config import DeployConfig
from relaymint.core.errors import DeployError
from relaymint.core.logging_config import setup_logging
from relaymint.orchestrator import Orchestrator

console = Console()
err_console = Console(stderr=True)

DEFAULT_ENV_FILE = Path(".env")


def load_config(env_file: Path = DEFAULT_ENV_FILE) -> DeployConfig:
    try:
        return DeployConfig.from_env(dotenv_path=env_file)
    except DeployError as e:
        err_console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def build_orchestrator(config: DeployConfig) -> Orchestrator:
    return Orchestrator.from_config(config)


def open_orchestrator(env_file: Path = DEFAULT_ENV_FILE, preflight: bool = True) -> Orchestrator:
    """
    Load config, set up logging and wire the orchestrator.

    Exits with code 1 on configuration, identity or ledger failures.
    """
    setup_logging()
    config = load_config(env_file)
    try:
        orchestrator = build_orchestrator(config)
        if preflight:
            orchestrator.preflight()
    except DeployError as e:
        err_console.print(f"[red]Environment check failed: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    return orchestrator
