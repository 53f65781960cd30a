"""
CLI smoke tests via typer's CliRunner with the fake ledger and relay.
"""

import json

import pytest
from typer.testing import CliRunner

from relaymint.checkpoint import StepName
from relaymint.core.errors import StorageFailure

from relaymint_cli import context
from relaymint_cli.main import app

runner = CliRunner()


@pytest.fixture
def env_file(tmp_path, config, monkeypatch, orchestrator):
    """Valid .env plus a patched wiring that returns the fake-backed orchestrator."""
    path = tmp_path / ".env"
    path.write_text(
        f"RPC_URL={config.rpc_url}\n"
        f"RELAYER_URL={config.relayer_url}\n"
        f"RELAYER_PUBKEY={config.relayer_pubkey}\n"
        f"TREASURY_PUBKEY={config.treasury_pubkey}\n"
    )
    monkeypatch.setenv("RELAYMINT_LOG_LEVEL", "ERROR")
    monkeypatch.setattr(context, "build_orchestrator", lambda cfg: orchestrator)
    return str(path)


def test_init_writes_sample(tmp_path):
    out = tmp_path / ".env.sample"

    result = runner.invoke(app, ["init", "--out", str(out)])

    assert result.exit_code == 0
    assert "AUTHORITY_MODE=null" in out.read_text()


def test_missing_config_exits_1(tmp_path, monkeypatch):
    for key in ("RPC_URL", "RELAYER_URL", "RELAYER_PUBKEY", "TREASURY_PUBKEY"):
        monkeypatch.delenv(key, raising=False)

    result = runner.invoke(app, ["run", "--env-file", str(tmp_path / "missing.env")])

    assert result.exit_code == 1


def test_run_and_status(env_file, transport):
    result = runner.invoke(app, ["run", "--env-file", env_file])
    assert result.exit_code == 0
    assert transport.settled == 4

    status = runner.invoke(app, ["status", "--env-file", env_file, "--json"])
    assert status.exit_code == 0
    data = json.loads(status.stdout)
    assert data["gate_closed"] is True
    assert all(data["completed"].values())


def test_dry_run_command(env_file, transport):
    result = runner.invoke(app, ["dry-run", "--env-file", env_file])

    assert result.exit_code == 0
    assert transport.calls == []


def test_step_out_of_order_exits_1(env_file, transport):
    result = runner.invoke(app, ["step", StepName.AUTHORITIES_LOCKED.value, "--env-file", env_file])

    assert result.exit_code == 1
    assert transport.calls == []


def test_all_flag_runs_everything(env_file, transport):
    result = runner.invoke(app, ["--all", "--yes", "--env-file", env_file])

    assert result.exit_code == 0
    assert transport.settled == 4


def test_owner_not_confirmed_exits_1(env_file, transport):
    result = runner.invoke(app, ["--env-file", env_file], input="n\n")

    assert result.exit_code == 1
    assert transport.calls == []


def test_interactive_menu(env_file, transport):
    """Choose create asset, an invalid entry, then exit."""
    result = runner.invoke(app, ["--env-file", env_file], input="y\n2\n42\n9\n")

    assert result.exit_code == 0
    assert transport.settled == 1
    assert "Invalid choice" in result.stdout


def test_rollback_command(env_file, store, config):
    runner.invoke(app, ["step", StepName.ASSET_CREATED.value, "--env-file", env_file])
    assert store.read(config.deployment_key) is not None

    result = runner.invoke(app, ["rollback", "--yes", "--env-file", env_file])

    assert result.exit_code == 0
    assert store.read(config.deployment_key) is None
    assert "cannot be deleted" in result.stdout


def test_rollback_storage_failure_exits_1(env_file, store, monkeypatch):
    """A checkpoint that cannot be deleted gives an error line, not a traceback."""
    def refuse(key):
        raise StorageFailure(f"Cannot delete checkpoint {key}: permission denied")

    monkeypatch.setattr(store, "delete", refuse)

    result = runner.invoke(app, ["rollback", "--yes", "--env-file", env_file])

    assert result.exit_code == 1
    assert not isinstance(result.exception, StorageFailure)
    assert "Rollback failed" in result.output
