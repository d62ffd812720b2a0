"""Fixtures for running CLI commands against a temporary database."""

import re

import pytest
from click.testing import CliRunner

import shp_billing.config.settings
from shp_billing.cli import cli


@pytest.fixture
def runner():
    """Create a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at a fresh SQLite file."""
    env = {
        "DATABASE_URL": f"sqlite:///{tmp_path / 'cli.db'}",
        "ENVIRONMENT": "testing",
        "DEBUG": "false",
        "LOG_LEVEL": "WARNING",
        "RETRY_DELAY": "0",
        "DEFAULT_HOURLY_RATE": "75",
        "DEFAULT_ANNUAL_HOUR_ALLOWANCE": "2",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    shp_billing.config.settings._config = None

    yield env

    shp_billing.config.settings._config = None


@pytest.fixture
def invoke(runner, cli_env):
    """Run a CLI command line against the temporary database."""

    def _invoke(*args):
        return runner.invoke(cli, list(args))

    result = _invoke("init-db")
    assert result.exit_code == 0, result.output
    return _invoke


def extract_id(output: str, label: str) -> str:
    match = re.search(rf"{label} ID: (\S+)", output)
    assert match, output
    return match.group(1)


@pytest.fixture
def client_task(invoke):
    """Create a client with a 1h allowance and one task; return their ids."""
    result = invoke("add-client", "acme.example", "--allowance", "1")
    client_id = extract_id(result.output, "Client")
    result = invoke("add-task", "--client-id", client_id, "Maintenance")
    task_id = extract_id(result.output, "Task")
    return client_id, task_id


@pytest.fixture
def read_id():
    """Pull an ``<Label> ID: <id>`` value out of command output."""
    return extract_id
