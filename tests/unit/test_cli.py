"""Tests for the operator CLI against a file-backed SQLite database."""

from __future__ import annotations

import os
import subprocess
import sys

import pytest
from typer.testing import CliRunner

from repairdesk import cli
from repairdesk.cli import app
from repairdesk.config import reset_config

runner = CliRunner()


@pytest.fixture
def cli_db(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    reset_config()
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0, result.output


def test_create_and_list_orgs(cli_db):
    result = runner.invoke(app, ["create-org", "Acme Repairs"])
    assert result.exit_code == 0, result.output
    assert "acme-repairs" in result.output

    result = runner.invoke(app, ["list-orgs"])
    assert result.exit_code == 0
    assert "acme-repairs" in result.output


def test_trash_for_unknown_org_fails(cli_db):
    result = runner.invoke(app, ["trash", "nobody", "customers"])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_trash_rejects_unknown_entity(cli_db):
    result = runner.invoke(app, ["trash", "acme", "spaceships"])

    assert result.exit_code == 1
    assert "Unknown entity" in result.output


def test_restore_missing_row_fails(cli_db):
    runner.invoke(app, ["create-org", "Acme Repairs"])

    result = runner.invoke(app, ["restore", "acme-repairs", "customers", "1"])

    assert result.exit_code == 1


def test_wipe_tenant_requires_confirmation(cli_db):
    runner.invoke(app, ["create-org", "Acme Repairs"])

    result = runner.invoke(app, ["wipe-tenant", "acme-repairs"], input="n\n")

    assert result.exit_code != 0


def test_wipe_tenant(cli_db):
    runner.invoke(app, ["create-org", "Acme Repairs"])

    result = runner.invoke(app, ["wipe-tenant", "acme-repairs", "--yes"])

    assert result.exit_code == 0, result.output
    assert "Removed 0 rows" in result.output


def test_cli_and_api_share_entity_names():
    from repairdesk.storage import ENTITIES
    from repairdesk.web.routes import lifecycle

    assert cli.ENTITIES is ENTITIES
    assert lifecycle.ENTITIES is ENTITIES


def test_cli_import_does_not_load_web_layer():
    code = (
        "import sys, repairdesk.cli; "
        "loaded = [m for m in sys.modules if m.startswith(('repairdesk.web', 'fastapi'))]; "
        "sys.exit(', '.join(loaded) or None)"
    )
    env = {**os.environ, "DATABASE_URL": "sqlite+aiosqlite:///:memory:"}

    result = subprocess.run([sys.executable, "-c", code], env=env, capture_output=True)

    assert result.returncode == 0, result.stderr.decode()
