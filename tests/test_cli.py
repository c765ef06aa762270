"""Tests for the command-line interface."""

import json

from typer.testing import CliRunner

from agency_builder.cli import app


runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_dry_run_from_action_file(tmp_path):
    actions = tmp_path / "build.json"
    actions.write_text(json.dumps({"actions": [
        {"type": "INITIALIZE", "agencies": [{"name": "The Vault", "emoji": "💎"}]},
        {"type": "MAP", "downline": "Apex", "upline": "The Vault"},
    ]}), encoding="utf-8")

    result = runner.invoke(app, ["dry-run", "--actions", str(actions)])

    assert result.exit_code == 0
    assert "Initialized 1/1 agencies" in result.output
    assert "agency 'Apex' not found" in result.output
    assert "the-vault-general" in result.output


def test_dry_run_needs_input():
    result = runner.invoke(app, ["dry-run"])
    assert result.exit_code == 1


def test_dry_run_rejects_bad_action_file(tmp_path):
    actions = tmp_path / "bad.json"
    actions.write_text('{"actions": [{"type": "EXPLODE"}]}', encoding="utf-8")

    result = runner.invoke(app, ["dry-run", "--actions", str(actions)])

    assert result.exit_code == 1
