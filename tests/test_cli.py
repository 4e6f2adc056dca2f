"""Tests for the palimpsest command line."""

from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from palimpsest.cli import cli


class TestSecretCommand:
    def test_prints_urlsafe_token(self):
        result = CliRunner().invoke(cli, ["secret", "--length", "16"])

        assert result.exit_code == 0
        token = result.output.strip()
        assert len(token) == 22
        assert " " not in token

    def test_tokens_differ(self):
        runner = CliRunner()

        first = runner.invoke(cli, ["secret"]).output
        second = runner.invoke(cli, ["secret"]).output

        assert first != second


class TestDbCommand:
    def test_without_arguments_prints_help(self):
        result = CliRunner().invoke(cli, ["db"])

        assert result.exit_code == 0
        assert "Run database migrations via Alembic" in result.output

    def test_forwards_arguments_to_alembic(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        with patch("palimpsest.cli._run_alembic") as mock_run:
            result = CliRunner().invoke(cli, ["db", "upgrade", "head"])

        assert result.exit_code == 0
        mock_run.assert_called_once_with(tmp_path, ["upgrade", "head"])
        assert Path.cwd() == tmp_path
