"""Tests for the splitledger CLI."""

import pytest
from typer.testing import CliRunner

from splitledger.cli import app, format_money, parse_shares
from splitledger.exceptions import ValidationError

runner = CliRunner()


@pytest.fixture(autouse=True)
def ledger_env(tmp_path, monkeypatch):
    """Point the CLI at a temporary database."""
    monkeypatch.setenv("SPLITLEDGER_DATABASE_PATH", str(tmp_path / "cli.db"))
    monkeypatch.delenv("SPLITLEDGER_CURRENT_USER_ID", raising=False)
    monkeypatch.delenv("SPLITLEDGER_GROUP_SERVICE_URL", raising=False)
    monkeypatch.chdir(tmp_path)


class TestCommands:
    """End-to-end command runs."""

    def test_add_balances_settle(self):
        """Record, check balances, settle, settle again."""
        result = runner.invoke(app, ["add", "Dinner", "100", "-w", "A", "-w", "B", "-u", "P"])
        assert result.exit_code == 0, result.output
        assert "Expense recorded" in result.output

        result = runner.invoke(app, ["balances", "-u", "A"])
        assert result.exit_code == 0, result.output
        assert "33.33" in result.output
        assert "you owe" in result.output

        result = runner.invoke(app, ["obligations", "-u", "A", "--status", "pending"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(app, ["settle", "1", "-u", "A"])
        assert result.exit_code == 0, result.output
        assert "Settled obligation 1" in result.output

        result = runner.invoke(app, ["settle", "1", "-u", "A"])
        assert result.exit_code == 1
        assert "already settled" in result.output

    def test_current_user_from_env(self, monkeypatch):
        """The current user can come from settings."""
        monkeypatch.setenv("SPLITLEDGER_CURRENT_USER_ID", "P")

        result = runner.invoke(app, ["add", "Taxi", "12.50", "-w", "A"])

        assert result.exit_code == 0, result.output
        assert "6.25" in result.output

    def test_missing_user(self):
        """Without a user the command fails cleanly."""
        result = runner.invoke(app, ["balances"])

        assert result.exit_code == 1
        assert "No current user" in result.output

    def test_shares_split(self):
        """Explicit shares via --share."""
        result = runner.invoke(
            app,
            ["add", "Rent", "90", "-k", "shares", "-s", "P=1", "-s", "A=2", "-u", "P"],
        )

        assert result.exit_code == 0, result.output
        assert "60.00" in result.output

    def test_share_with_equal_refused(self):
        """--share is not silently dropped on an equal split."""
        result = runner.invoke(app, ["add", "Dinner", "100", "-s", "A=50", "-u", "P"])

        assert result.exit_code == 1
        assert "--share only applies" in result.output

        result = runner.invoke(app, ["expenses", "-u", "P"])
        assert "No expenses found" in result.output

    def test_with_on_explicit_kind_refused(self):
        """--with is not silently dropped on an explicit split."""
        result = runner.invoke(
            app,
            ["add", "Rent", "90", "-k", "shares", "-s", "P=1", "-w", "A", "-u", "P"],
        )

        assert result.exit_code == 1
        assert "--with only applies" in result.output

        result = runner.invoke(app, ["expenses", "-u", "P"])
        assert "No expenses found" in result.output

    def test_validation_error_reported(self):
        """Bad input exits 1 with the reason."""
        result = runner.invoke(app, ["add", "Dinner", "0", "-w", "A", "-u", "P"])

        assert result.exit_code == 1
        assert "greater than 0" in result.output

    def test_show_and_delete(self):
        """Show an expense then delete it."""
        runner.invoke(app, ["add", "Dinner", "20", "-w", "A", "-u", "P"])

        result = runner.invoke(app, ["show", "1", "-u", "A"])
        assert result.exit_code == 0, result.output
        assert "Dinner" in result.output

        result = runner.invoke(app, ["delete", "1", "-u", "A"])
        assert result.exit_code == 1
        assert "not authorized" in result.output

        result = runner.invoke(app, ["delete", "1", "-u", "P"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(app, ["expenses", "-u", "P"])
        assert "No expenses found" in result.output


class TestHelpers:
    """Formatting and parsing helpers."""

    def test_parse_shares(self):
        """USER=VALUE pairs parse; share counts become ints."""
        assert parse_shares(["P=1", "A=2"], "shares") == {"P": 1, "A": 2}
        assert parse_shares(["P=10.50"], "unequal") == {"P": "10.50"}

    @pytest.mark.parametrize("bad", ["P", "=1", "P="])
    def test_parse_shares_malformed(self, bad):
        """Malformed pairs fail."""
        with pytest.raises(ValidationError, match="USER=VALUE"):
            parse_shares([bad], "unequal")

    def test_parse_shares_non_integer(self):
        """Share counts must be integers."""
        with pytest.raises(ValidationError, match="positive integers"):
            parse_shares(["P=1.5"], "shares")

    def test_format_money(self):
        """Owing is parenthesised, being owed is not."""
        from decimal import Decimal

        assert format_money(Decimal("85.02"), use_color=False) == "($85.02)"
        assert format_money(Decimal("-85.02"), use_color=False) == " $85.02 "
