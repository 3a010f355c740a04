"""
Unit tests for the command-line interface.
"""
import json
import os
import textwrap
from email.message import EmailMessage

import pytest
from click.testing import CliRunner

from cli import cli
from mail_router import load_config
from mail_router.config import build_mailboxes


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("MAIL_ROUTER_"):
            monkeypatch.delenv(key)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(textwrap.dedent(f"""
        log_dir: {tmp_path / "logs"}
        mailboxes:
          - "Sales=*@sales.com"
          - name: Filtered
            recipients: "*@filtered.com"
            headerFilters:
              - header: X-Application
                pattern: app1
            sourceFilters:
              - pattern: legacy.dev.example.org
    """))
    return str(path)


class TestMailboxesCommand:
    """Tests for listing mailboxes."""

    def test_lists_in_order(self, runner, config_path):
        result = runner.invoke(cli, ["-c", config_path, "mailboxes"])

        assert result.exit_code == 0
        assert result.output.index("Sales") < result.output.index("Filtered") < result.output.index("Default")

    def test_json_output_loads_back(self, runner, config_path):
        """Test --json prints the structured form accepted by the loader."""
        result = runner.invoke(cli, ["-c", config_path, "mailboxes", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data[1] == {
            "name": "Filtered",
            "recipients": "*@filtered.com",
            "headerFilters": [{"header": "X-Application", "pattern": "app1"}],
            "sourceFilters": [{"pattern": "legacy.dev.example.org"}],
        }
        assert build_mailboxes(data, ensure_default=False) == load_config(config_path).mailboxes

    def test_config_error(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text('mailboxes:\n  - "NoEquals"\n')

        result = runner.invoke(cli, ["-c", str(path), "mailboxes"])

        assert result.exit_code == 2
        assert "Error:" in result.output


class TestRouteCommand:
    """Tests for dry-run routing."""

    def test_routes_to_matching_mailbox(self, runner, config_path):
        result = runner.invoke(cli, ["-c", config_path, "route", "user@sales.com"])

        assert result.exit_code == 0
        assert "Mailbox: Sales" in result.output

    def test_catch_all(self, runner, config_path):
        result = runner.invoke(cli, ["-c", config_path, "route", "user@other.com"])

        assert result.exit_code == 0
        assert "Mailbox: Default" in result.output

    def test_layered_filters(self, runner, config_path):
        args = ["-c", config_path, "route", "user@filtered.com", "--hostname", "legacy.dev.example.org"]

        matched = runner.invoke(cli, args + ["--header", "X-Application: app1"])
        wrong_header = runner.invoke(cli, args + ["--header", "X-Application: app2"])

        assert "Mailbox: Filtered" in matched.output
        assert "Mailbox: Default" in wrong_header.output

    def test_inline_mailboxes_and_no_match(self, runner, config_path):
        result = runner.invoke(cli, [
            "-c", config_path, "route", "user@other.com",
            "--mailbox", "Sales=*@sales.com",
        ])

        assert result.exit_code == 1
        assert "No match" in result.output

    def test_invalid_inline_mailbox(self, runner, config_path):
        result = runner.invoke(cli, ["-c", config_path, "route", "a@b.c", "--mailbox", "broken"])

        assert result.exit_code == 2

    def test_bad_header_option(self, runner, config_path):
        result = runner.invoke(cli, ["-c", config_path, "route", "a@b.c", "--header", "NoColon"])

        assert result.exit_code == 2

    def test_no_recipients(self, runner, config_path):
        result = runner.invoke(cli, ["-c", config_path, "route"])

        assert result.exit_code == 2
        assert "No recipients" in result.output

    def test_message_file(self, runner, config_path, tmp_path):
        msg = EmailMessage()
        msg["To"] = "user@filtered.com"
        msg["X-Application"] = "app1"
        msg.set_content("hi")
        eml = tmp_path / "msg.eml"
        eml.write_bytes(msg.as_bytes())

        result = runner.invoke(cli, [
            "-c", config_path, "route", "--message", str(eml), "--ip", "10.0.0.1",
            "--hostname", "legacy.dev.example.org",
        ])

        assert result.exit_code == 0
        assert "Mailbox: Filtered" in result.output

    def test_log_option_writes_routing_log(self, runner, config_path, tmp_path):
        result = runner.invoke(cli, ["-c", config_path, "route", "a@sales.com", "b@other.com", "--log"])

        assert result.exit_code == 0
        log_files = list((tmp_path / "logs").glob("routing_log_*.jsonl"))
        assert len(log_files) == 1
        entries = [json.loads(line) for line in log_files[0].read_text().splitlines()]
        assert [e["mailbox"] for e in entries] == ["Sales", "Default"]


class TestTestCommand:
    """Tests for the configuration test command."""

    def test_reports_mailboxes(self, runner, config_path):
        result = runner.invoke(cli, ["-c", config_path, "test"])

        assert result.exit_code == 0
        assert "Mailboxes (3)" in result.output
        assert "Configuration OK" in result.output

    def test_warns_without_catch_all(self, runner, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text('ensure_default_mailbox: false\nmailboxes:\n  - "Sales=*@sales.com"\n')

        result = runner.invoke(cli, ["-c", str(path), "test"])

        assert result.exit_code == 0
        assert "not a catch-all" in result.output


class TestStatsCommand:
    """Tests for routing log statistics."""

    def test_no_logs(self, runner, config_path):
        result = runner.invoke(cli, ["-c", config_path, "stats"])

        assert result.exit_code == 0
        assert "No routing logs" in result.output

    def test_summary_after_routing(self, runner, config_path):
        runner.invoke(cli, ["-c", config_path, "route", "a@sales.com", "b@sales.com", "--log"])

        result = runner.invoke(cli, ["-c", config_path, "stats"])

        assert result.exit_code == 0
        assert "Total: 2" in result.output
        assert "Matched: 2" in result.output
