"""
Tests for the CLI interface.
"""
import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from claude_usage_monitor.cli.main import (
    EXIT_CODE_ERROR,
    EXIT_CODE_OK,
    _format_minutes,
    _load_entries,
    _refresh_loop,
    _render_status,
    app,
)
from claude_usage_monitor.core.monitor import UsageMonitor
from claude_usage_monitor.core.plans import Plan
from claude_usage_monitor.storage.loader import EntryLoader

runner = CliRunner()

NOW = datetime(2024, 1, 1, 13, 0, tzinfo=timezone.utc)
SONNET = "claude-3-5-sonnet-20241022"
OPUS = "claude-opus-4-20250514"


def write_log(path, records):
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n", encoding="utf-8")


def usage_record(timestamp, model=SONNET, input_tokens=100, output_tokens=50, cost=0.01):
    return {
        "timestamp": timestamp,
        "message": {
            "model": model,
            "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
        },
        "costUSD": cost,
    }


@pytest.fixture
def plan_config_path(tmp_path):
    """Redirect the persisted plan document into a temp directory."""
    path = tmp_path / "config" / "usage.json"
    with patch(
        "claude_usage_monitor.config.loader.default_plan_config_path",
        return_value=path,
    ):
        yield path


@pytest.fixture
def fixed_now():
    """Freeze the CLI clock."""
    with patch("claude_usage_monitor.cli.main._now", return_value=NOW):
        yield NOW


@pytest.fixture
def data_dir(tmp_path):
    """Create a transcript directory with two session blocks."""
    root = tmp_path / "projects"
    (root / "proj").mkdir(parents=True)
    write_log(root / "proj" / "session.jsonl", [
        usage_record("2024-01-01T02:00:00Z", model=OPUS, cost=0.05),
        usage_record("2024-01-01T12:00:00Z"),
        usage_record("2024-01-01T12:30:00Z"),
    ])
    return root


class TestStatusCommand:
    """Test the status command."""

    def test_status_shows_current_session(self, data_dir, plan_config_path, fixed_now):
        """Test status renders the live block and lifetime totals."""
        result = runner.invoke(app, ["status", "--data-dir", str(data_dir)])

        assert result.exit_code == EXIT_CODE_OK
        assert "Current Session (Claude Pro)" in result.output
        assert "12:00 - 17:00 UTC" in result.output
        assert "300 / 44,000" in result.output
        assert "Lifetime" in result.output
        assert "2 blocks, 3 entries" in result.output

    def test_status_plan_option_is_persisted(self, data_dir, plan_config_path, fixed_now):
        """Test an explicit plan is used and saved."""
        result = runner.invoke(app, ["status", "-d", str(data_dir), "--plan", "max5"])

        assert result.exit_code == EXIT_CODE_OK
        assert "Claude Max 5" in result.output
        assert json.loads(plan_config_path.read_text()) == {"plan": "max5"}

    def test_status_uses_saved_plan(self, data_dir, plan_config_path, fixed_now):
        """Test the saved plan is used when none is given."""
        plan_config_path.parent.mkdir(parents=True)
        plan_config_path.write_text(json.dumps({"plan": "max20"}))

        result = runner.invoke(app, ["status", "-d", str(data_dir)])

        assert result.exit_code == EXIT_CODE_OK
        assert "Claude Max 20" in result.output

    def test_status_invalid_plan(self, data_dir, plan_config_path):
        """Test an unknown plan exits with an error."""
        result = runner.invoke(app, ["status", "-d", str(data_dir), "--plan", "gold"])

        assert result.exit_code == EXIT_CODE_ERROR
        assert "Unknown plan" in result.output

    def test_status_missing_data_dir(self, tmp_path, plan_config_path):
        """Test a missing data path exits with an error."""
        result = runner.invoke(app, ["status", "-d", str(tmp_path / "missing")])

        assert result.exit_code == EXIT_CODE_ERROR
        assert "Error" in result.output

    def test_status_without_data(self, tmp_path, plan_config_path):
        """Test an empty data directory is reported, not failed."""
        result = runner.invoke(app, ["status", "-d", str(tmp_path)])

        assert result.exit_code == EXIT_CODE_OK
        assert "No Claude usage data found" in result.output

    def test_status_settings_file(self, data_dir, tmp_path, plan_config_path, fixed_now):
        """Test data paths can come from the YAML settings file."""
        settings = tmp_path / "settings.yaml"
        settings.write_text(f"data_paths:\n  - {data_dir}\n", encoding="utf-8")

        result = runner.invoke(app, ["status", "--config", str(settings)])

        assert result.exit_code == EXIT_CODE_OK
        assert "2 blocks, 3 entries" in result.output

    def test_status_invalid_settings_file(self, data_dir, tmp_path, plan_config_path):
        """Test malformed YAML settings print an error and exit 1."""
        settings = tmp_path / "settings.yaml"
        settings.write_text("invalid: yaml: content: [", encoding="utf-8")

        result = runner.invoke(app, ["status", "-d", str(data_dir), "-c", str(settings)])

        assert result.exit_code == EXIT_CODE_ERROR
        assert "Error:" in result.output
        assert "Invalid YAML" in result.output

    def test_status_no_discoverable_data(self, plan_config_path):
        """Test a clear error when no standard directory exists."""
        with patch("claude_usage_monitor.cli.main.discover_data_paths", return_value=[]):
            result = runner.invoke(app, ["status"])

        assert result.exit_code == EXIT_CODE_ERROR
        assert "No Claude data directories found" in result.output


class TestBlocksCommand:
    """Test the blocks command."""

    def test_blocks_lists_all_blocks(self, data_dir):
        """Test every block is listed with totals."""
        result = runner.invoke(app, ["blocks", "-d", str(data_dir)])

        assert result.exit_code == EXIT_CODE_OK
        assert "Session Blocks" in result.output
        assert "2024-01-01 02:00" in result.output
        assert "2024-01-01 12:00" in result.output
        assert "2 blocks, 3 entries" in result.output


class TestModelsCommand:
    """Test the models command."""

    def test_models_breakdown(self, data_dir):
        """Test all models are listed with weights."""
        result = runner.invoke(app, ["models", "-d", str(data_dir)])

        assert result.exit_code == EXIT_CODE_OK
        assert SONNET in result.output
        assert OPUS in result.output
        assert "5x" in result.output

    def test_models_current_block_only(self, data_dir):
        """Test the breakdown can be limited to the live block."""
        result = runner.invoke(app, ["models", "-d", str(data_dir), "--current"])

        assert result.exit_code == EXIT_CODE_OK
        assert SONNET in result.output
        assert OPUS not in result.output
        assert "$0.02" in result.output


class TestPlanCommand:
    """Test the plan command."""

    def test_show_default_plan(self, plan_config_path):
        """Test the default plan is shown when nothing is saved."""
        result = runner.invoke(app, ["plan"])

        assert result.exit_code == EXIT_CODE_OK
        assert "Claude Pro" in result.output

    def test_set_plan(self, plan_config_path):
        """Test a plan can be selected and persisted."""
        result = runner.invoke(app, ["plan", "MAX20"])

        assert result.exit_code == EXIT_CODE_OK
        assert "Plan set to Claude Max 20" in result.output
        assert json.loads(plan_config_path.read_text()) == {"plan": "max20"}

    def test_set_invalid_plan(self, plan_config_path):
        """Test an unknown plan is rejected and nothing is saved."""
        result = runner.invoke(app, ["plan", "gold"])

        assert result.exit_code == EXIT_CODE_ERROR
        assert not plan_config_path.exists()


class TestWatchCommand:
    """Test the live dashboard."""

    def test_watch_renders_and_exits_on_interrupt(self, data_dir, plan_config_path, fixed_now):
        """Test watch renders the dashboard and exits cleanly on Ctrl-C."""
        with patch("claude_usage_monitor.cli.main.time") as mock_time:
            mock_time.sleep.side_effect = KeyboardInterrupt
            result = runner.invoke(app, ["watch", "-d", str(data_dir), "--interval", "60"])

        assert result.exit_code == EXIT_CODE_OK
        assert "Lifetime" in result.output

    def test_watch_invalid_settings_file(self, data_dir, tmp_path, plan_config_path):
        """Test watch reports malformed YAML settings instead of crashing."""
        settings = tmp_path / "settings.yaml"
        settings.write_text("invalid: yaml: content: [", encoding="utf-8")

        result = runner.invoke(app, ["watch", "-d", str(data_dir), "-c", str(settings)])

        assert result.exit_code == EXIT_CODE_ERROR
        assert "Invalid YAML" in result.output

    def test_refresh_loop_survives_undecodable_file(self, tmp_path):
        """Test a half-written multi-byte sequence neither stops the refresh nor drops good lines."""
        path = tmp_path / "session.jsonl"
        good = json.dumps(usage_record("2024-01-01T12:00:00Z")).encode("utf-8")
        path.write_bytes(good + b"\n" + b"\xff\xfe\n" + good + b"\n")
        monitor = UsageMonitor()
        stop = MagicMock()
        stop.wait.side_effect = [False, True]

        _refresh_loop(monitor, [path], 0.01, stop)

        assert monitor.entry_count == 2

    def test_refresh_loop_survives_value_errors(self, data_dir):
        """Test a reload failing with ValueError is logged and retried."""
        monitor = UsageMonitor()
        stop = MagicMock()
        stop.wait.side_effect = [False, False, True]

        with patch(
            "claude_usage_monitor.cli.main._load_entries",
            side_effect=ValueError("bad batch"),
        ):
            _refresh_loop(monitor, [data_dir], 0.01, stop)

        assert monitor.is_empty()
        assert stop.wait.call_count == 3

    def test_refresh_loop_replaces_entries(self, data_dir):
        """Test the background refresh hands new batches to the monitor."""
        monitor = UsageMonitor()
        stop = MagicMock()
        stop.wait.side_effect = [False, True]

        _refresh_loop(monitor, [data_dir], 0.01, stop)

        assert monitor.entry_count == 3

    def test_refresh_loop_survives_load_errors(self, tmp_path):
        """Test a failed reload is logged and the loop continues."""
        monitor = UsageMonitor()
        stop = MagicMock()
        stop.wait.side_effect = [False, False, True]

        _refresh_loop(monitor, [tmp_path / "missing"], 0.01, stop)

        assert monitor.is_empty()
        assert stop.wait.call_count == 3


class TestHelpers:
    """Test CLI helpers."""

    def test_load_entries_falls_back_to_next_path(self, tmp_path, data_dir):
        """Test the first path yielding entries is used."""
        entries = _load_entries(EntryLoader(), [tmp_path / "missing", data_dir])
        assert len(entries) == 3

    def test_load_entries_reraises_last_error(self, tmp_path):
        """Test the last error is raised when nothing loads."""
        with pytest.raises(FileNotFoundError):
            _load_entries(EntryLoader(), [tmp_path / "missing"])

    def test_render_status_reads_one_snapshot(self, data_dir, fixed_now):
        """Test a frame is rendered from a single snapshot of the monitor."""
        monitor = UsageMonitor()
        monitor.load_path(data_dir)

        with patch.object(monitor, "snapshot", wraps=monitor.snapshot) as snapshot:
            _render_status(monitor, Plan.PRO, NOW)

        snapshot.assert_called_once_with()

    def test_format_minutes(self):
        """Test durations are formatted as hours and minutes."""
        assert _format_minutes(None) == "-"
        assert _format_minutes(45.9) == "45m"
        assert _format_minutes(125) == "2h 05m"
