"""
Command Line Interface Tests

This module contains tests for the command-line interface functionality.
"""

import logging
import pytest
from unittest.mock import patch, MagicMock

from chairman.cli.interface import CLI, InvalidArguments, main, parse_interval
from chairman.config import Configuration, ConfigError
from chairman.control.manager import CycleResult
from chairman.ipmi import SensorSourceUnavailable

# Fixtures

@pytest.fixture
def cli():
    """Create a CLI instance"""
    return CLI()

@pytest.fixture
def mock_scheduler():
    """Patch the scheduler and manager used by the CLI"""
    with patch("chairman.cli.interface.ControlManager") as manager_cls, \
         patch("chairman.cli.interface.Scheduler") as scheduler_cls, \
         patch("chairman.cli.interface.load_config", return_value=Configuration()):
        scheduler = MagicMock()
        scheduler.run_once.return_value = CycleResult(skipped="no valid reading")
        scheduler_cls.return_value = scheduler
        yield scheduler, manager_cls

@pytest.fixture(autouse=True)
def reset_log_level():
    yield
    logging.getLogger("chairman").setLevel(logging.INFO)

# Argument Parsing Tests

def test_cli_default_arguments(cli):
    """Test default CLI arguments"""
    args = cli.parser.parse_args([])
    assert args.interval is None
    assert not args.debug
    assert not args.table
    assert not args.help
    assert args.config is None

def test_cli_interval_and_debug(cli):
    """Test interval followed by --debug"""
    args = cli.parser.parse_args(["5", "--debug"])
    assert args.interval == "5"
    assert args.debug

def test_cli_debug_before_interval(cli):
    """Test --debug is also accepted ahead of the interval"""
    args = cli.parser.parse_args(["--debug", "5"])
    assert args.interval == "5"
    assert args.debug

def test_cli_unknown_flag_raises(cli):
    """Test unknown flags are reported, not exited on"""
    with pytest.raises(InvalidArguments):
        cli.parser.parse_args(["--bogus"])

@pytest.mark.parametrize("value, expected", [("1", 1), ("5", 5), ("+30", 30)])
def test_parse_interval(value, expected):
    """Test valid intervals"""
    assert parse_interval(value) == expected

@pytest.mark.parametrize("value", ["abc", "0", "-3", "5s", "1.5", ""])
def test_parse_interval_invalid(value):
    """Test invalid intervals"""
    with pytest.raises(InvalidArguments):
        parse_interval(value)

# Mode Tests

def test_help(cli, capsys, mock_scheduler):
    """Test --help prints usage without touching sensors or fans"""
    scheduler, manager_cls = mock_scheduler
    assert cli.run(["--help"]) == 0

    output = capsys.readouterr().out
    assert "usage: chairman" in output
    assert "--table" in output
    assert "--debug" in output
    assert "INTERVAL" in output
    assert "17.33793493" in output
    manager_cls.assert_not_called()
    scheduler.run_once.assert_not_called()

def test_table(cli, capsys, mock_scheduler):
    """Test --table prints the curve and exits"""
    scheduler, manager_cls = mock_scheduler
    assert cli.run(["--table"]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 101
    assert lines[0].startswith("  0 °C")
    assert lines[-1].startswith("100 °C")
    manager_cls.assert_not_called()

def test_run_once(cli, mock_scheduler):
    """Test no arguments runs a single cycle"""
    scheduler, manager_cls = mock_scheduler
    assert cli.run([]) == 0
    scheduler.run_once.assert_called_once()
    scheduler.run_forever.assert_not_called()

def test_run_once_debug(cli, mock_scheduler):
    """Test --debug runs a single cycle with debug logging"""
    scheduler, manager_cls = mock_scheduler
    assert cli.run(["--debug"]) == 0
    scheduler.run_once.assert_called_once()
    config = manager_cls.call_args[0][0]
    assert config.debug
    assert config.interval is None
    assert logging.getLogger("chairman").level == logging.DEBUG

def test_run_forever(cli, capsys, mock_scheduler):
    """Test interval runs the loop"""
    scheduler, manager_cls = mock_scheduler
    assert cli.run(["5"]) == 0

    assert "Hysteresis: 5 seconds" in capsys.readouterr().out
    scheduler.run_forever.assert_called_once()
    config = manager_cls.call_args[0][0]
    assert config.interval == 5
    assert not config.debug

def test_run_forever_debug(cli, mock_scheduler):
    """Test interval followed by --debug"""
    scheduler, manager_cls = mock_scheduler
    assert cli.run(["5", "--debug"]) == 0
    config = manager_cls.call_args[0][0]
    assert config.interval == 5
    assert config.debug

def test_keyboard_interrupt(cli, capsys, mock_scheduler):
    """Test Ctrl+C ends the loop cleanly"""
    scheduler, _ = mock_scheduler
    scheduler.run_forever.side_effect = KeyboardInterrupt
    assert cli.run(["5"]) == 0
    assert "Exiting..." in capsys.readouterr().out

# Error Tests

def test_invalid_interval(cli, capsys, mock_scheduler):
    """Test a non-numeric interval never enters the loop"""
    scheduler, manager_cls = mock_scheduler
    assert cli.run(["abc"]) == 2

    assert "Invalid interval" in capsys.readouterr().out
    scheduler.run_forever.assert_not_called()
    manager_cls.assert_not_called()

def test_interval_below_minimum(cli, capsys, mock_scheduler):
    """Test zero interval"""
    scheduler, _ = mock_scheduler
    assert cli.run(["0"]) == 2
    assert "Invalid interval" in capsys.readouterr().out
    scheduler.run_forever.assert_not_called()

@pytest.mark.parametrize("argv", [
    ["--bogus"],
    ["5", "6"],
    ["--table", "5"],
    ["--table", "--debug"],
])
def test_invalid_arguments(cli, capsys, mock_scheduler, argv):
    """Test unsupported argument shapes"""
    scheduler, manager_cls = mock_scheduler
    assert cli.run(argv) == 2

    assert "Invalid arguments" in capsys.readouterr().out
    manager_cls.assert_not_called()

def test_sensor_source_unavailable(cli, mock_scheduler):
    """Test exit status when the sensor command cannot run"""
    scheduler, _ = mock_scheduler
    scheduler.run_once.side_effect = SensorSourceUnavailable("sysctl missing")
    assert cli.run([]) == 1

def test_config_error(cli):
    """Test exit status for a bad configuration file"""
    with patch("chairman.cli.interface.load_config", side_effect=ConfigError("bad")), \
         patch("chairman.cli.interface.ControlManager") as manager_cls:
        assert cli.run(["-c", "/tmp/bad.yaml"]) == 1
        manager_cls.assert_not_called()

def test_invalid_sensor_filter(cli, tmp_path):
    """Test a bad sensor filter in the configuration file"""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("sensors:\n  filter: 'temp('\n")
    with patch("chairman.cli.interface.ControlManager") as manager_cls:
        assert cli.run(["-c", str(config_file)]) == 1
        manager_cls.assert_not_called()

def test_config_path_passed(cli, mock_scheduler):
    """Test -c selects the configuration file"""
    with patch("chairman.cli.interface.load_config", return_value=Configuration()) as mock_load:
        cli.run(["-c", "custom.yaml"])
    mock_load.assert_called_once_with("custom.yaml")

def test_main(mock_scheduler):
    """Test the entry point returns the exit status"""
    assert main(["--table"]) == 0
