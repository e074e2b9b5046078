from contextlib import nullcontext
from unittest.mock import patch

import click.testing
import pytest

from ut181a import __version__
from ut181a.cli import cli
from ut181a.cli.base import debug_to_level
from ut181a.device.mock import MockUT181A
from ut181a.protocol import CancellationToken
from ut181a.protocol.samples import BODY_HEADER
from ut181a.types import DeviceCandidate
from ut181a.util import shutdown_log

BASE_ARGS = ["--mock", "--no-log-to-file"]


@pytest.fixture
def cli_runner():
    return click.testing.CliRunner()


@pytest.fixture(autouse=True)
def no_user_config(tmp_path, monkeypatch):
    monkeypatch.setattr("ut181a.util.config.DEFAULT_CONFIG_PATH", tmp_path / "none.ini")
    yield
    shutdown_log()


class TestBaseCLI:
    def test_help(self, cli_runner):
        result = cli_runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("get", "list", "monitor", "ports"):
            assert command in result.output

    def test_tree(self, cli_runner):
        result = cli_runner.invoke(cli, ["--tree"])
        assert result.exit_code == 0
        assert "└── get" in result.output
        assert "└── monitor" in result.output

    def test_version(self, cli_runner):
        result = cli_runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_missing_config_file(self, cli_runner, tmp_path):
        result = cli_runner.invoke(
            cli, ["--config", str(tmp_path / "missing.ini"), "--no-log-to-file", "ports"]
        )
        assert result.exit_code != 0
        assert "not found" in result.output

    @pytest.mark.parametrize(
        "debug, level", [(0, "WARNING"), (1, "DEBUG"), (5, "DEBUG"), (9, "TRACE")]
    )
    def test_debug_levels(self, debug, level):
        assert debug_to_level(debug, "WARNING") == level


class TestPortsCLI:
    def test_mock_ports(self, cli_runner):
        result = cli_runner.invoke(cli, BASE_ARGS + ["ports"])
        assert result.exit_code == 0
        assert "mock://ut181a" in result.output
        assert "MOCK0001" in result.output

    @patch("ut181a.cli.base.enumerate_candidates")
    def test_no_meters(self, mock_enumerate, cli_runner):
        mock_enumerate.return_value = []
        result = cli_runner.invoke(cli, ["--no-log-to-file", "ports"])
        assert result.exit_code == 0
        assert "No UT181A meters found" in result.output

    @patch("ut181a.cli.base.enumerate_candidates")
    def test_real_ports(self, mock_enumerate, cli_runner):
        mock_enumerate.return_value = [
            DeviceCandidate("/dev/ttyUSB0", "ABC123", "CP2110 HID USB-to-UART")
        ]
        result = cli_runner.invoke(cli, ["--no-log-to-file", "ports"])
        assert result.exit_code == 0
        assert "/dev/ttyUSB0\tABC123" in result.output


class TestListCLI:
    def test_list(self, cli_runner):
        result = cli_runner.invoke(cli, BASE_ARGS + ["list"])
        assert result.exit_code == 0
        assert "3 record(s)" in result.output
        assert "FIXED" in result.output

    def test_list_and_get_with_unknown_kind(self, cli_runner, tmp_path):
        meter = MockUT181A()
        meter.add_raw_record(4, BODY_HEADER.pack(0, 0, 1000), kind=0x07)
        meter.add_raw_record(5, BODY_HEADER.pack(0, 0, 1000))
        with patch("ut181a.cli.base.demo_meter", return_value=meter):
            listed = cli_runner.invoke(cli, BASE_ARGS + ["list"])
            fetched = cli_runner.invoke(
                cli, BASE_ARGS + ["get", "4", "5", "-o", str(tmp_path)]
            )
        assert listed.exit_code == 0
        assert "0x07" in listed.output
        assert "2 record(s)" in listed.output
        assert fetched.exit_code == 1
        assert "Records not saved: 4" in fetched.output
        assert (tmp_path / "record_0005.csv").exists()

    def test_wrong_serial(self, cli_runner):
        result = cli_runner.invoke(cli, BASE_ARGS + ["--serial", "NOPE", "list"])
        assert result.exit_code == 1
        assert "Is the serial string 'NOPE' correct?" in result.output

    @patch("ut181a.cli.base.enumerate_candidates")
    def test_no_meter(self, mock_enumerate, cli_runner):
        mock_enumerate.return_value = []
        result = cli_runner.invoke(cli, ["--no-log-to-file", "list"])
        assert result.exit_code == 1
        assert "Failed to open UT181A DMM" in result.output


class TestGetCLI:
    def test_get_saves_records(self, cli_runner, tmp_path):
        result = cli_runner.invoke(
            cli, BASE_ARGS + ["get", "1", "3", "--save-dir", str(tmp_path)]
        )
        assert result.exit_code == 0
        assert (tmp_path / "record_0001.csv").exists()
        assert (tmp_path / "record_0003.csv").exists()
        assert not (tmp_path / "record_0002.csv").exists()

    def test_get_unknown_record(self, cli_runner, tmp_path):
        result = cli_runner.invoke(
            cli, BASE_ARGS + ["get", "1", "42", "-o", str(tmp_path)]
        )
        assert result.exit_code == 1
        assert "Records not saved: 42" in result.output
        assert (tmp_path / "record_0001.csv").exists()

    def test_get_requires_index(self, cli_runner):
        result = cli_runner.invoke(cli, BASE_ARGS + ["get"])
        assert result.exit_code != 0

    def test_cancelled_get_skips_remaining(self, cli_runner, tmp_path):
        token = CancellationToken()
        token.cancel()
        with patch(
            "ut181a.cli.base.sigint_cancellation", return_value=nullcontext(token)
        ):
            result = cli_runner.invoke(
                cli, BASE_ARGS + ["get", "1", "2", "-o", str(tmp_path)]
            )
        assert result.exit_code == 1
        assert "Records not saved: 1, 2" in result.output
        assert list(tmp_path.iterdir()) == []


class TestMonitorCLI:
    def test_monitor_until_cancelled(self, cli_runner, make_samples):
        token = CancellationToken()
        meter = MockUT181A()
        samples = iter(make_samples(4, unit=0x02))

        def source():
            sample = next(samples, None)
            if sample is None:
                token.cancel()
            return sample

        meter.live_source = source
        with patch("ut181a.cli.base.demo_meter", return_value=meter), patch(
            "ut181a.cli.base.sigint_cancellation", return_value=nullcontext(token)
        ):
            result = cli_runner.invoke(cli, BASE_ARGS + ["monitor"])
        assert result.exit_code == 0
        assert result.output.count("VAC") == 4
        assert not meter.session_open
