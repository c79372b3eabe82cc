"""Tests for the process supervisor and the CLI."""
import logging
import os
import signal
import threading
from unittest.mock import Mock

import pytest
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from typer.testing import CliRunner

from synthetic_metrics import main
from synthetic_metrics.config import Config
from synthetic_metrics.errors import ExportFlushError
from synthetic_metrics.telemetry import setup_telemetry


@pytest.fixture
def telemetry():
    controller = setup_telemetry(
        Config(), endpoint="collector:4318", metric_readers=[InMemoryMetricReader()], export_logs=False
    )
    yield controller
    controller.shutdown()


@pytest.fixture
def stopped():
    event = threading.Event()
    event.set()
    return event


@pytest.fixture
def cli_runner():
    return CliRunner()


class TestServe:

    def test_clean_exit(self, telemetry, stopped):
        assert main.serve(Config(), stop_event=stopped, telemetry=telemetry) == 0
        assert telemetry.is_shut_down

    def test_registration_failure_is_fatal(self, stopped):
        telemetry = Mock()
        telemetry.meter.create_counter.side_effect = ValueError("rejected")
        assert main.serve(Config(), stop_event=stopped, telemetry=telemetry) == 1
        telemetry.shutdown.assert_called_once()

    def test_flush_failure_is_not_fatal(self, telemetry, stopped, caplog, mocker):
        mocker.patch.object(telemetry, "shutdown", side_effect=ExportFlushError("timed out"))
        with caplog.at_level(logging.ERROR):
            assert main.serve(Config(), stop_event=stopped, telemetry=telemetry) == 0
        assert "Final metric export failed" in caplog.text

    @pytest.mark.parametrize("signal_name", ["SIGTERM", "SIGINT", "SIGQUIT"])
    def test_shutdown_signal_stops_the_process(self, telemetry, signal_name):
        if not hasattr(signal, signal_name):
            pytest.skip(f"{signal_name} not available on this platform")
        signum = getattr(signal, signal_name)
        timer = threading.Timer(0.3, os.kill, args=(os.getpid(), signum))
        timer.start()
        try:
            assert main.serve(Config(), telemetry=telemetry) == 0
        finally:
            timer.cancel()

    def test_signal_handlers_restored(self, telemetry, stopped):
        before = signal.getsignal(signal.SIGTERM)
        main.serve(Config(), stop_event=stopped, telemetry=telemetry)
        assert signal.getsignal(signal.SIGTERM) is before


class TestCli:

    def test_show_config_defaults(self, cli_runner, tmp_path):
        result = cli_runner.invoke(main.app, ["show-config", "--config", str(tmp_path / "missing.yaml")])
        assert result.exit_code == 0
        assert "Port: '4567'" in result.output
        assert "RandomThreadsActiveUpperBound: 10" in result.output

    def test_show_config_from_file(self, cli_runner, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("RandomCpuUsageUpperBound: 42\n")
        result = cli_runner.invoke(main.app, ["show-config", "-c", str(path)])
        assert result.exit_code == 0
        assert "RandomCpuUsageUpperBound: 42" in result.output

    def test_run_wires_config_into_serve(self, cli_runner, tmp_path, mocker):
        path = tmp_path / "config.yaml"
        path.write_text("RandomThreadsActiveUpperBound: 3\n")
        mocker.patch.object(main, "configure_logging")
        setup = mocker.patch.object(main, "setup_telemetry")
        serve = mocker.patch.object(main, "serve", return_value=0)

        result = cli_runner.invoke(main.app, ["run", "--config", str(path), "--no-export-logs"])

        assert result.exit_code == 0
        config = serve.call_args.args[0]
        assert config.threads_active_upper_bound == 3
        assert setup.call_args.kwargs["export_logs"] is False
        assert setup.call_args.kwargs["export_interval_millis"] == 3000

    def test_run_propagates_exit_code(self, cli_runner, tmp_path, mocker):
        mocker.patch.object(main, "configure_logging")
        mocker.patch.object(main, "setup_telemetry")
        mocker.patch.object(main, "serve", return_value=1)
        result = cli_runner.invoke(main.app, ["run", "--config", str(tmp_path / "none.yaml")])
        assert result.exit_code == 1


def test_configure_logging_filters_exporter_records():
    handler = logging.NullHandler()
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        main.configure_logging("debug", handler)
        assert handler in root.handlers
        assert root.level == logging.DEBUG
        exporter_record = logging.LogRecord("opentelemetry.exporter", logging.ERROR, __file__, 1, "x", None, None)
        app_record = logging.LogRecord("update_loop", logging.INFO, __file__, 1, "x", None, None)
        assert not handler.filter(exporter_record)
        assert handler.filter(app_record)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
