"""Synthetic metrics generator: process entry point.

Starts the OTel exporter, registers the instruments, runs the update loop and
waits for SIGINT/SIGQUIT/SIGTERM. On the way out the exporter gets one bounded
attempt to push its last batch; a failed flush is logged, never fatal.
"""
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Dict, Optional

import typer
import yaml

from .config import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_EXPORT_INTERVAL_SECONDS,
    DEFAULT_FLUSH_TIMEOUT_SECONDS,
    Config,
    load_config,
    resolve_endpoint,
)
from .errors import ExportFlushError, RegistrationError
from .metrics import InstrumentRegistry, register_instruments
from .telemetry import TelemetryController, setup_telemetry
from .update_loop import UpdateScheduler

_LOGGER = logging.getLogger(__name__)

_SHUTDOWN_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGQUIT", "SIGTERM") if hasattr(signal, name)
)

app = typer.Typer(
    name="synthetic-metrics",
    help="Push synthetic runtime metrics to an OTLP collector",
    add_completion=False,
)


def configure_logging(level: str = "INFO", handler: Optional[logging.Handler] = None) -> None:
    """Log to stdout, and additionally through ``handler`` when one is given."""
    handlers = [logging.StreamHandler(stream=sys.stdout)]
    if handler is not None:
        # Exporter errors must not be fed back into the exporter
        handler.addFilter(lambda record: not record.name.startswith("opentelemetry"))
        handlers.append(handler)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="[%(asctime)s] %(levelname)s %(name)s | %(message)s",
        handlers=handlers,
        force=True,
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _install_signal_handlers(stop_event: threading.Event) -> Dict[int, object]:
    if threading.current_thread() is not threading.main_thread():
        return {}

    def _handle(signum, frame):
        _LOGGER.info("Received %s", signal.Signals(signum).name)
        stop_event.set()

    previous = {}
    for sig in _SHUTDOWN_SIGNALS:
        previous[sig] = signal.signal(sig, _handle)
    return previous


def _restore_signal_handlers(previous: Dict[int, object]) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler)


def _shutdown_telemetry(telemetry: TelemetryController, timeout: float) -> bool:
    try:
        telemetry.shutdown(timeout_seconds=timeout)
    except ExportFlushError as exc:
        _LOGGER.error("Final metric export failed: %s", exc)
        return False
    return True


def serve(
    config: Config,
    stop_event: Optional[threading.Event] = None,
    telemetry: Optional[TelemetryController] = None,
    flush_timeout: float = DEFAULT_FLUSH_TIMEOUT_SECONDS,
) -> int:
    """Run the generator until ``stop_event`` is set. Returns the exit code."""
    stop_event = stop_event or threading.Event()
    telemetry = telemetry or setup_telemetry(config)

    try:
        instruments = register_instruments(InstrumentRegistry(telemetry.meter), config)
    except RegistrationError:
        _LOGGER.exception("Instrument registration failed, not starting")
        _shutdown_telemetry(telemetry, flush_timeout)
        return 1

    previous_handlers = _install_signal_handlers(stop_event)
    scheduler = UpdateScheduler(instruments, config)
    try:
        scheduler.start()
        _LOGGER.info("Reporting measurements to %s...", telemetry.endpoint)
        stop_event.wait()
    finally:
        _restore_signal_handlers(previous_handlers)
        scheduler.stop(timeout=flush_timeout)

    _shutdown_telemetry(telemetry, flush_timeout)
    _LOGGER.info("Shut down")
    return 0


# ── CLI ───────────────────────────────────────────────────────────────────────

@app.command()
def run(
    config_path: Path = typer.Option(Path(DEFAULT_CONFIG_PATH), "--config", "-c", help="YAML config file"),
    log_level: str = typer.Option("INFO", "--log-level", help="Root log level"),
    export_interval: float = typer.Option(
        DEFAULT_EXPORT_INTERVAL_SECONDS, "--export-interval", help="Collection period in seconds"
    ),
    export_logs: bool = typer.Option(True, "--export-logs/--no-export-logs", help="Also ship logs over OTLP"),
):
    """Generate metrics until interrupted."""
    configure_logging(log_level)
    config = load_config(config_path)

    telemetry = setup_telemetry(
        config,
        export_interval_millis=export_interval * 1000,
        export_logs=export_logs,
    )
    configure_logging(log_level, telemetry.logging_handler())

    raise typer.Exit(serve(config, telemetry=telemetry))


@app.command("show-config")
def show_config(
    config_path: Path = typer.Option(Path(DEFAULT_CONFIG_PATH), "--config", "-c", help="YAML config file"),
):
    """Print the effective configuration, defaults included."""
    config = load_config(config_path)
    typer.echo(yaml.safe_dump(config.to_dict(), sort_keys=False).rstrip())
    typer.echo(f"# export endpoint: {resolve_endpoint()}")
