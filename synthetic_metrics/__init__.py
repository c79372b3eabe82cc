"""Synthetic telemetry generator pushing fabricated runtime metrics over OTLP."""

__version__ = "0.1.0"
