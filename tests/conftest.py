"""Pytest configuration and shared fixtures."""
import random

import pytest
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from synthetic_metrics.config import Config


@pytest.fixture
def reader():
    """In-memory reader: each get_metrics_data() call is one collection cycle."""
    return InMemoryMetricReader()


@pytest.fixture
def meter_provider(reader):
    provider = MeterProvider(metric_readers=[reader])
    yield provider
    provider.shutdown()


@pytest.fixture
def meter(meter_provider):
    return meter_provider.get_meter("tests")


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def seeded_rng_factory():
    """Deterministic random sources, one per callback."""
    seeds = iter(range(1000))
    return lambda: random.Random(next(seeds))
