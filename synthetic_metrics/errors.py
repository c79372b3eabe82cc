"""Exception types raised by the synthetic metrics generator."""


class SyntheticMetricsError(Exception):
    """Base class for all errors raised by this package."""


class ConfigError(SyntheticMetricsError):
    """Configuration is missing, malformed, or holds an unusable value."""


class RegistrationError(SyntheticMetricsError):
    """An instrument could not be registered with the meter."""


class CallbackError(SyntheticMetricsError):
    """An observation callback produced no value for this collection cycle."""


class ExportFlushError(SyntheticMetricsError):
    """The final flush of the exporter failed or ran out of time."""
