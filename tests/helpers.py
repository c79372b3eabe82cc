"""Shared helpers for reading values back out of the OTel SDK."""
from typing import Dict, List


def collect_values(reader) -> Dict[str, List[int]]:
    """Trigger a collection on ``reader`` and return data point values by metric name."""
    data = reader.get_metrics_data()
    values: Dict[str, List[int]] = {}
    if data is None:
        return values
    for resource_metrics in data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                values[metric.name] = [point.value for point in metric.data.data_points]
    return values
