"""Metrics aggregation and CSV column labels."""

from .metrics import (
    BIN_AREA,
    NUM_BINS,
    MetricsRecord,
    area_bin_index,
    aspect_ratio,
    channel_header,
    compute_separation_metrics,
    equivalent_diameter,
    format_number,
    image_row,
    metrics_header,
)

__all__ = [
    'BIN_AREA',
    'NUM_BINS',
    'MetricsRecord',
    'area_bin_index',
    'aspect_ratio',
    'channel_header',
    'compute_separation_metrics',
    'equivalent_diameter',
    'format_number',
    'image_row',
    'metrics_header',
]
