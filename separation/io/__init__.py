"""Image loading, debug renders and metrics CSV output."""

from .image_loader import ImageLoadError, load_image, split_channels, to_bgr
from .debug_images import render_analyzed, write_debug_images, write_image
from .csv_export import header_line, read_metrics_csv, write_metrics_csv

__all__ = [
    'ImageLoadError',
    'load_image',
    'split_channels',
    'to_bgr',
    'render_analyzed',
    'write_debug_images',
    'write_image',
    'header_line',
    'read_metrics_csv',
    'write_metrics_csv',
]
