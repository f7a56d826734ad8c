"""
Separation metrics for stained-cell microscopy images.

Per color channel the raw intensities are normalized and thresholded,
region boundaries are traced into a parent/hole hierarchy, degenerate
shapes are filtered out and the remaining cells are summarized as count,
diameter sum, aspect-ratio sum and an 11-bucket area histogram.

Usage:
    from separation.processing import analyze_image, BatchProcessor
    from separation.preprocessing import enhance_channel
    from separation.detection import extract_contours, filter_cells
    from separation.reporting import compute_separation_metrics
    from separation.utils import get_logger, setup_logging, load_config
"""

__version__ = "0.1.0"

__all__ = [
    "core",
    "preprocessing",
    "detection",
    "reporting",
    "processing",
    "io",
    "utils",
    "cli",
]
