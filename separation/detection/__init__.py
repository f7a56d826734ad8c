"""
Contour extraction and cell filtering.

Provides:
- extract_contours / reconcile_hierarchy: hierarchical tracing and net areas
- filter_cells: vertex-count and perimeter checks on PARENT contours
"""

from .contours import (
    NO_INDEX,
    ContourExtraction,
    ContourForest,
    extract_contours,
    find_contour_forest,
    reconcile_hierarchy,
    render_parent_fill,
    retrieval_mode,
)
from .filtering import (
    MIN_ARC_LENGTH,
    MIN_VERTICES,
    FilteredCell,
    filter_cells,
    filter_extraction,
    refilter,
)

__all__ = [
    'NO_INDEX',
    'ContourExtraction',
    'ContourForest',
    'extract_contours',
    'find_contour_forest',
    'reconcile_hierarchy',
    'render_parent_fill',
    'retrieval_mode',
    'MIN_ARC_LENGTH',
    'MIN_VERTICES',
    'FilteredCell',
    'filter_cells',
    'filter_extraction',
    'refilter',
]
