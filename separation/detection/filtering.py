"""
Removal of ill-formed or undersized regions.

Only PARENT contours survive, and only when they have enough points to fit
a rotated rectangle and a closed perimeter long enough to be a cell.
"""

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from separation.core.channels import HierarchyType
from separation.core.geometry import arc_length
from separation.detection.contours import ContourExtraction
from separation.utils.config import MIN_ARC_LENGTH, MIN_VERTICES
from separation.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class FilteredCell:
    """A PARENT contour that passed the shape checks, with its net area."""
    contour: np.ndarray
    net_area: float
    hierarchy_type: HierarchyType = HierarchyType.PARENT
    source_index: int = -1

    @property
    def num_points(self) -> int:
        return len(self.contour)

    @property
    def perimeter(self) -> float:
        return arc_length(self.contour)


def passes_shape_checks(
    contour: np.ndarray,
    min_vertices: int = MIN_VERTICES,
    min_arc_length: float = MIN_ARC_LENGTH,
) -> bool:
    """True if the contour has enough points and a long enough closed perimeter."""
    if len(contour) < min_vertices:
        return False
    return arc_length(contour) >= min_arc_length


def filter_cells(
    contours: Sequence[np.ndarray],
    types: Sequence[HierarchyType],
    net_areas: Sequence[float],
    min_vertices: int = MIN_VERTICES,
    min_arc_length: float = MIN_ARC_LENGTH,
) -> List[FilteredCell]:
    """
    Keep PARENT contours that pass the vertex-count and perimeter checks.

    Order is preserved. Rejections are expected and not reported as errors.

    Args:
        contours: All contours of a channel
        types: HierarchyType per contour
        net_areas: Net area per contour
        min_vertices: Minimum number of contour points
        min_arc_length: Minimum closed perimeter

    Returns:
        List of FilteredCell
    """
    if not (len(contours) == len(types) == len(net_areas)):
        raise ValueError("contours, types and net_areas must have equal length")

    cells = []
    for index, (contour, hierarchy_type, net_area) in enumerate(zip(contours, types, net_areas)):
        if hierarchy_type != HierarchyType.PARENT:
            continue
        if not passes_shape_checks(contour, min_vertices, min_arc_length):
            continue
        cells.append(FilteredCell(
            contour=contour,
            net_area=float(net_area),
            hierarchy_type=hierarchy_type,
            source_index=index,
        ))

    logger.debug(f"Cell filter kept {len(cells)} of {len(contours)} contours")
    return cells


def filter_extraction(
    extraction: ContourExtraction,
    min_vertices: int = MIN_VERTICES,
    min_arc_length: float = MIN_ARC_LENGTH,
) -> List[FilteredCell]:
    """Apply filter_cells to a ContourExtraction."""
    return filter_cells(
        extraction.contours,
        extraction.types,
        extraction.net_areas,
        min_vertices=min_vertices,
        min_arc_length=min_arc_length,
    )


def refilter(
    cells: Sequence[FilteredCell],
    min_vertices: int = MIN_VERTICES,
    min_arc_length: float = MIN_ARC_LENGTH,
) -> List[FilteredCell]:
    """Run the filter again over already filtered cells, keeping them as-is."""
    return [
        cell for cell in cells
        if cell.hierarchy_type == HierarchyType.PARENT
        and passes_shape_checks(cell.contour, min_vertices, min_arc_length)
    ]
