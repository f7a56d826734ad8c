"""
Hierarchical contour extraction and parent/hole area reconciliation.

Boundaries of a binary mask are traced with OpenCV's border following
(Suzuki-Abe structural analysis) into a flat arena of contours with
integer hierarchy links. The retrieval mode depends on the channel:

- GREEN: outermost boundaries only (RETR_EXTERNAL), every contour is a root.
- RED / WHITE: two-level hierarchy (RETR_CCOMP). Outer boundaries are roots,
  holes directly inside them are their children; a shape sitting inside a
  hole becomes a new root.

Reconciliation then classifies each contour:

- PARENT: a root whose outer area minus the area of its non-degenerate
  holes is at least ``min_area``. Its net area is recorded.
- CHILD: a non-zero-area hole of a PARENT.
- INVALID: everything else.

Usage:
    from separation.detection.contours import extract_contours

    extraction = extract_contours(mask, ChannelType.RED, min_area=1.0)
    for index in extraction.parent_indices:
        print(extraction.net_areas[index])
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from separation.core.channels import ChannelType, HierarchyType, UnsupportedChannelError
from separation.core.geometry import polygon_area
from separation.utils.config import MIN_CONTOUR_AREA, OVERLAY_SEED
from separation.utils.logging import get_logger

logger = get_logger(__name__)


NO_INDEX = -1

RETRIEVAL_MODES = {
    ChannelType.GREEN: cv2.RETR_EXTERNAL,
    ChannelType.RED: cv2.RETR_CCOMP,
    ChannelType.WHITE: cv2.RETR_CCOMP,
}


@dataclass
class ContourForest:
    """
    Contours plus their nesting links, stored as parallel arrays.

    ``hierarchy`` rows use OpenCV's column order
    [next sibling, previous sibling, first child, parent]; NO_INDEX (-1)
    marks an absent link.
    """
    contours: List[np.ndarray]
    hierarchy: np.ndarray

    NEXT = 0
    PREVIOUS = 1
    FIRST_CHILD = 2
    PARENT = 3

    def __post_init__(self):
        self.contours = list(self.contours)
        self.hierarchy = np.asarray(self.hierarchy, dtype=np.int32).reshape(-1, 4)
        if len(self.contours) != len(self.hierarchy):
            raise ValueError(
                f"{len(self.contours)} contours but {len(self.hierarchy)} hierarchy rows"
            )

    def __len__(self) -> int:
        return len(self.contours)

    @classmethod
    def empty(cls) -> "ContourForest":
        return cls(contours=[], hierarchy=np.empty((0, 4), dtype=np.int32))

    @classmethod
    def from_parents(cls, contours: Sequence[np.ndarray], parents: Sequence[int]) -> "ContourForest":
        """
        Build a forest from a parent index per contour.

        Sibling order follows contour order. Handy for constructing
        hierarchies by hand.
        """
        count = len(contours)
        if len(parents) != count:
            raise ValueError("parents must have one entry per contour")

        hierarchy = np.full((count, 4), NO_INDEX, dtype=np.int32)
        last_child = {}
        last_root = NO_INDEX
        for index, parent in enumerate(parents):
            if parent != NO_INDEX and not 0 <= parent < count:
                raise ValueError(f"Parent index {parent} out of range")
            hierarchy[index, cls.PARENT] = parent
            previous = last_child.get(parent, NO_INDEX) if parent != NO_INDEX else last_root
            if previous != NO_INDEX:
                hierarchy[previous, cls.NEXT] = index
                hierarchy[index, cls.PREVIOUS] = previous
            elif parent != NO_INDEX:
                hierarchy[parent, cls.FIRST_CHILD] = index
            if parent == NO_INDEX:
                last_root = index
            else:
                last_child[parent] = index
        return cls(contours=list(contours), hierarchy=hierarchy)

    def parent(self, index: int) -> int:
        return int(self.hierarchy[index, self.PARENT])

    def first_child(self, index: int) -> int:
        return int(self.hierarchy[index, self.FIRST_CHILD])

    def next_sibling(self, index: int) -> int:
        return int(self.hierarchy[index, self.NEXT])

    def previous_sibling(self, index: int) -> int:
        return int(self.hierarchy[index, self.PREVIOUS])

    def is_root(self, index: int) -> bool:
        return self.parent(index) == NO_INDEX

    def children(self, index: int) -> Iterator[int]:
        """Direct children of a contour, following next-sibling links."""
        child = self.first_child(index)
        seen = set()
        while child != NO_INDEX and child not in seen:
            seen.add(child)
            yield child
            child = self.next_sibling(child)

    def roots(self) -> List[int]:
        return [i for i in range(len(self)) if self.is_root(i)]

    def as_cv_hierarchy(self) -> np.ndarray:
        """Hierarchy in the (1, N, 4) layout cv2.drawContours expects."""
        return self.hierarchy.reshape(1, -1, 4)


@dataclass
class ContourExtraction:
    """
    Classified contours of one channel.

    Attributes:
        channel: Channel the mask belongs to
        forest: Contours and hierarchy links
        types: HierarchyType per contour
        net_areas: Net area per contour (0 for non-PARENT)
        min_area: Threshold used for classification
        canvas: Optional BGR debug fill of accepted regions
    """
    channel: ChannelType
    forest: ContourForest
    types: List[HierarchyType]
    net_areas: np.ndarray
    min_area: float
    canvas: Optional[np.ndarray] = field(default=None, repr=False)

    @property
    def contours(self) -> List[np.ndarray]:
        return self.forest.contours

    @property
    def hierarchy(self) -> np.ndarray:
        return self.forest.hierarchy

    @property
    def parent_indices(self) -> List[int]:
        return [i for i, t in enumerate(self.types) if t == HierarchyType.PARENT]

    @property
    def child_indices(self) -> List[int]:
        return [i for i, t in enumerate(self.types) if t == HierarchyType.CHILD]

    def count(self, hierarchy_type: HierarchyType) -> int:
        return sum(1 for t in self.types if t == hierarchy_type)


def retrieval_mode(channel: Union[ChannelType, str]) -> int:
    """
    OpenCV retrieval mode for a channel.

    Raises:
        UnsupportedChannelError: For BLUE (never extracted) or unknown tags
    """
    channel = ChannelType.parse(channel)
    try:
        return RETRIEVAL_MODES[channel]
    except KeyError:
        raise UnsupportedChannelError(channel, "contour extraction") from None


def find_contour_forest(mask: np.ndarray, channel: Union[ChannelType, str]) -> ContourForest:
    """
    Trace the boundaries of a binary mask.

    Args:
        mask: 2-D mask, nonzero pixels are foreground
        channel: Selects the retrieval mode (GREEN, RED or WHITE)

    Returns:
        ContourForest (empty if the mask has no foreground)
    """
    mode = retrieval_mode(channel)

    mask = np.asarray(mask)
    if mask.ndim != 2:
        raise ValueError(f"Expected a 2-D mask, got shape {mask.shape}")
    binary = (mask > 0).astype(np.uint8) * 255

    contours, hierarchy = cv2.findContours(binary, mode, cv2.CHAIN_APPROX_SIMPLE)
    if hierarchy is None or len(contours) == 0:
        return ContourForest.empty()

    return ContourForest(contours=list(contours), hierarchy=hierarchy[0])


def reconcile_hierarchy(
    forest: ContourForest,
    min_area: float,
) -> Tuple[List[HierarchyType], np.ndarray]:
    """
    Classify contours and compute net areas (outer area minus hole areas).

    Roots are visited in index order; contours with a parent are only
    reached through their parent. Zero-area holes are ignored entirely.
    A root is accepted when its net area is at least ``min_area``; a
    negative net area (degenerate traces) simply fails that check.

    Args:
        forest: Contours with hierarchy links
        min_area: Minimum accepted area

    Returns:
        (types, net_areas): HierarchyType and net area per contour
    """
    types = [HierarchyType.INVALID] * len(forest)
    net_areas = np.zeros(len(forest), dtype=np.float64)

    for index in range(len(forest)):
        if not forest.is_root(index):
            continue

        outer_area = polygon_area(forest.contours[index])
        if outer_area < min_area:
            continue

        holes = []
        hole_area = 0.0
        for child in forest.children(index):
            child_area = polygon_area(forest.contours[child])
            if child_area:
                holes.append(child)
                hole_area += child_area

        net_area = outer_area - hole_area
        if net_area >= min_area:
            types[index] = HierarchyType.PARENT
            net_areas[index] = net_area
            for hole in holes:
                types[hole] = HierarchyType.CHILD

    return types, net_areas


def _drawable(contour: np.ndarray) -> np.ndarray:
    return np.rint(np.asarray(contour)).astype(np.int32).reshape(-1, 1, 2)


def render_parent_fill(
    forest: ContourForest,
    types: Sequence[HierarchyType],
    shape: Tuple[int, int],
    seed: int = OVERLAY_SEED,
) -> np.ndarray:
    """
    Fill each PARENT region (holes left open) with a random color.

    Colors come from a generator created here with ``seed``, so the canvas
    only depends on the inputs.

    Args:
        forest: Contours with hierarchy links
        types: Classification per contour
        shape: (height, width) of the canvas
        seed: Color generator seed

    Returns:
        uint8 BGR canvas
    """
    canvas = np.zeros((shape[0], shape[1], 3), dtype=np.uint8)
    if len(forest) == 0:
        return canvas

    rng = np.random.default_rng(seed)
    contours = [_drawable(c) for c in forest.contours]
    hierarchy = forest.as_cv_hierarchy()
    for index, hierarchy_type in enumerate(types):
        if hierarchy_type != HierarchyType.PARENT:
            continue
        color = tuple(int(c) for c in rng.integers(0, 255, size=3))
        cv2.drawContours(canvas, contours, index, color, cv2.FILLED, cv2.LINE_8, hierarchy, 1)
    return canvas


def extract_contours(
    mask: np.ndarray,
    channel: Union[ChannelType, str],
    min_area: float = MIN_CONTOUR_AREA,
    render: bool = False,
    seed: int = OVERLAY_SEED,
) -> ContourExtraction:
    """
    Trace, classify and measure the regions of a binary mask.

    Args:
        mask: Binary mask (0 / 255)
        channel: GREEN, RED or WHITE
        min_area: Minimum net area for a PARENT
        render: Also produce the colorized debug canvas
        seed: Seed of the debug canvas colors

    Returns:
        ContourExtraction

    Raises:
        UnsupportedChannelError: If the channel has no retrieval mode
    """
    channel = ChannelType.parse(channel)
    forest = find_contour_forest(mask, channel)
    types, net_areas = reconcile_hierarchy(forest, min_area)

    canvas = None
    if render:
        canvas = render_parent_fill(forest, types, np.asarray(mask).shape[:2], seed=seed)

    extraction = ContourExtraction(
        channel=channel,
        forest=forest,
        types=types,
        net_areas=net_areas,
        min_area=min_area,
        canvas=canvas,
    )
    logger.debug(
        f"{channel.value}: {len(forest)} contours, "
        f"{extraction.count(HierarchyType.PARENT)} parents, "
        f"{extraction.count(HierarchyType.CHILD)} holes"
    )
    return extraction
