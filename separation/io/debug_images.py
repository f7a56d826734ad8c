"""
Debug renders of an analyzed image.

Three images can be written next to each other in the output directory:

- ``<stem>_a_normalized<ext>``: merged normalized B, G, R planes
- ``<stem>_b_enhanced<ext>``: merged binary masks
- ``<stem>_c_analyzed<ext>``: normalized planes with filtered GREEN
  boundaries in yellow and filtered WHITE boundaries in magenta

Without debug output only the analyzed render is written, under the
image's own name.
"""

from pathlib import Path
from typing import Dict, List, Sequence, Union

import cv2
import numpy as np

from separation.detection.filtering import FilteredCell
from separation.utils.logging import get_logger

logger = get_logger(__name__)


# BGR colors of the boundary overlays
GREEN_BOUNDARY_COLOR = (0, 255, 255)
WHITE_BOUNDARY_COLOR = (255, 0, 255)

SUFFIX_NORMALIZED = "_a_normalized"
SUFFIX_ENHANCED = "_b_enhanced"
SUFFIX_ANALYZED = "_c_analyzed"

_JPEG_SUFFIXES = {".jpg", ".jpeg", ".jpe"}


def merge_planes(blue: np.ndarray, green: np.ndarray, red: np.ndarray) -> np.ndarray:
    """Stack three single-channel grids into a BGR image."""
    return cv2.merge([blue, green, red])


def draw_boundaries(
    canvas: np.ndarray,
    cells: Sequence[FilteredCell],
    color,
) -> np.ndarray:
    """Draw 1 px, 8-connected boundaries of the cells onto a BGR canvas (in place)."""
    if not cells:
        return canvas
    contours = [np.rint(c.contour).astype(np.int32).reshape(-1, 1, 2) for c in cells]
    cv2.drawContours(canvas, contours, -1, color, 1, cv2.LINE_8)
    return canvas


def render_analyzed(
    normalized: Dict[str, np.ndarray],
    green_cells: Sequence[FilteredCell],
    white_cells: Sequence[FilteredCell],
) -> np.ndarray:
    """
    Overlay filtered GREEN and WHITE boundaries on the normalized planes.

    Args:
        normalized: Dict with 'blue', 'green', 'red' normalized planes
        green_cells: Filtered GREEN cells
        white_cells: Filtered WHITE cells

    Returns:
        BGR image
    """
    canvas = merge_planes(normalized["blue"], normalized["green"], normalized["red"]).copy()
    draw_boundaries(canvas, green_cells, GREEN_BOUNDARY_COLOR)
    draw_boundaries(canvas, white_cells, WHITE_BOUNDARY_COLOR)
    return canvas


def output_path(output_dir: Union[str, Path], image_name: str, suffix: str = "") -> Path:
    """``<output_dir>/<stem><suffix><ext>`` for an image name."""
    name = Path(image_name)
    return Path(output_dir) / f"{name.stem}{suffix}{name.suffix}"


def write_image(path: Union[str, Path], image: np.ndarray, jpeg_quality: int = 100) -> Path:
    """
    Encode and write an image; JPEG files use ``jpeg_quality``.

    Raises:
        IOError: If OpenCV cannot encode or write the file
    """
    path = Path(path)
    params = []
    if path.suffix.lower() in _JPEG_SUFFIXES:
        params = [cv2.IMWRITE_JPEG_QUALITY, int(jpeg_quality)]
    if not cv2.imwrite(str(path), image, params):
        raise IOError(f"Could not write image: {path}")
    return path


def write_debug_images(
    output_dir: Union[str, Path],
    image_name: str,
    normalized: Dict[str, np.ndarray],
    enhanced: Dict[str, np.ndarray],
    green_cells: Sequence[FilteredCell],
    white_cells: Sequence[FilteredCell],
    debug: bool = True,
    jpeg_quality: int = 100,
) -> List[Path]:
    """
    Write the normalized, enhanced and analyzed renders of one image.

    Args:
        output_dir: Directory to write into (created if missing)
        image_name: Source image file name
        normalized: Normalized 'blue'/'green'/'red' planes
        enhanced: Binary 'blue'/'green'/'red' masks
        green_cells: Filtered GREEN cells
        white_cells: Filtered WHITE cells
        debug: Also write normalized/enhanced renders and suffix the analyzed one
        jpeg_quality: JPEG quality

    Returns:
        Paths written
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []

    if debug:
        written.append(write_image(
            output_path(output_dir, image_name, SUFFIX_NORMALIZED),
            merge_planes(normalized["blue"], normalized["green"], normalized["red"]),
            jpeg_quality,
        ))
        written.append(write_image(
            output_path(output_dir, image_name, SUFFIX_ENHANCED),
            merge_planes(enhanced["blue"], enhanced["green"], enhanced["red"]),
            jpeg_quality,
        ))

    analyzed = render_analyzed(normalized, green_cells, white_cells)
    suffix = SUFFIX_ANALYZED if debug else ""
    written.append(write_image(output_path(output_dir, image_name, suffix), analyzed, jpeg_quality))

    logger.debug(f"Wrote {len(written)} render(s) for {image_name}")
    return written
