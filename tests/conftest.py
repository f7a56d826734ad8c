"""
Pytest fixtures for separation tests.

Provides synthetic pixel grids, binary masks, hand-built contours and a
temporary data directory laid out the way the batch processor expects.
"""

import pytest
import numpy as np
import cv2


IMAGE_HEIGHT = 120
IMAGE_WIDTH = 160


def make_circle_contour(center=(50.0, 50.0), radius=10.0, num_points=64):
    """Regular polygon approximating a circle, as an (N, 1, 2) float32 contour."""
    angles = np.linspace(0, 2 * np.pi, num_points, endpoint=False)
    points = np.stack([
        center[0] + radius * np.cos(angles),
        center[1] + radius * np.sin(angles),
    ], axis=1)
    return points.astype(np.float32).reshape(-1, 1, 2)


def make_rect_contour(x, y, width, height):
    """Four-corner int32 contour of an axis-aligned rectangle."""
    points = np.array([
        [x, y], [x + width, y], [x + width, y + height], [x, y + height],
    ], dtype=np.int32)
    return points.reshape(-1, 1, 2)


@pytest.fixture
def circle_contour():
    """
    64-point polygon of radius 10.

    Area is about 313.6, so it lands in area bucket 7 with an equivalent
    diameter just under 20.

    Returns:
        np.ndarray: (64, 1, 2) float32 contour
    """
    return make_circle_contour()


@pytest.fixture
def square_contour():
    """
    4-point 10x10 square (area 100): large enough, but too few points for the cell filter.

    Returns:
        np.ndarray: (4, 1, 2) int32 contour
    """
    return make_rect_contour(0, 0, 10, 10)


@pytest.fixture
def disk_mask():
    """
    100x100 mask with one filled disk of radius 15 at the center.

    Returns:
        np.ndarray: uint8 mask with values in {0, 255}
    """
    mask = np.zeros((100, 100), dtype=np.uint8)
    cv2.circle(mask, (50, 50), 15, 255, thickness=-1)
    return mask


@pytest.fixture
def ring_mask():
    """
    100x100 mask with a ring: outer radius 20, hole radius 8.

    Returns:
        np.ndarray: uint8 mask with values in {0, 255}
    """
    mask = np.zeros((100, 100), dtype=np.uint8)
    cv2.circle(mask, (50, 50), 20, 255, thickness=-1)
    cv2.circle(mask, (50, 50), 8, 0, thickness=-1)
    return mask


@pytest.fixture
def empty_mask():
    """
    Empty mask for testing edge cases.

    Returns:
        np.ndarray: 100x100 uint8 array of zeros
    """
    return np.zeros((100, 100), dtype=np.uint8)


@pytest.fixture
def synthetic_bgr():
    """
    120x160 BGR image with three separated disks on a black background.

    - green disk (radius 15) at (40, 40): green plane only
    - red disk (radius 15) at (110, 40): red plane only
    - white disk (radius 18) at (80, 90): all three planes

    After enhancement GREEN and RED each see two regions (their own disk
    plus the white one) and WHITE sees only the white disk.

    Returns:
        np.ndarray: uint8 (120, 160, 3) array
    """
    image = np.zeros((IMAGE_HEIGHT, IMAGE_WIDTH, 3), dtype=np.uint8)
    cv2.circle(image, (40, 40), 15, (0, 200, 0), thickness=-1)
    cv2.circle(image, (110, 40), 15, (0, 0, 200), thickness=-1)
    cv2.circle(image, (80, 90), 18, (255, 255, 255), thickness=-1)
    return image


@pytest.fixture
def data_dir(tmp_path, synthetic_bgr):
    """
    Data directory with an image list and two readable images.

    Layout:
        image_list.dat      slide_01.png, slide_02.png
        original/           both images

    Yields:
        Path: Path to the data directory
    """
    original = tmp_path / "original"
    original.mkdir()
    cv2.imwrite(str(original / "slide_01.png"), synthetic_bgr)
    cv2.imwrite(str(original / "slide_02.png"), np.ascontiguousarray(synthetic_bgr[:, ::-1]))
    (tmp_path / "image_list.dat").write_text("slide_01.png\nslide_02.png\n")
    yield tmp_path


@pytest.fixture
def data_dir_with_failures(data_dir):
    """
    Data directory whose list also names an undecodable and a missing image.

    List order: slide_01.png, corrupt.png, missing.png, slide_02.png

    Yields:
        Path: Path to the data directory
    """
    (data_dir / "original" / "corrupt.png").write_bytes(b"not an image at all")
    (data_dir / "image_list.dat").write_text(
        "slide_01.png\ncorrupt.png\nmissing.png\nslide_02.png\n"
    )
    yield data_dir
