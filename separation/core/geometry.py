"""Polygon helpers shared by extraction, filtering and metrics."""

import cv2
import numpy as np


def as_points(contour) -> np.ndarray:
    """
    Coerce a contour to the (N, 1, 2) layout OpenCV expects.

    int32 and float32 inputs keep their type; anything else becomes float32.
    """
    points = np.asarray(contour)
    if points.dtype not in (np.int32, np.float32):
        points = points.astype(np.float32)
    return points.reshape(-1, 1, 2)


def polygon_area(contour) -> float:
    """Unsigned shoelace area of a closed contour (0 for fewer than 3 points)."""
    points = as_points(contour)
    if len(points) < 3:
        return 0.0
    return abs(float(cv2.contourArea(points)))


def arc_length(contour) -> float:
    """Perimeter of the closed point sequence."""
    points = as_points(contour)
    if len(points) < 2:
        return 0.0
    return float(cv2.arcLength(points, True))


def rotated_rect_sides(contour):
    """
    Side lengths (width, height) of the minimal-area bounding rotated rectangle.

    Returns (0.0, 0.0) for an empty contour.
    """
    points = as_points(contour)
    if len(points) == 0:
        return 0.0, 0.0
    (_, _), (width, height), _ = cv2.minAreaRect(points)
    return float(width), float(height)
