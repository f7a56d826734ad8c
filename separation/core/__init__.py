"""Channel tags, contour classification and polygon helpers."""

from .channels import (
    ChannelType,
    HierarchyType,
    UnsupportedChannelError,
    REPORTED_CHANNELS,
)
from .geometry import as_points, polygon_area, arc_length, rotated_rect_sides

__all__ = [
    'ChannelType',
    'HierarchyType',
    'UnsupportedChannelError',
    'REPORTED_CHANNELS',
    'as_points',
    'polygon_area',
    'arc_length',
    'rotated_rect_sides',
]
