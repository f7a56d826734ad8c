"""
Separation metrics: count, diameter sum, aspect-ratio sum and area histogram.

One MetricsRecord is produced per channel of an image and serialized as 14
comma-separated fields::

    <count>,<diameter_sum>,<aspect_ratio_sum>,<bin0>,...,<bin10>

Diameters and aspect ratios are accumulated as sums. The CSV column labels
say "(mean)" for compatibility with existing consumers of the file.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Union

import numpy as np

from separation.core.channels import ChannelType, REPORTED_CHANNELS
from separation.core.geometry import polygon_area, rotated_rect_sides
from separation.detection.filtering import FilteredCell
from separation.utils.config import BIN_AREA, NUM_BINS
from separation.utils.logging import get_logger

logger = get_logger(__name__)


def format_number(value: float) -> str:
    """Six-decimal text with trailing zeros (and a trailing point) stripped."""
    text = f"{float(value):.6f}".rstrip("0").rstrip(".")
    if text in ("", "-0"):
        return "0"
    return text


def aspect_ratio(contour) -> float:
    """
    Short side over long side of the minimal-area rotated rectangle.

    In (0, 1] for a non-degenerate rectangle; 0 when either side is zero.
    """
    width, height = rotated_rect_sides(contour)
    short_side, long_side = sorted((width, height))
    if short_side <= 0 or long_side <= 0:
        return 0.0
    return min(short_side / long_side, 1.0)


def equivalent_diameter(area: float) -> float:
    """Diameter of the circle with the given area."""
    if area <= 0:
        return 0.0
    return float(2.0 * np.sqrt(area / np.pi))


def area_bin_index(area: float, bin_area: float = BIN_AREA, num_bins: int = NUM_BINS) -> int:
    """floor(area / bin_area), clamped to [0, num_bins - 1]."""
    if area <= 0:
        return 0
    return int(min(area // bin_area, num_bins - 1))


@dataclass
class MetricsRecord:
    """
    Aggregated statistics of one channel's filtered cells.

    Attributes:
        count: Number of cells
        diameter_sum: Sum of equivalent-circle diameters
        aspect_ratio_sum: Sum of rotated-rectangle aspect ratios
        histogram: Cell count per area bucket, last bucket open-ended
    """
    count: int = 0
    diameter_sum: float = 0.0
    aspect_ratio_sum: float = 0.0
    histogram: List[int] = field(default_factory=lambda: [0] * NUM_BINS)

    @classmethod
    def empty(cls, num_bins: int = NUM_BINS) -> "MetricsRecord":
        return cls(histogram=[0] * num_bins)

    @property
    def fields(self) -> List[str]:
        return [
            str(self.count),
            format_number(self.diameter_sum),
            format_number(self.aspect_ratio_sum),
        ] + [str(n) for n in self.histogram]

    def to_csv(self) -> str:
        return ",".join(self.fields)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "diameter_sum": self.diameter_sum,
            "aspect_ratio_sum": self.aspect_ratio_sum,
            "histogram": list(self.histogram),
        }

    def __str__(self) -> str:
        return self.to_csv()


def _contour_of(cell: Union[FilteredCell, np.ndarray]) -> np.ndarray:
    return cell.contour if isinstance(cell, FilteredCell) else cell


def compute_separation_metrics(
    cells: Iterable[Union[FilteredCell, np.ndarray]],
    bin_area: float = BIN_AREA,
    num_bins: int = NUM_BINS,
) -> MetricsRecord:
    """
    Reduce filtered cells to a MetricsRecord.

    Each contour's own polygon area drives its diameter and histogram bucket.

    Args:
        cells: FilteredCell objects or raw contours
        bin_area: Width of a histogram bucket
        num_bins: Number of buckets

    Returns:
        MetricsRecord
    """
    record = MetricsRecord.empty(num_bins)

    for cell in cells:
        contour = _contour_of(cell)
        area = polygon_area(contour)

        record.count += 1
        record.aspect_ratio_sum += aspect_ratio(contour)
        record.diameter_sum += equivalent_diameter(area)
        record.histogram[area_bin_index(area, bin_area, num_bins)] += 1

    return record


def channel_header(
    channel: Union[ChannelType, str],
    bin_area: float = BIN_AREA,
    num_bins: int = NUM_BINS,
) -> List[str]:
    """Column labels of one channel's 14 fields."""
    label = ChannelType.parse(channel).label
    columns = [
        f"{label}_Contour_Count",
        f"{label}_Contour_Diameter_(mean)",
        f"{label}_Contour_Aspect_Ratio_(mean)",
    ]
    for i in range(num_bins - 1):
        low = format_number(i * bin_area)
        high = format_number((i + 1) * bin_area)
        columns.append(f"{low} <= {label}_Contour_Area < {high}")
    columns.append(f"{label}_Contour_Area >= {format_number((num_bins - 1) * bin_area)}")
    return columns


def metrics_header(
    channels: Sequence[ChannelType] = REPORTED_CHANNELS,
    bin_area: float = BIN_AREA,
    num_bins: int = NUM_BINS,
) -> List[str]:
    """Full CSV header: image name followed by each channel's columns."""
    columns = ["Image_Name"]
    for channel in channels:
        columns.extend(channel_header(channel, bin_area, num_bins))
    return columns


def image_row(image_name: str, records: Sequence[MetricsRecord]) -> List[str]:
    """One CSV row as fields: image name then each record's 14 fields in order."""
    row = [image_name]
    for record in records:
        row.extend(record.fields)
    return row
