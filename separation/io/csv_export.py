"""
Metrics CSV writing.

The file has one header line (43 labels) and one line per completed image.
Field order and count are fixed for downstream consumers. Image names are
quoted by the csv module when they contain a comma or a quote, so every
data line still reads back as exactly 43 fields.
"""

import csv
import io
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from separation.reporting.metrics import metrics_header
from separation.utils.config import BIN_AREA, NUM_BINS
from separation.utils.logging import get_logger

logger = get_logger(__name__)


def header_line(bin_area: float = BIN_AREA, num_bins: int = NUM_BINS) -> str:
    """The header as one CSV line, without the line terminator."""
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(
        metrics_header(bin_area=bin_area, num_bins=num_bins)
    )
    return buffer.getvalue().rstrip("\n")


def write_metrics_csv(
    path: Union[str, Path],
    rows: Iterable[Sequence[str]],
    bin_area: float = BIN_AREA,
    num_bins: int = NUM_BINS,
) -> Path:
    """
    Write the header followed by the given rows.

    Args:
        path: Output CSV path (parent created if missing)
        rows: Image rows as field lists (name first, then the channel fields)
        bin_area: Histogram bucket width used in the labels
        num_bins: Histogram bucket count used in the labels

    Returns:
        Path to the written file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with open(path, 'w', newline='') as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(metrics_header(bin_area=bin_area, num_bins=num_bins))
        for row in rows:
            writer.writerow(row)
            count += 1

    logger.info(f"Metrics for {count} image(s) saved to: {path}")
    return path


def read_metrics_csv(path: Union[str, Path]) -> List[List[str]]:
    """Read a metrics CSV back as lists of fields (header included)."""
    with open(path, newline='') as f:
        return [row for row in csv.reader(f) if row]


def expected_field_count(num_channels: int = 3, num_bins: Optional[int] = None) -> int:
    """1 name field plus (3 + num_bins) fields per channel."""
    num_bins = NUM_BINS if num_bins is None else num_bins
    return 1 + num_channels * (3 + num_bins)
