"""
Per-image processing: three channel runs combined into one metrics row.

GREEN and RED are measured directly from their own planes; WHITE is the AND
of the enhanced BLUE, GREEN and RED masks. Records are reported in the order
GREEN, RED, WHITE.

Usage:
    from separation.processing.image import analyze_image, process_image_file

    analysis = analyze_image(bgr_image, image_name="slide_01.tif")
    print(analysis.row[:4])

    # Load, analyze and write renders into result/
    analysis = process_image_file("data/original/slide_01.tif", output_dir="data/result")
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from separation.core.channels import ChannelType, REPORTED_CHANNELS
from separation.detection.contours import ContourExtraction, extract_contours
from separation.detection.filtering import FilteredCell, filter_extraction
from separation.io.debug_images import write_debug_images
from separation.io.image_loader import load_image, split_channels
from separation.preprocessing.enhancement import EnhancedChannel, combine_masks, enhance_channel
from separation.reporting.metrics import MetricsRecord, compute_separation_metrics, image_row
from separation.utils.config import DEFAULT_CONFIG, get_histogram_layout
from separation.utils.logging import get_logger, log_context

logger = get_logger(__name__)


STAGES = ("load", "enhance", "extract", "filter", "metrics", "render")


class ImageProcessingError(RuntimeError):
    """
    Raised when one image fails; names the image and the failing stage.

    Attributes:
        image_name: Image being processed
        stage: One of STAGES
        reason: Message of the underlying error
    """

    def __init__(self, image_name: str, stage: str, reason: str):
        self.image_name = image_name
        self.stage = stage
        self.reason = reason
        super().__init__(f"{image_name}: {stage} failed: {reason}")


@contextmanager
def _stage(image_name: str, stage: str):
    try:
        with log_context(image=image_name, stage=stage):
            yield
    except ImageProcessingError:
        raise
    except Exception as e:
        raise ImageProcessingError(image_name, stage, str(e) or type(e).__name__) from e


@dataclass
class ChannelResult:
    """Extraction, filtered cells and metrics of one reported channel."""
    channel: ChannelType
    extraction: ContourExtraction
    cells: List[FilteredCell]
    record: MetricsRecord


@dataclass
class ImageAnalysis:
    """
    Everything computed for one image.

    Attributes:
        image_name: Identifier written in the first CSV field
        enhanced: EnhancedChannel for BLUE, GREEN and RED
        white_mask: AND of the three enhanced masks
        channels: ChannelResult for GREEN, RED and WHITE
    """
    image_name: str
    enhanced: Dict[ChannelType, EnhancedChannel]
    white_mask: np.ndarray
    channels: Dict[ChannelType, ChannelResult] = field(default_factory=dict)

    @property
    def records(self) -> List[MetricsRecord]:
        return [self.channels[c].record for c in REPORTED_CHANNELS]

    @property
    def row(self) -> List[str]:
        return image_row(self.image_name, self.records)

    @property
    def normalized_planes(self) -> Dict[str, np.ndarray]:
        return {c.value: e.normalized for c, e in self.enhanced.items()}

    @property
    def mask_planes(self) -> Dict[str, np.ndarray]:
        return {c.value: e.mask for c, e in self.enhanced.items()}

    def cells(self, channel: ChannelType) -> List[FilteredCell]:
        return self.channels[channel].cells

    def to_dict(self) -> Dict[str, Any]:
        return {
            "image_name": self.image_name,
            "channels": {
                c.value: self.channels[c].record.to_dict() for c in REPORTED_CHANNELS
            },
        }


def _thresholds_from_config(config: Dict[str, Any]) -> Dict[ChannelType, int]:
    thresholds = config.get("enhance_thresholds", DEFAULT_CONFIG["enhance_thresholds"])
    return {ChannelType.parse(name): int(value) for name, value in thresholds.items()}


def analyze_image(
    image: np.ndarray,
    image_name: str = "",
    config: Optional[Dict[str, Any]] = None,
    render_canvas: bool = False,
) -> ImageAnalysis:
    """
    Compute the three channel records of a decoded BGR image.

    Args:
        image: (H, W, 3) BGR array
        image_name: Identifier for the row and error messages
        config: Processing config (defaults from DEFAULT_CONFIG)
        render_canvas: Also build each extraction's debug fill canvas

    Returns:
        ImageAnalysis

    Raises:
        ImageProcessingError: If any stage fails
    """
    config = DEFAULT_CONFIG if config is None else config
    min_area = float(config.get("min_contour_area", DEFAULT_CONFIG["min_contour_area"]))
    min_vertices = int(config.get("min_vertices", DEFAULT_CONFIG["min_vertices"]))
    min_arc_length = float(config.get("min_arc_length", DEFAULT_CONFIG["min_arc_length"]))
    seed = int(config.get("overlay_seed", DEFAULT_CONFIG["overlay_seed"]))
    bin_area, num_bins = get_histogram_layout(config)

    with _stage(image_name, "enhance"):
        if image is None or np.asarray(image).size == 0:
            raise ValueError("empty pixel grid")
        thresholds = _thresholds_from_config(config)
        blue, green, red = split_channels(image)
        enhanced = {
            ChannelType.BLUE: enhance_channel(blue, ChannelType.BLUE, thresholds),
            ChannelType.GREEN: enhance_channel(green, ChannelType.GREEN, thresholds),
            ChannelType.RED: enhance_channel(red, ChannelType.RED, thresholds),
        }
        white_mask = combine_masks(
            enhanced[ChannelType.BLUE].mask,
            enhanced[ChannelType.GREEN].mask,
            enhanced[ChannelType.RED].mask,
        )

    analysis = ImageAnalysis(image_name=image_name, enhanced=enhanced, white_mask=white_mask)
    masks = {
        ChannelType.GREEN: enhanced[ChannelType.GREEN].mask,
        ChannelType.RED: enhanced[ChannelType.RED].mask,
        ChannelType.WHITE: white_mask,
    }

    for channel in REPORTED_CHANNELS:
        with _stage(image_name, "extract"):
            extraction = extract_contours(
                masks[channel], channel, min_area=min_area, render=render_canvas, seed=seed,
            )
        with _stage(image_name, "filter"):
            cells = filter_extraction(extraction, min_vertices, min_arc_length)
        with _stage(image_name, "metrics"):
            record = compute_separation_metrics(cells, bin_area, num_bins)
            logger.debug(f"{channel.value}: {record.to_csv()}")

        analysis.channels[channel] = ChannelResult(
            channel=channel, extraction=extraction, cells=cells, record=record,
        )

    return analysis


def process_image_file(
    path: Union[str, Path],
    output_dir: Optional[Union[str, Path]] = None,
    config: Optional[Dict[str, Any]] = None,
    image_name: Optional[str] = None,
) -> ImageAnalysis:
    """
    Load an image file, analyze it and optionally write its renders.

    Args:
        path: Image file
        output_dir: Where renders go; None skips rendering
        config: Processing config
        image_name: Row identifier (defaults to the file name)

    Returns:
        ImageAnalysis

    Raises:
        ImageProcessingError: If any stage fails
    """
    config = DEFAULT_CONFIG if config is None else config
    path = Path(path)
    image_name = image_name or path.name

    with _stage(image_name, "load"):
        image = load_image(path)

    analysis = analyze_image(image, image_name=image_name, config=config)

    if output_dir is not None:
        with _stage(image_name, "render"):
            write_debug_images(
                output_dir,
                image_name,
                normalized=analysis.normalized_planes,
                enhanced=analysis.mask_planes,
                green_cells=analysis.cells(ChannelType.GREEN),
                white_cells=analysis.cells(ChannelType.WHITE),
                debug=bool(config.get("debug_images", True)),
                jpeg_quality=int(config.get("jpeg_quality", 100)),
            )

    return analysis
