"""
Channel enhancement: min-max normalization followed by binary thresholding.

Usage:
    from separation.preprocessing.enhancement import enhance_channel, combine_masks

    green = enhance_channel(image[:, :, 1], ChannelType.GREEN)
    red = enhance_channel(image[:, :, 2], ChannelType.RED)
    blue = enhance_channel(image[:, :, 0], ChannelType.BLUE)
    white_mask = combine_masks(blue.mask, green.mask, red.mask)
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Union

import cv2
import numpy as np

from separation.core.channels import ChannelType, UnsupportedChannelError
from separation.utils.config import ENHANCE_CUTOFFS
from separation.utils.logging import get_logger

logger = get_logger(__name__)


ENHANCE_THRESHOLDS: Dict[ChannelType, int] = {
    ChannelType.parse(name): cutoff for name, cutoff in ENHANCE_CUTOFFS.items()
}

# Sample types cv2.normalize accepts directly
_CV_DTYPES = tuple(np.dtype(t) for t in (
    np.uint8, np.int8, np.uint16, np.int16, np.int32, np.float32, np.float64,
))


@dataclass(frozen=True)
class EnhancedChannel:
    """
    Result of enhancing one channel.

    Attributes:
        channel: Channel that was enhanced
        normalized: uint8 grid rescaled so min -> 0 and max -> 255
        mask: uint8 binary mask with values in {0, 255}
        threshold: Cutoff used for binarization
    """
    channel: ChannelType
    normalized: np.ndarray
    mask: np.ndarray
    threshold: int


def normalize_minmax(grid: np.ndarray) -> np.ndarray:
    """
    Linearly rescale intensities so the observed minimum maps to 0 and the maximum to 255.

    A constant grid maps to all zeros.

    Args:
        grid: 2-D intensity grid (uint8, uint16 or float)

    Returns:
        uint8 array of the same shape
    """
    return cv2.normalize(grid, None, 0, 255, cv2.NORM_MINMAX, dtype=cv2.CV_8UC1)


def _as_single_channel(grid: np.ndarray) -> np.ndarray:
    grid = np.asarray(grid)
    if grid.ndim == 3:
        # Multi-plane input: the first plane is the channel of interest
        grid = grid[:, :, 0]
    if grid.ndim != 2:
        raise ValueError(f"Expected a 2-D pixel grid, got shape {grid.shape}")
    if grid.size == 0:
        raise ValueError("Pixel grid is empty")
    if grid.dtype == np.bool_:
        grid = grid.astype(np.uint8)
    elif grid.dtype not in _CV_DTYPES:
        grid = grid.astype(np.float64)
    return np.ascontiguousarray(grid)


def enhance_channel(
    grid: np.ndarray,
    channel: Union[ChannelType, str],
    thresholds: Optional[Mapping[ChannelType, int]] = None,
) -> EnhancedChannel:
    """
    Normalize one channel and binarize it with the channel's cutoff.

    Pixels strictly above the cutoff become 255, all others 0
    (OpenCV ``THRESH_BINARY`` semantics).

    Args:
        grid: Single-channel pixel grid (H x W)
        channel: BLUE, GREEN or RED (or their names)
        thresholds: Optional per-channel cutoff overrides

    Returns:
        EnhancedChannel with the normalized grid and binary mask

    Raises:
        UnsupportedChannelError: If channel is not BLUE, GREEN or RED
        ValueError: If the grid is empty or not 2-D
    """
    channel = ChannelType.parse(channel)
    cutoffs = dict(ENHANCE_THRESHOLDS)
    if thresholds:
        cutoffs.update({ChannelType.parse(k): int(v) for k, v in thresholds.items()})

    if channel not in ENHANCE_THRESHOLDS:
        raise UnsupportedChannelError(channel, "enhancement")
    threshold = cutoffs[channel]

    grid = _as_single_channel(grid)
    normalized = normalize_minmax(grid)
    _, mask = cv2.threshold(normalized, threshold, 255, cv2.THRESH_BINARY)

    logger.debug(
        f"Enhanced {channel.value}: threshold={threshold}, "
        f"foreground={int(np.count_nonzero(mask))}/{mask.size} px"
    )

    return EnhancedChannel(
        channel=channel,
        normalized=normalized,
        mask=mask,
        threshold=threshold,
    )


def combine_masks(*masks: np.ndarray) -> np.ndarray:
    """
    Logical AND of binary masks (used to derive the WHITE channel mask).

    Args:
        *masks: Two or more uint8 masks of identical shape

    Returns:
        uint8 mask with 255 where every input is nonzero
    """
    if len(masks) < 2:
        raise ValueError("combine_masks needs at least two masks")

    combined = masks[0]
    for mask in masks[1:]:
        if mask.shape != combined.shape:
            raise ValueError(f"Mask shape mismatch: {mask.shape} vs {combined.shape}")
        combined = cv2.bitwise_and(combined, mask)
    return combined
