"""
Image decoding into BGR pixel grids.

OpenCV handles the common formats (keeping 16-bit depth where present);
files it cannot decode are retried with Pillow.
"""

from pathlib import Path
from typing import Union

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from separation.utils.logging import get_logger

logger = get_logger(__name__)


class ImageLoadError(IOError):
    """Raised when an image file is missing or cannot be decoded."""
    pass


def _load_with_pillow(path: Path) -> np.ndarray:
    try:
        with Image.open(path) as pil_image:
            rgb = np.array(pil_image.convert('RGB'))
    except (UnidentifiedImageError, OSError) as e:
        raise ImageLoadError(f"Could not decode image {path}: {e}") from e
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def to_bgr(image: np.ndarray) -> np.ndarray:
    """Expand grayscale to three planes and drop any alpha plane."""
    if image.ndim == 2:
        return cv2.merge([image, image, image])
    if image.ndim == 3 and image.shape[2] == 4:
        return np.ascontiguousarray(image[:, :, :3])
    if image.ndim == 3 and image.shape[2] == 1:
        return cv2.merge([image[:, :, 0]] * 3)
    return image


def load_image(path: Union[str, Path]) -> np.ndarray:
    """
    Read an image file as an (H, W, 3) BGR array.

    Args:
        path: Image file path

    Returns:
        BGR array (uint8 or uint16)

    Raises:
        ImageLoadError: If the file is missing, undecodable or empty
    """
    path = Path(path)
    if not path.is_file():
        raise ImageLoadError(f"Image not found: {path}")

    image = cv2.imread(str(path), cv2.IMREAD_COLOR | cv2.IMREAD_ANYDEPTH)
    if image is None:
        logger.debug(f"OpenCV could not decode {path.name}, trying Pillow")
        image = _load_with_pillow(path)

    if image is None or image.size == 0:
        raise ImageLoadError(f"Invalid input file: {path}")

    return to_bgr(image)


def split_channels(image: np.ndarray):
    """Return the (blue, green, red) planes of a BGR image."""
    image = to_bgr(np.asarray(image))
    if image.ndim != 3 or image.shape[2] < 3:
        raise ValueError(f"Expected a 3-plane BGR image, got shape {image.shape}")
    blue, green, red = cv2.split(np.ascontiguousarray(image[:, :, :3]))
    return blue, green, red
