"""
Configuration module for the separation metrics pipeline.

Provides centralized defaults and config file loading/saving.

Usage:
    from separation.utils.config import load_config, save_config, DEFAULT_CONFIG

    # Load config with defaults (reads <data_dir>/separation_config.json if present)
    config = load_config('/path/to/data')

    # Override defaults
    config = load_config('/path/to/data', num_workers=4, debug_images=False)

Environment Variables:
    SEPARATION_DATA_DIR: Default data directory for the CLI
"""

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, TypedDict, Union

from separation.utils.json_utils import atomic_json_dump
from separation.utils.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# CONFIGURATION TYPE DEFINITIONS
# =============================================================================

class EnhanceThresholdConfig(TypedDict):
    """
    Binarization cutoffs applied to min-max normalized channels.

    Pixels strictly above the cutoff become 255. Valid range: 0-254.
    """
    green: int
    red: int
    blue: int


class SeparationConfig(TypedDict, total=False):
    """
    Processing configuration.

    Attributes:
        enhance_thresholds: Per-channel cutoffs (see EnhanceThresholdConfig).
        min_contour_area: Minimum net area for a region to be accepted.
            Valid range: 0.0-1e6.
        min_vertices: Minimum contour point count kept by the cell filter.
            Valid range: 3-1000. Five points are needed for a stable rotated rectangle.
        min_arc_length: Minimum closed perimeter kept by the cell filter.
            Valid range: 0.0-1e6.
        bin_area: Width of one area histogram bucket. Valid range: 1-1e6.
        num_bins: Number of histogram buckets, last one open-ended. Valid range: 2-100.
        overlay_seed: Seed for the debug fill colors.
        debug_images: Write normalized/enhanced renders next to the analyzed one.
        jpeg_quality: JPEG quality for written images. Valid range: 0-100.
        num_workers: Images processed concurrently. Valid range: 1-64.
    """
    enhance_thresholds: EnhanceThresholdConfig
    min_contour_area: float
    min_vertices: int
    min_arc_length: float
    bin_area: int
    num_bins: int
    overlay_seed: int
    debug_images: bool
    jpeg_quality: int
    num_workers: int
    image_list: str
    input_subdir: str
    output_subdir: str
    metrics_filename: str


_VALIDATION_RULES: Dict[str, Dict[str, Any]] = {
    "processing": {
        "min_contour_area": {"min": 0.0, "max": 1e6, "type": float},
        "min_vertices": {"min": 3, "max": 1000, "type": int},
        "min_arc_length": {"min": 0.0, "max": 1e6, "type": float},
        "bin_area": {"min": 1, "max": 1e6, "type": (int, float)},
        "num_bins": {"min": 2, "max": 100, "type": int},
        "overlay_seed": {"min": 0, "max": 2**32 - 1, "type": int},
        "jpeg_quality": {"min": 0, "max": 100, "type": int},
        "num_workers": {"min": 1, "max": 64, "type": int},
    },
    "enhance_thresholds": {
        "_all_keys": {"min": 0, "max": 254, "type": int},
    },
}

_STRING_KEYS = ("image_list", "input_subdir", "output_subdir", "metrics_filename")


DEFAULT_PATHS = {
    "data_dir": os.getenv("SEPARATION_DATA_DIR", str(Path.cwd())),
}

CONFIG_FILENAME = "separation_config.json"

# Per-channel binarization cutoffs on the normalized 0-255 scale
ENHANCE_CUTOFFS = {"green": 15, "red": 35, "blue": 35}

# Histogram layout and filter minimums
BIN_AREA = 40
NUM_BINS = 11
MIN_VERTICES = 5
MIN_ARC_LENGTH = 20.0
MIN_CONTOUR_AREA = 1.0
OVERLAY_SEED = 12345


DEFAULT_CONFIG: Dict[str, Any] = {
    # Channel enhancement
    "enhance_thresholds": dict(ENHANCE_CUTOFFS),

    # Contour extraction and filtering
    "min_contour_area": MIN_CONTOUR_AREA,
    "min_vertices": MIN_VERTICES,
    "min_arc_length": MIN_ARC_LENGTH,

    # Area histogram
    "bin_area": BIN_AREA,
    "num_bins": NUM_BINS,

    # Rendering
    "overlay_seed": OVERLAY_SEED,
    "debug_images": True,
    "jpeg_quality": 100,

    # Batch layout
    "num_workers": 1,
    "image_list": "image_list.dat",
    "input_subdir": "original",
    "output_subdir": "result",
    "metrics_filename": "computed_metrics.csv",
}


def get_default_path(key: str) -> str:
    """
    Get a default path from environment or fallback.

    Args:
        key: Path key name (e.g., 'data_dir')

    Returns:
        Path string, empty string if key not found
    """
    return DEFAULT_PATHS.get(key, "")


def get_enhance_threshold(config: Dict[str, Any], channel_name: str) -> int:
    """
    Get the binarization cutoff for a channel from config.

    Args:
        config: Configuration dictionary
        channel_name: Lower-case channel name ('green', 'red', 'blue')

    Returns:
        Threshold value

    Raises:
        KeyError: If the channel has no configured cutoff
    """
    thresholds = config.get("enhance_thresholds", DEFAULT_CONFIG["enhance_thresholds"])
    return int(thresholds[channel_name])


def get_histogram_layout(config: Dict[str, Any]) -> Tuple[float, int]:
    """Return (bin_area, num_bins) from config, falling back to defaults."""
    return (
        config.get("bin_area", BIN_AREA),
        int(config.get("num_bins", NUM_BINS)),
    )


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """
    Recursively merge override dict into base dict (in-place).

    Nested dicts are merged key by key; every other value is deep-copied.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value)


def load_config(
    data_dir: Optional[Union[str, Path]] = None,
    config_path: Optional[Union[str, Path]] = None,
    config_filename: str = CONFIG_FILENAME,
    **overrides
) -> Dict[str, Any]:
    """
    Load configuration for a data directory.

    Merges DEFAULT_CONFIG, then the config file, then keyword overrides.

    Args:
        data_dir: Directory that may contain ``config_filename``
        config_path: Explicit config file (takes precedence over data_dir)
        config_filename: Name of config file inside data_dir
        **overrides: Values applied last (None values are ignored)

    Returns:
        Dict with merged configuration
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path is None and data_dir is not None:
        config_path = Path(data_dir) / config_filename

    if config_path is not None:
        config_path = Path(config_path)
        if config_path.exists():
            try:
                with open(config_path, 'r') as f:
                    file_config = json.load(f)
                _deep_merge(config, file_config)
                logger.debug(f"Loaded config from {config_path}")
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Could not load config from {config_path}: {e}")

    _deep_merge(config, {k: v for k, v in overrides.items() if v is not None})

    return config


def save_config(
    data_dir: Union[str, Path],
    config: Dict[str, Any],
    config_filename: str = CONFIG_FILENAME
) -> Path:
    """
    Save configuration to a directory.

    Args:
        data_dir: Target directory (created if missing)
        config: Configuration dict to save
        config_filename: Name of config file

    Returns:
        Path to saved config file
    """
    return atomic_json_dump(config, Path(data_dir) / config_filename, indent=2)


# =============================================================================
# CONFIGURATION VALIDATION
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


def _validate_range(
    value: Union[int, float],
    key: str,
    min_val: Union[int, float],
    max_val: Union[int, float],
    expected_type: Union[type, Tuple[type, ...]]
) -> List[str]:
    """
    Validate a single value is within expected range and type.

    Returns:
        List of error messages (empty if valid)
    """
    errors = []

    if isinstance(value, bool):
        errors.append(f"{key}: expected numeric type, got bool")
        return errors

    if expected_type == float:
        if not isinstance(value, (int, float)):
            errors.append(f"{key}: expected numeric type, got {type(value).__name__}")
            return errors
    elif isinstance(expected_type, tuple):
        if not isinstance(value, expected_type):
            type_names = "/".join(t.__name__ for t in expected_type)
            errors.append(f"{key}: expected {type_names}, got {type(value).__name__}")
            return errors
    else:
        if not isinstance(value, expected_type):
            errors.append(f"{key}: expected {expected_type.__name__}, got {type(value).__name__}")
            return errors

    if value < min_val or value > max_val:
        errors.append(f"{key}: value {value} out of range [{min_val}, {max_val}]")

    return errors


def _validate_thresholds(thresholds: Any, key: str = "enhance_thresholds") -> List[str]:
    """Validate the per-channel cutoff mapping."""
    if not isinstance(thresholds, dict):
        return [f"{key}: expected dict, got {type(thresholds).__name__}"]

    errors = []
    rule = _VALIDATION_RULES["enhance_thresholds"]["_all_keys"]
    for name in ("green", "red", "blue"):
        if name not in thresholds:
            errors.append(f"{key}.{name}: missing")
            continue
        errors.extend(_validate_range(
            thresholds[name], f"{key}.{name}",
            rule["min"], rule["max"], rule["type"]
        ))
    return errors


def validate_config(
    config: Optional[Dict[str, Any]] = None,
    raise_on_error: bool = False
) -> Dict[str, Union[bool, List[str]]]:
    """
    Validate a configuration dictionary against expected types and ranges.

    Args:
        config: Config dict (like DEFAULT_CONFIG). If None, validates DEFAULT_CONFIG.
        raise_on_error: If True, raises ConfigValidationError listing all errors.

    Returns:
        Dict with validation results:
            - 'valid': bool, True if all validations passed
            - 'errors': List of error message strings
            - 'warnings': List of warning message strings

    Raises:
        ConfigValidationError: If raise_on_error=True and validation fails

    Example:
        >>> result = validate_config({"num_bins": 1})
        >>> result['errors']
        ['num_bins: value 1 out of range [2, 100]']
    """
    errors: List[str] = []
    warnings: List[str] = []

    if config is None:
        config = DEFAULT_CONFIG

    for key, rule in _VALIDATION_RULES["processing"].items():
        if key in config:
            errors.extend(_validate_range(
                config[key], key,
                rule["min"], rule["max"], rule["type"]
            ))

    if "enhance_thresholds" in config:
        errors.extend(_validate_thresholds(config["enhance_thresholds"]))

    if "debug_images" in config and not isinstance(config["debug_images"], bool):
        errors.append(f"debug_images: expected bool, got {type(config['debug_images']).__name__}")

    for key in _STRING_KEYS:
        if key in config and not (isinstance(config[key], str) and config[key]):
            errors.append(f"{key}: expected non-empty string")

    known = set(DEFAULT_CONFIG)
    for key in config:
        if key not in known:
            warnings.append(f"{key}: unknown configuration key (ignored)")

    if raise_on_error and errors:
        raise ConfigValidationError("; ".join(errors))

    return {
        "valid": not errors,
        "errors": errors,
        "warnings": warnings,
    }
