"""
Channel preprocessing.

Provides:
- enhance_channel: min-max normalization + per-channel binary threshold
- combine_masks: AND of enhanced masks (WHITE channel)
"""

from .enhancement import (
    ENHANCE_THRESHOLDS,
    EnhancedChannel,
    combine_masks,
    enhance_channel,
    normalize_minmax,
)

__all__ = [
    'ENHANCE_THRESHOLDS',
    'EnhancedChannel',
    'combine_masks',
    'enhance_channel',
    'normalize_minmax',
]
