"""
Image and batch processing.

Provides:
- analyze_image / process_image_file: three channel runs -> one metrics row
- BatchProcessor: per-image isolated processing of a data directory
"""

from .image import (
    STAGES,
    ChannelResult,
    ImageAnalysis,
    ImageProcessingError,
    analyze_image,
    process_image_file,
)
from .batch import BatchProcessor, BatchResult, ImageResult, read_image_list

__all__ = [
    'STAGES',
    'ChannelResult',
    'ImageAnalysis',
    'ImageProcessingError',
    'analyze_image',
    'process_image_file',
    'BatchProcessor',
    'BatchResult',
    'ImageResult',
    'read_image_list',
]
