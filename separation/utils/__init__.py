"""
Utility modules for the separation pipeline.

Provides:
- Configuration management
- Logging utilities
- JSON helpers
- JSON schema validation (pydantic)
"""

from .config import (
    DEFAULT_CONFIG,
    DEFAULT_PATHS,
    ConfigValidationError,
    load_config,
    save_config,
    validate_config,
    get_default_path,
    get_enhance_threshold,
    get_histogram_layout,
)

from .logging import (
    get_logger,
    setup_logging,
    log_context,
    log_parameters,
    format_duration,
    ProcessingTimer,
)

from .json_utils import atomic_json_dump, to_json_value

from .schemas import BatchReport, SeparationConfigFile, infer_and_validate

__all__ = [
    # Config
    'DEFAULT_CONFIG',
    'DEFAULT_PATHS',
    'ConfigValidationError',
    'load_config',
    'save_config',
    'validate_config',
    'get_default_path',
    'get_enhance_threshold',
    'get_histogram_layout',
    # Logging
    'get_logger',
    'setup_logging',
    'log_context',
    'log_parameters',
    'format_duration',
    'ProcessingTimer',
    # JSON
    'atomic_json_dump',
    'to_json_value',
    # Schemas
    'BatchReport',
    'SeparationConfigFile',
    'infer_and_validate',
]
