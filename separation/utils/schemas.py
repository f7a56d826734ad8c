"""
JSON schema validation for the files the pipeline reads and writes.

Uses Pydantic for validation with clear error messages.

Usage:
    from separation.utils.schemas import infer_and_validate, validate_batch_report_file

    report = validate_batch_report_file("/path/to/data/result/batch_results.json")
    print(report.completed, report.failed)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from separation.utils.config import CONFIG_FILENAME


# =============================================================================
# Config Schemas
# =============================================================================

class EnhanceThresholds(BaseModel):
    """Per-channel binarization cutoffs."""
    model_config = ConfigDict(extra="forbid")

    green: int = Field(15, ge=0, le=254)
    red: int = Field(35, ge=0, le=254)
    blue: int = Field(35, ge=0, le=254)


class SeparationConfigFile(BaseModel):
    """Schema for separation_config.json (every key optional)."""
    model_config = ConfigDict(extra="allow")

    enhance_thresholds: Optional[EnhanceThresholds] = None
    min_contour_area: Optional[float] = Field(None, ge=0)
    min_vertices: Optional[int] = Field(None, ge=3)
    min_arc_length: Optional[float] = Field(None, ge=0)
    bin_area: Optional[float] = Field(None, gt=0)
    num_bins: Optional[int] = Field(None, ge=2)
    overlay_seed: Optional[int] = Field(None, ge=0)
    debug_images: Optional[bool] = None
    jpeg_quality: Optional[int] = Field(None, ge=0, le=100)
    num_workers: Optional[int] = Field(None, ge=1)
    image_list: Optional[str] = None
    input_subdir: Optional[str] = None
    output_subdir: Optional[str] = None
    metrics_filename: Optional[str] = None


# =============================================================================
# Batch Report Schemas
# =============================================================================

class ImageReport(BaseModel):
    """One image entry of batch_results.json."""
    name: str
    path: str
    status: Literal["pending", "processing", "completed", "failed", "skipped"]
    stage: Optional[str] = None
    error: Optional[str] = None
    processing_time_seconds: float = Field(0.0, ge=0)

    @model_validator(mode="after")
    def _failed_has_reason(self) -> "ImageReport":
        if self.status == "failed" and not (self.stage and self.error):
            raise ValueError(f"failed image {self.name!r} must name a stage and an error")
        return self


class BatchReport(BaseModel):
    """Schema for batch_results.json."""
    model_config = ConfigDict(extra="allow")

    total_images: int = Field(..., ge=0)
    completed: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    total_time_seconds: float = Field(..., ge=0)
    metrics_path: Optional[str] = None
    images: List[ImageReport] = Field(default_factory=list)
    timestamp: Optional[str] = None

    @model_validator(mode="after")
    def _counts_match(self) -> "BatchReport":
        if len(self.images) != self.total_images:
            raise ValueError(
                f"total_images={self.total_images} but {len(self.images)} image entries"
            )
        completed = sum(1 for img in self.images if img.status == "completed")
        failed = sum(1 for img in self.images if img.status == "failed")
        if completed != self.completed or failed != self.failed:
            raise ValueError("completed/failed counts do not match image statuses")
        return self


# =============================================================================
# Validation Functions
# =============================================================================

def validate_json_file(
    file_path: Union[str, Path],
    schema: type[BaseModel],
    raise_on_error: bool = True
) -> Optional[BaseModel]:
    """
    Validate a JSON file against a schema.

    Args:
        file_path: Path to JSON file
        schema: Pydantic model class to validate against
        raise_on_error: If True, raise exception on validation error

    Returns:
        Validated model instance, or None if validation fails and raise_on_error=False
    """
    file_path = Path(file_path)

    if not file_path.exists():
        if raise_on_error:
            raise FileNotFoundError(f"File not found: {file_path}")
        return None

    try:
        with open(file_path, 'r') as f:
            data = json.load(f)

        return schema.model_validate(data)

    except json.JSONDecodeError as e:
        if raise_on_error:
            raise ValueError(f"Invalid JSON in {file_path}: {e}") from e
        return None

    except Exception as e:
        if raise_on_error:
            raise ValueError(f"Validation failed for {file_path}: {e}") from e
        return None


def validate_config_file(
    file_path: Union[str, Path],
    raise_on_error: bool = True
) -> Optional[SeparationConfigFile]:
    """Validate a separation_config.json file."""
    return validate_json_file(file_path, SeparationConfigFile, raise_on_error)


def validate_batch_report_file(
    file_path: Union[str, Path],
    raise_on_error: bool = True
) -> Optional[BatchReport]:
    """Validate a batch_results.json file."""
    return validate_json_file(file_path, BatchReport, raise_on_error)


def infer_and_validate(
    file_path: Union[str, Path],
    raise_on_error: bool = True
) -> Optional[BaseModel]:
    """
    Infer schema type from filename and validate.

    Files named like the config file (or containing "config") are validated
    as config; everything else as a batch report.
    """
    file_path = Path(file_path)
    name = file_path.name.lower()

    if name == CONFIG_FILENAME or "config" in name:
        return validate_config_file(file_path, raise_on_error)
    return validate_batch_report_file(file_path, raise_on_error)
