"""
Batch processing of an image set.

Expected data directory layout::

    <data_dir>/
        image_list.dat          # one image name per line
        original/<image>        # input images
        result/                 # renders + batch_results.json (created)
        computed_metrics.csv    # header + one row per completed image (created)

Every image is processed in isolation: a failure is recorded on its
ImageResult (with the failing stage) and the batch moves on. Rows are written
only for completed images, in image-list order.

Usage:
    from separation.processing.batch import BatchProcessor

    processor = BatchProcessor("/path/to/data", num_workers=4)
    result = processor.run()
    for failure in result.failures:
        print(failure.name, failure.stage, failure.error)
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from tqdm import tqdm

from separation.io.csv_export import write_metrics_csv
from separation.processing.image import ImageProcessingError, process_image_file
from separation.utils.config import get_histogram_layout, load_config, validate_config
from separation.utils.json_utils import atomic_json_dump
from separation.utils.logging import format_duration, get_logger, log_context, log_parameters

logger = get_logger(__name__)


@dataclass
class ImageResult:
    """Outcome of one image."""
    name: str
    path: Path
    status: str = "pending"  # pending, processing, completed, failed, skipped
    stage: Optional[str] = None
    error: Optional[str] = None
    row: Optional[List[str]] = None
    processing_time_seconds: float = 0.0

    @classmethod
    def from_name(cls, name: str, input_dir: Union[str, Path]) -> "ImageResult":
        return cls(name=name, path=Path(input_dir) / name)

    @property
    def ok(self) -> bool:
        return self.status == "completed"

    def reset(self, status: str = "pending") -> None:
        """Clear the outcome of an earlier attempt."""
        self.status = status
        self.stage = None
        self.error = None
        self.row = None
        self.processing_time_seconds = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": str(self.path),
            "status": self.status,
            "stage": self.stage,
            "error": self.error,
            "processing_time_seconds": self.processing_time_seconds,
        }


def read_image_list(list_path: Union[str, Path]) -> List[str]:
    """
    Read image names, one per line. Blank lines and '#' comments are skipped.

    Raises:
        FileNotFoundError: If the list file does not exist
    """
    list_path = Path(list_path)
    if not list_path.is_file():
        raise FileNotFoundError(f"Image list not found: {list_path}")

    names = []
    with open(list_path, 'r') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#'):
                names.append(line)
    return names


@dataclass
class BatchResult:
    """Results from batch processing."""
    total_images: int
    completed: int
    failed: int
    total_time_seconds: float
    images: List[ImageResult]
    output_dir: Path
    metrics_path: Optional[Path] = None

    @property
    def failures(self) -> List[ImageResult]:
        return [img for img in self.images if img.status == "failed"]

    @property
    def rows(self) -> List[List[str]]:
        return [img.row for img in self.images if img.ok]

    @property
    def all_completed(self) -> bool:
        return self.completed == self.total_images

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_images": self.total_images,
            "completed": self.completed,
            "failed": self.failed,
            "total_time_seconds": self.total_time_seconds,
            "metrics_path": str(self.metrics_path) if self.metrics_path else None,
            "images": [img.to_dict() for img in self.images],
            "timestamp": datetime.now().isoformat(),
        }

    def save(self, path: Optional[Union[str, Path]] = None) -> Path:
        """Save batch results to JSON."""
        if path is None:
            path = self.output_dir / "batch_results.json"
        path = atomic_json_dump(self.to_dict(), path, indent=2)
        logger.info(f"Batch results saved to: {path}")
        return path


class BatchProcessor:
    """
    Process every image listed in a data directory.

    Images run sequentially by default, or on a thread pool when
    ``num_workers`` > 1. Each image only touches its own state; the CSV and
    report are written once all images are done.
    """

    def __init__(
        self,
        data_dir: Union[str, Path],
        config: Optional[Dict[str, Any]] = None,
        num_workers: Optional[int] = None,
        write_renders: bool = True,
    ):
        """
        Initialize batch processor.

        Args:
            data_dir: Directory holding the image list and input images
            config: Processing config (default: load_config(data_dir))
            num_workers: Concurrent images (default from config)
            write_renders: Write debug/analyzed images into the output directory
        """
        self.data_dir = Path(data_dir)
        self.config = load_config(self.data_dir) if config is None else config
        validate_config(self.config, raise_on_error=True)

        if num_workers is None:
            num_workers = int(self.config.get("num_workers", 1))
        self.num_workers = max(1, num_workers)
        self.write_renders = write_renders

        self.list_path = self.data_dir / self.config["image_list"]
        self.input_dir = self.data_dir / self.config["input_subdir"]
        self.output_dir = self.data_dir / self.config["output_subdir"]
        self.metrics_path = self.data_dir / self.config["metrics_filename"]

        self.images = [
            ImageResult.from_name(name, self.input_dir)
            for name in read_image_list(self.list_path)
        ]

        logger.info("BatchProcessor initialized:")
        logger.info(f"  Images: {len(self.images)}")
        logger.info(f"  Input: {self.input_dir}")
        logger.info(f"  Output: {self.output_dir}")

    def _process_one(self, image: ImageResult) -> ImageResult:
        image.reset(status="processing")
        start = time.time()
        try:
            with log_context(image=image.name):
                analysis = process_image_file(
                    image.path,
                    output_dir=self.output_dir if self.write_renders else None,
                    config=self.config,
                    image_name=image.name,
                )
            image.row = analysis.row
            image.status = "completed"
        except ImageProcessingError as e:
            image.status = "failed"
            image.stage = e.stage
            image.error = e.reason
        image.processing_time_seconds = time.time() - start
        return image

    def _report(self, image: ImageResult) -> None:
        if image.status == "skipped":
            logger.info(f"  Skipped: {image.name} (finished after the batch was aborted)")
        elif image.ok:
            logger.info(f"  Completed: {image.name} in {image.processing_time_seconds:.2f}s")
        else:
            logger.error(f"  Failed: {image.name} at stage '{image.stage}': {image.error}")

    def run(self, continue_on_error: bool = True, progress: bool = True) -> BatchResult:
        """
        Run batch processing.

        Args:
            continue_on_error: Keep going past failed images. When False the
                batch aborts on the first failure: images not yet finished
                are marked skipped and the ImageProcessingError is raised
                once results are saved. With several workers, images that
                were already running finish but their results are discarded
                (also skipped), so no row is written for work completed
                after the abort.
            progress: Show a tqdm progress bar

        Returns:
            BatchResult with processing summary
        """
        start_time = time.time()
        bin_area, num_bins = get_histogram_layout(self.config)

        log_parameters(logger, {
            "images": len(self.images),
            "num_workers": self.num_workers,
            "enhance_thresholds": self.config["enhance_thresholds"],
            "min_contour_area": self.config["min_contour_area"],
            "min_vertices": self.config["min_vertices"],
            "min_arc_length": self.config["min_arc_length"],
            "bin_area": bin_area,
            "num_bins": num_bins,
            "debug_images": self.config["debug_images"],
            "continue_on_error": continue_on_error,
        }, title="Separation Metrics Parameters")

        for image in self.images:
            image.reset()

        bar = tqdm(total=len(self.images), desc="Images", disable=not progress)
        first_failure: Optional[ImageResult] = None

        if self.num_workers <= 1 or len(self.images) <= 1:
            for image in self.images:
                self._report(self._process_one(image))
                bar.update(1)
                if not image.ok and not continue_on_error:
                    first_failure = image
                    break
        else:
            with ThreadPoolExecutor(max_workers=self.num_workers) as executor:
                futures = {executor.submit(self._process_one, image): image for image in self.images}
                for future in as_completed(futures):
                    if future.cancelled():
                        continue
                    image = future.result()
                    if first_failure is not None:
                        image.reset(status="skipped")
                    self._report(image)
                    bar.update(1)
                    if not image.ok and not continue_on_error and first_failure is None:
                        first_failure = image
                        for pending in futures:
                            pending.cancel()
        bar.close()

        for image in self.images:
            if image.status == "pending":
                image.status = "skipped"

        completed = sum(1 for img in self.images if img.ok)
        failed = sum(1 for img in self.images if img.status == "failed")

        result = BatchResult(
            total_images=len(self.images),
            completed=completed,
            failed=failed,
            total_time_seconds=time.time() - start_time,
            images=self.images,
            output_dir=self.output_dir,
        )
        result.metrics_path = write_metrics_csv(self.metrics_path, result.rows, bin_area, num_bins)
        result.save()

        logger.info("Batch processing complete:")
        logger.info(f"  Completed: {completed}/{len(self.images)}")
        logger.info(f"  Failed: {failed}")
        logger.info(f"  Total time: {format_duration(result.total_time_seconds)}")
        for image in result.failures:
            logger.error(f"  {image.name}: {image.stage} - {image.error}")

        if first_failure is not None:
            raise ImageProcessingError(first_failure.name, first_failure.stage, first_failure.error)

        return result
