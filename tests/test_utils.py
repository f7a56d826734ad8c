"""
Unit tests for the utility modules of the separation package.

Tests the following modules:
- separation/utils/config.py - Configuration management and validation
- separation/utils/json_utils.py - Numpy-safe JSON and atomic writes
- separation/utils/logging.py - Logging setup and helpers
- separation/io/csv_export.py - Metrics CSV writing

Run with: pytest tests/test_utils.py -v
"""

import sys
import logging
from pathlib import Path
from unittest import TestCase
import tempfile
import json

import numpy as np

# Add repo root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


# =============================================================================
# CONFIG MODULE TESTS
# =============================================================================

class TestConfigDefaults(TestCase):
    """Tests for DEFAULT_CONFIG and its accessors."""

    def test_default_config_has_required_keys(self):
        from separation.utils.config import DEFAULT_CONFIG

        required_keys = [
            'enhance_thresholds', 'min_contour_area', 'min_vertices',
            'min_arc_length', 'bin_area', 'num_bins', 'debug_images',
            'num_workers', 'image_list', 'input_subdir', 'output_subdir',
            'metrics_filename',
        ]
        for key in required_keys:
            self.assertIn(key, DEFAULT_CONFIG, f"Missing required key: {key}")

    def test_default_thresholds(self):
        from separation.utils.config import get_enhance_threshold, DEFAULT_CONFIG

        self.assertEqual(get_enhance_threshold(DEFAULT_CONFIG, 'green'), 15)
        self.assertEqual(get_enhance_threshold(DEFAULT_CONFIG, 'red'), 35)
        self.assertEqual(get_enhance_threshold(DEFAULT_CONFIG, 'blue'), 35)

    def test_histogram_layout(self):
        from separation.utils.config import get_histogram_layout

        self.assertEqual(get_histogram_layout({}), (40, 11))
        self.assertEqual(get_histogram_layout({'bin_area': 50, 'num_bins': 5}), (50, 5))

    def test_default_path(self):
        from separation.utils.config import get_default_path

        self.assertIsInstance(get_default_path('data_dir'), str)
        self.assertEqual(get_default_path('nonexistent'), "")


class TestConfigLoading(TestCase):
    """Tests for load_config() and save_config()."""

    def test_load_without_file_returns_defaults(self):
        from separation.utils.config import load_config, DEFAULT_CONFIG

        with tempfile.TemporaryDirectory() as tmpdir:
            config = load_config(tmpdir)

        self.assertEqual(config, DEFAULT_CONFIG)
        self.assertIsNot(config, DEFAULT_CONFIG)

    def test_file_values_are_deep_merged(self):
        from separation.utils.config import load_config

        with tempfile.TemporaryDirectory() as tmpdir:
            with open(Path(tmpdir) / "separation_config.json", 'w') as f:
                json.dump({"enhance_thresholds": {"green": 40}, "num_workers": 2}, f)
            config = load_config(tmpdir)

        self.assertEqual(config['enhance_thresholds'], {'green': 40, 'red': 35, 'blue': 35})
        self.assertEqual(config['num_workers'], 2)

    def test_overrides_win_and_none_is_ignored(self):
        from separation.utils.config import load_config

        with tempfile.TemporaryDirectory() as tmpdir:
            with open(Path(tmpdir) / "separation_config.json", 'w') as f:
                json.dump({"num_workers": 2}, f)
            config = load_config(tmpdir, num_workers=8, min_contour_area=None)

        self.assertEqual(config['num_workers'], 8)
        self.assertEqual(config['min_contour_area'], 1.0)

    def test_invalid_json_falls_back_to_defaults(self):
        from separation.utils.config import load_config, DEFAULT_CONFIG

        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "separation_config.json").write_text("{not json")
            config = load_config(tmpdir)

        self.assertEqual(config, DEFAULT_CONFIG)

    def test_explicit_config_path(self):
        from separation.utils.config import load_config

        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "custom.json"
            path.write_text(json.dumps({"bin_area": 25}))
            config = load_config("/does/not/exist", config_path=path)

        self.assertEqual(config['bin_area'], 25)

    def test_save_then_load(self):
        from separation.utils.config import load_config, save_config

        with tempfile.TemporaryDirectory() as tmpdir:
            config = load_config(num_bins=6)
            path = save_config(Path(tmpdir) / "nested", config)
            self.assertTrue(path.exists())
            self.assertEqual(load_config(path.parent), config)

    def test_defaults_not_mutated(self):
        from separation.utils.config import load_config, DEFAULT_CONFIG

        config = load_config()
        config['enhance_thresholds']['green'] = 99
        self.assertEqual(DEFAULT_CONFIG['enhance_thresholds']['green'], 15)


class TestConfigValidation(TestCase):
    """Tests for validate_config() function."""

    def test_validate_config_default_passes(self):
        from separation.utils.config import validate_config

        result = validate_config()

        self.assertTrue(result['valid'])
        self.assertEqual(result['errors'], [])

    def test_invalid_num_bins(self):
        from separation.utils.config import validate_config

        result = validate_config({"num_bins": 1})

        self.assertFalse(result['valid'])
        self.assertEqual(result['errors'], ['num_bins: value 1 out of range [2, 100]'])

    def test_invalid_threshold(self):
        from separation.utils.config import validate_config

        result = validate_config({"enhance_thresholds": {"green": 300, "red": 35, "blue": 35}})

        self.assertFalse(result['valid'])
        self.assertTrue(any('enhance_thresholds.green' in e for e in result['errors']))

    def test_missing_threshold(self):
        from separation.utils.config import validate_config

        result = validate_config({"enhance_thresholds": {"green": 15}})

        self.assertIn('enhance_thresholds.red: missing', result['errors'])

    def test_bool_is_not_numeric(self):
        from separation.utils.config import validate_config

        result = validate_config({"num_workers": True})

        self.assertFalse(result['valid'])

    def test_float_accepted_for_float_keys(self):
        from separation.utils.config import validate_config

        self.assertTrue(validate_config({"min_contour_area": 3})['valid'])
        self.assertFalse(validate_config({"min_vertices": 5.5})['valid'])

    def test_empty_string_keys(self):
        from separation.utils.config import validate_config

        result = validate_config({"image_list": ""})

        self.assertFalse(result['valid'])

    def test_debug_images_must_be_bool(self):
        from separation.utils.config import validate_config

        self.assertFalse(validate_config({"debug_images": "yes"})['valid'])

    def test_validate_config_raise_on_error(self):
        from separation.utils.config import validate_config, ConfigValidationError

        with self.assertRaises(ConfigValidationError) as ctx:
            validate_config({"num_bins": 1, "jpeg_quality": 101}, raise_on_error=True)
        self.assertIn("num_bins", str(ctx.exception))
        self.assertIn("jpeg_quality", str(ctx.exception))

    def test_validate_config_returns_warnings(self):
        from separation.utils.config import validate_config

        result = validate_config({"colour_mode": "fancy"})

        self.assertTrue(result['valid'])
        self.assertEqual(len(result['warnings']), 1)


# =============================================================================
# JSON UTILS TESTS
# =============================================================================

class TestJsonUtils(TestCase):
    """Tests for to_json_value() and atomic_json_dump()."""

    def test_report_values_are_converted(self):
        from separation.core.channels import ChannelType, HierarchyType
        from separation.utils.json_utils import to_json_value

        data = {"count": np.int64(3), "area": np.float32(0.5), "bins": np.arange(3),
                "ok": np.bool_(True), "path": Path("x/y"), "channel": ChannelType.RED,
                "type": HierarchyType.PARENT}
        decoded = json.loads(json.dumps(to_json_value(data)))

        self.assertEqual(decoded["count"], 3)
        self.assertEqual(decoded["area"], 0.5)
        self.assertEqual(decoded["bins"], [0, 1, 2])
        self.assertIs(decoded["ok"], True)
        self.assertEqual(decoded["path"], "x/y")
        self.assertEqual(decoded["channel"], "red")
        self.assertEqual(decoded["type"], int(HierarchyType.PARENT))

    def test_enum_keys(self):
        from separation.core.channels import ChannelType
        from separation.utils.json_utils import to_json_value

        result = to_json_value({ChannelType.GREEN: 15, ChannelType.BLUE: 35})

        self.assertEqual(result, {"green": 15, "blue": 35})

    def test_non_finite_become_none(self):
        from separation.utils.json_utils import to_json_value

        result = to_json_value({"x": [float('nan'), np.float64(np.inf), 1.5]})

        self.assertEqual(result, {"x": [None, None, 1.5]})

    def test_atomic_dump(self):
        from separation.utils.json_utils import atomic_json_dump

        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "sub" / "out.json"
            written = atomic_json_dump({"value": np.int32(7)}, target)

            self.assertEqual(written, target)
            with open(target) as f:
                self.assertEqual(json.load(f), {"value": 7})
            self.assertEqual([p.name for p in target.parent.iterdir()], ["out.json"])

    def test_atomic_dump_failure_leaves_target(self):
        from separation.utils.json_utils import atomic_json_dump

        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "out.json"
            target.write_text('{"old": true}')

            with self.assertRaises(TypeError):
                atomic_json_dump({"bad": object()}, target)

            self.assertEqual(json.loads(target.read_text()), {"old": True})
            self.assertEqual(len(list(Path(tmpdir).iterdir())), 1)

    def test_save_config_goes_through_atomic_dump(self):
        from separation.utils.config import load_config, save_config

        with tempfile.TemporaryDirectory() as tmpdir:
            config = load_config(min_contour_area=np.float64(2.5))
            path = save_config(tmpdir, config)

            with open(path) as f:
                self.assertEqual(json.load(f)["min_contour_area"], 2.5)
            self.assertEqual([p.name for p in Path(tmpdir).iterdir()], [path.name])


# =============================================================================
# LOGGING TESTS
# =============================================================================

class TestLogging(TestCase):
    """Tests for the logging helpers."""

    def tearDown(self):
        from separation.utils.logging import setup_logging
        setup_logging(level="WARNING")

    def _log_to_file(self, tmpdir, emit):
        from separation.utils.logging import setup_logging

        log_path = Path(tmpdir) / "logs" / "run.log"
        root = setup_logging(level="DEBUG", log_file=log_path, console=False)
        emit(logging.getLogger("separation.test"))
        for handler in root.handlers:
            handler.flush()
        return log_path.read_text()

    def test_get_logger_is_cached(self):
        from separation.utils.logging import get_logger

        self.assertIs(get_logger("separation.test"), get_logger("separation.test"))

    def test_setup_logging_with_log_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            text = self._log_to_file(tmpdir, lambda log: log.debug("hello"))
            self.assertIn("| separation.test | hello", text)

    def test_setup_logging_does_not_duplicate_handlers(self):
        from separation.utils.logging import setup_logging

        setup_logging(level="INFO")
        root = setup_logging(level="INFO")
        ours = [h for h in root.handlers if getattr(h, "_separation", False)]
        self.assertEqual(len(ours), 1)

    def test_setup_logging_level(self):
        from separation.utils.logging import setup_logging

        root = setup_logging(level="ERROR", console=True)
        self.assertEqual(root.level, logging.ERROR)

    def test_records_carry_image_and_stage(self):
        from separation.utils.logging import log_context

        def emit(log):
            with log_context(image="slide_01.png"):
                log.info("loaded")
                with log_context(stage="extract"):
                    log.info("traced")
            log.info("done")

        with tempfile.TemporaryDirectory() as tmpdir:
            lines = self._log_to_file(tmpdir, emit).splitlines()

        self.assertTrue(lines[-3].endswith("[slide_01.png] loaded"))
        self.assertTrue(lines[-2].endswith("[slide_01.png:extract] traced"))
        self.assertTrue(lines[-1].endswith("| separation.test | done"))

    def test_log_context_is_restored(self):
        from separation.utils.logging import current_context, log_context

        with self.assertRaises(ValueError):
            with log_context(image="a.png", stage="load"):
                raise ValueError("boom")
        self.assertEqual(current_context(), (None, None))

    def test_log_parameters_flattens_thresholds(self):
        from separation.utils.logging import get_logger, log_parameters

        with self.assertLogs("separation.test", level="INFO") as logs:
            log_parameters(get_logger("separation.test"),
                           {"enhance_thresholds": {"green": 15}, "num_bins": 11},
                           title="Run")

        messages = [record.getMessage() for record in logs.records]
        self.assertIn("Run", messages)
        self.assertIn("  enhance_thresholds.green : 15", messages)
        self.assertTrue(any(m.split(":")[0].strip() == "num_bins" and m.endswith(": 11") for m in messages))

    def test_format_duration(self):
        from separation.utils.logging import format_duration

        self.assertEqual(format_duration(5.0), "5.0 seconds")
        self.assertEqual(format_duration(125.0), "2.1 minutes")

    def test_processing_timer(self):
        from separation.utils.logging import ProcessingTimer, get_logger

        with ProcessingTimer(get_logger("separation.test"), "work") as timer:
            pass
        self.assertGreaterEqual(timer.duration, 0.0)

    def test_processing_timer_reports_failed_stage(self):
        from separation.processing.image import ImageProcessingError
        from separation.utils.logging import ProcessingTimer, get_logger

        with self.assertLogs("separation.test", level="ERROR") as logs:
            with self.assertRaises(ImageProcessingError):
                with ProcessingTimer(get_logger("separation.test"), "batch"):
                    raise ImageProcessingError("corrupt.png", "load", "cannot decode")

        self.assertIn("(corrupt.png, stage 'load')", logs.output[0])


# =============================================================================
# CSV EXPORT TESTS
# =============================================================================

class TestCsvExport(TestCase):
    """Tests for write_metrics_csv() and friends."""

    def _row(self, name):
        return [name] + ["0"] * 42

    def test_header_line(self):
        from separation.io.csv_export import header_line

        fields = header_line().split(",")
        self.assertEqual(len(fields), 43)
        self.assertEqual(fields[0], "Image_Name")

    def test_expected_field_count(self):
        from separation.io.csv_export import expected_field_count

        self.assertEqual(expected_field_count(), 43)
        self.assertEqual(expected_field_count(num_channels=1, num_bins=5), 9)

    def test_write_and_read(self):
        from separation.io.csv_export import write_metrics_csv, read_metrics_csv

        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_metrics_csv(Path(tmpdir) / "out" / "metrics.csv",
                                     [self._row("img.png"), self._row("img2.png")])
            rows = read_metrics_csv(path)

        self.assertEqual(len(rows), 3)
        self.assertEqual(rows[1][0], "img.png")
        self.assertTrue(all(len(r) == 43 for r in rows))

    def test_names_with_commas_and_quotes_are_quoted(self):
        from separation.io.csv_export import write_metrics_csv, read_metrics_csv

        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_metrics_csv(Path(tmpdir) / "metrics.csv",
                                     [self._row("slide,03.png"), self._row('say "cheese".png')])
            lines = path.read_text().splitlines()
            rows = read_metrics_csv(path)

        self.assertTrue(lines[1].startswith('"slide,03.png",0,'))
        self.assertEqual([r[0] for r in rows[1:]], ["slide,03.png", 'say "cheese".png'])
        self.assertTrue(all(len(r) == 43 for r in rows))

    def test_plain_rows_are_unquoted(self):
        from separation.io.csv_export import write_metrics_csv

        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_metrics_csv(Path(tmpdir) / "metrics.csv", [self._row("img.png")])
            self.assertEqual(path.read_bytes().splitlines()[1], b"img.png," + b",".join([b"0"] * 42))
            self.assertFalse(b"\r" in path.read_bytes())

    def test_header_only_when_no_rows(self):
        from separation.io.csv_export import write_metrics_csv, read_metrics_csv

        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_metrics_csv(Path(tmpdir) / "metrics.csv", [])
            self.assertEqual(len(read_metrics_csv(path)), 1)


# =============================================================================
# SHARED DEFAULTS TESTS
# =============================================================================

class TestSharedDefaults(TestCase):
    """Module defaults are the config defaults, not separate copies."""

    def test_histogram_layout(self):
        from separation.reporting import metrics
        from separation.utils import config

        self.assertEqual(metrics.BIN_AREA, config.DEFAULT_CONFIG["bin_area"])
        self.assertEqual(metrics.NUM_BINS, config.DEFAULT_CONFIG["num_bins"])
        self.assertIs(metrics.BIN_AREA, config.BIN_AREA)

    def test_filter_minimums(self):
        from separation.detection import filtering
        from separation.utils import config

        self.assertEqual(filtering.MIN_VERTICES, config.DEFAULT_CONFIG["min_vertices"])
        self.assertEqual(filtering.MIN_ARC_LENGTH, config.DEFAULT_CONFIG["min_arc_length"])

    def test_enhancement_cutoffs(self):
        from separation.core.channels import ChannelType
        from separation.preprocessing.enhancement import ENHANCE_THRESHOLDS
        from separation.utils.config import DEFAULT_CONFIG

        as_names = {channel.value: cutoff for channel, cutoff in ENHANCE_THRESHOLDS.items()}
        self.assertEqual(as_names, DEFAULT_CONFIG["enhance_thresholds"])

    def test_contour_defaults(self):
        import inspect
        from separation.detection.contours import extract_contours
        from separation.utils.config import DEFAULT_CONFIG

        params = inspect.signature(extract_contours).parameters
        self.assertEqual(params["min_area"].default, DEFAULT_CONFIG["min_contour_area"])
        self.assertEqual(params["seed"].default, DEFAULT_CONFIG["overlay_seed"])
