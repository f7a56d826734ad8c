"""
JSON output for batch reports and config files.

Report and config payloads may hold numpy scalars (areas, sums, counts),
paths and channel enums. ``to_json_value`` turns them into plain JSON values
and ``atomic_json_dump`` writes the result so the target file always holds
either the previous document or the complete new one.
"""

import json
import math
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any, Union

import numpy as np


def to_json_value(obj: Any) -> Any:
    """
    Recursively convert a report value to JSON-native types.

    - ChannelType / HierarchyType members become their values
    - numpy scalars and arrays become Python numbers and lists
    - Paths become strings
    - NaN and infinities become None (JSON has no token for them)

    Mapping keys that are enums are written as their values.
    """
    if isinstance(obj, dict):
        return {_key(k): to_json_value(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_json_value(v) for v in obj]
    if isinstance(obj, Enum):
        return to_json_value(obj.value)
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (bool, np.bool_)):
        return bool(obj)
    if isinstance(obj, (int, np.integer)):
        return int(obj)
    if isinstance(obj, (float, np.floating)):
        v = float(obj)
        return v if math.isfinite(v) else None
    if isinstance(obj, np.ndarray):
        return to_json_value(obj.tolist())
    return obj


def _key(key: Any) -> Any:
    return key.value if isinstance(key, Enum) else key


def atomic_json_dump(data: Any, filepath: Union[str, Path], indent: int = 2) -> Path:
    """
    Write ``data`` as JSON via a temp file in the same directory and os.replace().

    The document is serialized before anything touches the disk, so a value
    that cannot be encoded raises TypeError and leaves the target untouched.

    Returns:
        Path of the written file
    """
    filepath = Path(filepath)
    text = json.dumps(to_json_value(data), indent=indent, allow_nan=False)

    filepath.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=filepath.parent, prefix=f".{filepath.name}.", suffix='.tmp')
    try:
        with os.fdopen(fd, 'w') as f:
            f.write(text + "\n")
        os.replace(tmp_path, filepath)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise
    return filepath
