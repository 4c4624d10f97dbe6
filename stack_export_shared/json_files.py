"""
JSON file helpers used by every writer in the exporter.

write_json() writes to a temporary file in the target directory and then
os.replace()s it over the destination, so readers never observe a
half-written file.
"""

import json
import os
import tempfile
from typing import Any


def read_json(path: str, default: Any = None) -> Any:
    """Load a JSON file, returning default when the file does not exist."""
    if not os.path.exists(path):
        return default
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json(path: str, data: Any, indent: int = 2) -> str:
    """Atomically write data as JSON to path, creating parent directories."""
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".", suffix=".partial")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent, default=str)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
    return path
