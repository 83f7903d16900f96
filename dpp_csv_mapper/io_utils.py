from __future__ import annotations

import csv
import io
import json
import logging
import os
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import get_settings

logger = logging.getLogger(__name__)


def _read_text(file_obj) -> str:
    if file_obj is None:
        raise ValueError("No file uploaded.")

    if hasattr(file_obj, 'read'):
        if hasattr(file_obj, 'seek'):
            file_obj.seek(0)
        content = file_obj.read()
        if isinstance(content, bytes):
            content = content.decode('utf-8-sig')
        return content

    path = file_obj.name if hasattr(file_obj, 'name') else file_obj
    with open(path, 'r', encoding='utf-8-sig') as f:
        return f.read()


def read_json_content(file_obj):
    """Read JSON content from an uploaded file or file path."""
    return json.loads(_read_text(file_obj))


def read_csv_rows(file_obj) -> Tuple[List[str], List[Dict[str, str]]]:
    """Read an uploaded CSV into (headers, rows); rows map header -> raw string.

    Blank lines are skipped and surrounding whitespace is trimmed from headers.
    """
    reader = csv.reader(io.StringIO(_read_text(file_obj)))
    headers: Optional[List[str]] = None
    rows: List[Dict[str, str]] = []
    for line in reader:
        if not any(cell.strip() for cell in line):
            continue
        if headers is None:
            headers = [h.strip() for h in line]
            continue
        rows.append({h: (line[i] if i < len(line) else '') for i, h in enumerate(headers) if h})
    if headers is None:
        raise ValueError("CSV file has no header row.")
    headers = [h for h in headers if h]
    logger.info("Read %d rows with %d columns", len(rows), len(headers))
    return headers, rows


class SchemaStore:
    """Cache of resolved schemas keyed by name ('battery' -> battery.schema.json).

    `loader(name)` replaces the file lookup, e.g. for tests or remote sources.
    """

    def __init__(self, schema_dir: Optional[str] = None, loader: Optional[Callable[[str], Dict[str, Any]]] = None):
        self.schema_dir = schema_dir or get_settings().schema_dir
        self._loader = loader
        self._cache: Dict[str, Dict[str, Any]] = {}

    def _read(self, name: str) -> Dict[str, Any]:
        if self._loader is not None:
            return self._loader(name)
        path = os.path.join(self.schema_dir, f"{name}.schema.json")
        if not os.path.exists(path):
            raise FileNotFoundError(f"Schema '{name}' not found at {path}")
        return read_json_content(path)

    def load(self, name: str) -> Dict[str, Any]:
        if not name:
            raise ValueError("Schema name must be specified.")
        if name not in self._cache:
            logger.debug("Loading schema %s", name)
            self._cache[name] = self._read(name)
        return self._cache[name]

    def available(self) -> List[str]:
        """Schema names found in the schema directory."""
        if not os.path.isdir(self.schema_dir):
            return []
        suffix = '.schema.json'
        return sorted(f[:-len(suffix)] for f in os.listdir(self.schema_dir) if f.endswith(suffix))

    def clear(self) -> None:
        self._cache.clear()
