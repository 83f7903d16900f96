from __future__ import annotations

import logging
from typing import Any, Dict

from .paths import parse_path

logger = logging.getLogger(__name__)


class SparseArray(dict):
    """An array under construction: literal index -> element.

    Indices may have gaps ('Mat 1' -> items[0], 'Mat 3' -> items[2]);
    `compact_arrays` turns it into a dense list once the record is complete.
    """


def _new_container(next_key):
    return SparseArray() if isinstance(next_key, int) else {}


def _parent_container(data: Dict[str, Any], parts, path: str) -> Any:
    current: Any = data
    for key, next_key in zip(parts[:-1], parts[1:]):
        nxt = current.get(key)
        wanted = SparseArray if isinstance(next_key, int) else dict
        if not isinstance(nxt, wanted) or (wanted is dict and isinstance(nxt, SparseArray)):
            if nxt is not None:
                logger.warning("Overwriting %r at '%s' with a container for '%s'", nxt, key, path)
            nxt = _new_container(next_key)
            current[key] = nxt
        current = nxt
    return current


def set_value_by_path(data: Dict[str, Any], path: str, value: Any) -> Dict[str, Any]:
    """Set `value` at a target path, creating objects and sparse arrays as needed.

    Empty strings and None are not written.
    """
    if value is None or value == '':
        return data

    parts = parse_path(path)
    _parent_container(data, parts, path)[parts[-1]] = value
    return data


def append_value_by_path(data: Dict[str, Any], path: str, value: Any) -> Dict[str, Any]:
    """Append `value` to the list at a target path, starting the list if needed.

    For arrays of primitives addressed without a trailing index ('items[0].tags').
    """
    if value is None or value == '':
        return data

    parts = parse_path(path)
    parent = _parent_container(data, parts, path)
    existing = parent.get(parts[-1])
    if isinstance(existing, list):
        existing.append(value)
    else:
        if existing is not None:
            logger.warning("Overwriting %r at '%s' with a list", existing, path)
        parent[parts[-1]] = [value]
    return data


def compact_arrays(data: Any) -> Any:
    """Recursively replace every SparseArray by a dense list ordered by index."""
    if isinstance(data, SparseArray):
        return [compact_arrays(data[i]) for i in sorted(data) if data[i] is not None]
    if isinstance(data, dict):
        return {k: compact_arrays(v) for k, v in data.items()}
    if isinstance(data, list):
        return [compact_arrays(v) for v in data if v is not None]
    return data
