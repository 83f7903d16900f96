from __future__ import annotations

import re
from typing import List, Optional, Union

Segment = Union[str, int]

_INDEX = re.compile(r"\[(\d+)\]")


def join_path(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def split_path(path: str) -> List[str]:
    """Split a dot path into its named segments, keeping any `[n]` suffixes."""
    if path is None:
        return []
    if not isinstance(path, str):
        path = str(path)
    return [p for p in path.split('.') if p != '']


def parse_path(path: str) -> List[Segment]:
    """Parse a target path into keys and integer indices.

    'items[2].name'  -> ['items', 2, 'name']
    'matrix[0][1]'   -> ['matrix', 0, 1]
    'items.0.name'   -> ['items', 0, 'name']

    Raises ValueError for an empty path or a malformed bracket.
    """
    if not path or not str(path).strip():
        raise ValueError("Empty target path.")

    segments: List[Segment] = []
    buf: List[str] = []
    i = 0
    text = str(path).strip()

    def flush():
        if buf:
            token = ''.join(buf)
            segments.append(int(token) if token.isdigit() and segments else token)
            buf.clear()

    while i < len(text):
        ch = text[i]
        if ch == '.':
            flush()
            i += 1
            continue
        if ch == '[':
            flush()
            close = text.find(']', i)
            if close == -1 or not text[i + 1:close].isdigit():
                raise ValueError(f"Malformed index in path '{path}'.")
            segments.append(int(text[i + 1:close]))
            i = close + 1
            continue
        if ch == ']':
            raise ValueError(f"Unbalanced ']' in path '{path}'.")
        buf.append(ch)
        i += 1
    flush()

    if not segments or not isinstance(segments[0], str):
        raise ValueError(f"Path '{path}' must start with a property name.")
    return segments


def strip_indices(path: str) -> str:
    """'items[2].name' -> 'items.name' (the schema address of a concrete path)."""
    if not path:
        return ''
    return _INDEX.sub('', path)


def leaf_segment(path: str) -> str:
    parts = split_path(strip_indices(path))
    return parts[-1] if parts else ''


def with_index(path: str, family: str, index: int) -> str:
    """Insert a literal index after the array family prefix of a schema path.

    with_index('items.name', 'items', 2) -> 'items[2].name'
    with_index('referenceDocuments', 'referenceDocuments', 0) -> 'referenceDocuments[0]'
    """
    if path != family and not path.startswith(family + '.'):
        raise ValueError(f"'{path}' is not inside array family '{family}'.")
    return f"{family}[{index}]{path[len(family):]}"


def index_in_family(path: str, family: str) -> Optional[int]:
    """Return the literal index a concrete path uses under `family`, if any."""
    if not path or not family:
        return None
    match = re.match(rf"^{re.escape(family)}\[(\d+)\]", path)
    if match:
        return int(match.group(1))
    return None
