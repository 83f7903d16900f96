from __future__ import annotations

from typing import Dict, Iterable, List, Set, Union

from .indices import mapped_paths
from .models import Mapping, PropertyRule
from .paths import parse_path, split_path, strip_indices


def _truncate(path: str, names: int) -> str:
    """Prefix of a concrete path covering `names` property names (plus their indices)."""
    out = ''
    seen = 0
    for seg in parse_path(path):
        if isinstance(seg, int):
            out += f"[{seg}]"
            continue
        if seen == names:
            break
        out = f"{out}.{seg}" if out else seg
        seen += 1
    return out


def _is_filled(candidate: str, used: Iterable[str]) -> bool:
    for path in used:
        if path == candidate or path.startswith(candidate + '.') or path.startswith(candidate + '['):
            return True
    return False


def _instances(parent: str, used: List[str], rules: Dict[str, PropertyRule]) -> List[str]:
    """Concrete instances of the object at schema path `parent` that the mapping touches."""
    if not parent:
        return ['']
    depth = len(split_path(parent))
    found: List[str] = []
    for path in used:
        schema_path = strip_indices(path)
        if schema_path == parent or schema_path.startswith(parent + '.'):
            instance = _truncate(path, depth)
            if strip_indices(instance) == parent and instance not in found:
                found.append(instance)

    rule = rules.get(parent)
    if rule is not None and rule.is_array and rule.min_items and found:
        base = strip_indices(found[0])
        # Used array items plus every index a minItems bound demands.
        for i in range(rule.min_items):
            instance = f"{base}[{i}]"
            if instance not in found:
                found.append(instance)
        found = [f for f in found if f != base] or found
    return found


def missing_required_fields(
    mapping: Union[Mapping, Dict[str, str]],
    rules: Iterable[PropertyRule],
) -> List[str]:
    """Required properties the mapping leaves empty, as concrete paths.

    Root-level required properties are always expected. A required property
    of a nested object or array item is expected only for the instances the
    mapping actually populates. Nothing is raised: the list is for review.
    """
    used = mapped_paths(mapping)
    by_path = {r.path: r for r in rules}
    missing: List[str] = []
    seen: Set[str] = set()

    for rule in by_path.values():
        if not rule.required:
            continue
        parts = split_path(rule.path)
        parent, name = '.'.join(parts[:-1]), parts[-1]
        for instance in _instances(parent, used, by_path):
            candidate = f"{instance}.{name}" if instance else name
            if not _is_filled(candidate, used) and candidate not in seen:
                seen.add(candidate)
                missing.append(candidate)
    return missing
