from __future__ import annotations

from typing import Dict, Iterable, List, Set, Union

from .models import FieldDescriptor, Mapping, Suggestion
from .paths import index_in_family, with_index

MappingLike = Union[Mapping, Dict[str, str]]


def mapped_paths(mapping: MappingLike) -> List[str]:
    """Target paths currently set in a Mapping or a plain header -> path dict."""
    if mapping is None:
        return []
    if isinstance(mapping, Mapping):
        return list(mapping.targets().values())
    return [p for p in mapping.values() if p]


def find_used_indices(mapping: MappingLike, family: str) -> Set[int]:
    """Indices already written under `family` ('items[0].name', 'items[3]', ...)."""
    used: Set[int] = set()
    if not family:
        return used
    for path in mapped_paths(mapping):
        index = index_in_family(path, family)
        if index is not None:
            used.add(index)
    return used


def generate_indexed_suggestions(field: FieldDescriptor, used_indices: Iterable[int]) -> List[Suggestion]:
    """One 'existing' suggestion per used index, then one 'new' index.

    used {0, 5} -> [0 existing, 5 existing, 6 new]; used {} -> [0 new].
    Scalar fields get a single 'scalar' suggestion of their own path.
    """
    if not field.is_array:
        return [Suggestion(value=field.path, kind='scalar')]

    family = field.family
    ordered = sorted(set(used_indices))
    suggestions = [
        Suggestion(value=with_index(field.path, family, i), kind='existing', index=i)
        for i in ordered
    ]
    next_index = ordered[-1] + 1 if ordered else 0
    suggestions.append(Suggestion(value=with_index(field.path, family, next_index), kind='new', index=next_index))
    return suggestions


def suggestions_for_field(field: FieldDescriptor, mapping: MappingLike) -> List[Suggestion]:
    return generate_indexed_suggestions(field, find_used_indices(mapping, field.family) if field.is_array else ())
