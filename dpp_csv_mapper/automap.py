from __future__ import annotations

import logging
import re
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from .models import FieldDescriptor, Mapping
from .paths import with_index
from .scoring import NO_MATCH, score

logger = logging.getLogger(__name__)

# Standalone numbers only: "CO2" or "PM2.5" do not number a header.
_NUMBER = re.compile(r"(?<![A-Za-z0-9.])\d+(?![A-Za-z0-9])")


def header_number(header: str) -> Optional[int]:
    """The last standalone integer of a header: 'Material 3 Name' -> 3, 'Layer 1 CO2' -> 1."""
    found = _NUMBER.findall(header or '')
    return int(found[-1]) if found else None


def score_candidates(
    headers: Sequence[str],
    catalog: Sequence[FieldDescriptor],
) -> List[Tuple[float, int, int]]:
    """All matching (score, header position, field position) triples, best first."""
    candidates = []
    for hi, header in enumerate(headers):
        for fi, desc in enumerate(catalog):
            s = score(header, desc.path)
            if s < NO_MATCH:
                candidates.append((s, hi, fi))
    candidates.sort()
    return candidates


def _assign_indices(
    family: str,
    assigned: List[Tuple[str, FieldDescriptor]],
    order: Dict[str, int],
) -> Dict[str, str]:
    """Give every header mapped into one array family a concrete indexed path.

    Headers carrying a number are grouped by it; groups take indices 0, 1, ...
    in ascending numeric order. Headers without a number, and any header whose
    (index, field) slot is already taken, go to the lowest index past the
    numbered groups where their field is still free.
    """
    slots: Set[Tuple[int, str]] = set()
    result: Dict[str, str] = {}

    numbered: Dict[int, List[Tuple[str, FieldDescriptor]]] = defaultdict(list)
    overflow: List[Tuple[str, FieldDescriptor]] = []
    for header, desc in assigned:
        n = header_number(header)
        if n is None:
            overflow.append((header, desc))
        else:
            numbered[n].append((header, desc))

    for index, n in enumerate(sorted(numbered)):
        for header, desc in sorted(numbered[n], key=lambda hd: order[hd[0]]):
            if (index, desc.path) in slots:
                overflow.append((header, desc))
                continue
            slots.add((index, desc.path))
            result[header] = with_index(desc.path, family, index)

    start = len(numbered)
    for header, desc in sorted(overflow, key=lambda hd: order[hd[0]]):
        index = start
        while (index, desc.path) in slots:
            index += 1
        slots.add((index, desc.path))
        result[header] = with_index(desc.path, family, index)
    return result


def generate_auto_mapping(
    headers: Sequence[str],
    catalog: Iterable[Union[FieldDescriptor, str, dict]],
) -> Mapping:
    """Seed a Mapping for a set of CSV headers.

    Every (header, field) pair that matches at all is ranked globally and
    assigned best-first, so a strong match is never lost to a weaker pair that
    happened to be considered earlier. A non-array field is given to one
    header only; array fields accept many headers, which are then spread over
    indices of their repeating group. All entries come back unapproved.
    """
    headers = list(headers or [])
    fields = [FieldDescriptor.coerce(f) for f in catalog or []]
    mapping = Mapping(headers)
    if not headers or not fields:
        return mapping

    chosen: Dict[str, FieldDescriptor] = {}
    claimed: Set[str] = set()
    for _, hi, fi in score_candidates(headers, fields):
        header, desc = headers[hi], fields[fi]
        if header in chosen:
            continue
        if not desc.is_array and desc.path in claimed:
            continue
        chosen[header] = desc
        claimed.add(desc.path)

    by_family: Dict[str, List[Tuple[str, FieldDescriptor]]] = defaultdict(list)
    for header, desc in chosen.items():
        if desc.is_array:
            by_family[desc.family].append((header, desc))
        else:
            mapping.set_target(header, desc.path)

    order = {h: i for i, h in enumerate(headers)}
    for family, assigned in by_family.items():
        for header, path in _assign_indices(family, assigned, order).items():
            mapping.set_target(header, path)

    logger.info("Auto-mapped %d of %d headers (%d array families)", len(chosen), len(headers), len(by_family))
    return mapping

