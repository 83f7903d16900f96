"""Header vs. field-path similarity.

Scores are "lower is better". Each match falls in one priority tier and the
tier number is the integer part of the score, so any match of a higher tier
beats every match of a lower one:

    0  exact: normalized header equals the full path or its leaf segment
    1  synonym table hit (SYNONYM_MAP)
    2  token overlap: a leaf token appears in the header and the header/path
       token sets have a Jaccard similarity of at least TOKEN_MIN_JACCARD
    3  edit distance between header and leaf (or full path), under a
       threshold that grows with header length
    4  acronym: initials of header/path segments within a small edit distance

The fractional part orders matches inside a tier (distance first, then a
small bias towards shorter paths so root fields beat nested ones).
"""
from __future__ import annotations

import logging
import math
import re
import unicodedata
from typing import Iterable, List, Optional, Set, Union

from .models import FieldDescriptor
from .paths import leaf_segment, split_path, strip_indices

logger = logging.getLogger(__name__)

NO_MATCH = math.inf
TOKEN_MIN_JACCARD = 0.4

# Lower-case industry term -> target leaf (or dotted tail of a path).
SYNONYM_MAP = {
    'ean': 'identifiers.gtin',
    'gtin': 'identifiers.gtin',
    'brand': 'tradeName',
    'manufacturer': 'manufacturer.name',
    'weight': 'physicalDimensions.weight',
    'width': 'physicalDimensions.width',
    'height': 'physicalDimensions.height',
    'depth': 'physicalDimensions.depth',
    'length': 'physicalDimensions.length',
}

_NON_ALNUM = re.compile(r"[^0-9a-z]+")
_CAMEL = re.compile(r"([a-z0-9])([A-Z])")
_SEPARATORS = re.compile(r"[\s._\-/()\[\]]+")


def strip_accents(s: str) -> str:
    s = unicodedata.normalize("NFKD", s)
    return "".join(ch for ch in s if not unicodedata.combining(ch))


def normalize(s: str) -> str:
    """'Recycled-Content %' -> 'recycledcontentpercentage'"""
    s = "" if s is None else str(s)
    s = strip_accents(s.replace('%', 'Percentage')).lower()
    return _NON_ALNUM.sub("", s)


def tokenize(text: str) -> List[str]:
    """Split on separators and camelCase humps, normalizing each token."""
    if not text:
        return []
    text = _CAMEL.sub(r"\1 \2", str(text).replace('%', ' Percentage '))
    tokens = []
    for part in _SEPARATORS.split(text):
        clean = normalize(part)
        if clean:
            tokens.append(clean)
    return tokens


def acronym(text: str) -> str:
    return "".join(t[0] for t in tokenize(text))


def path_acronym(path: str) -> str:
    """Short plain segments are kept whole: 'environmentalProfile.gwp' -> 'epgwp'."""
    out = []
    for segment in split_path(path):
        if len(segment) < 4 and not any(ch.isupper() for ch in segment):
            out.append(normalize(segment))
        else:
            out.append(acronym(segment))
    return "".join(out)


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        curr = [i]
        for j, cb in enumerate(b, 1):
            curr.append(min(curr[j - 1] + 1, prev[j] + 1, prev[j - 1] + (ca != cb)))
        prev = curr
    return prev[-1]


def fuzzy_threshold(length: int) -> int:
    if length <= 4:
        return 0
    if length <= 8:
        return 1
    return 3


def acronym_threshold(length: int) -> int:
    if length < 4:
        return 0
    return min(2, length // 3)


def _tiered(tier: int, primary: float, path: str) -> float:
    return tier + 0.5 * min(max(primary, 0.0), 1.0) + min(len(path), 1000) / 2500.0


def _synonym_hit(normalized_header: str, path: str) -> bool:
    for term, target in SYNONYM_MAP.items():
        if normalize(term) == normalized_header and (path == target or path.endswith('.' + target)):
            return True
    return False


def score(header: str, field_path: str) -> float:
    """Score how well `header` names the field at `field_path` (NO_MATCH if it does not)."""
    if not header or not field_path:
        return NO_MATCH

    path = strip_indices(field_path)
    nh = normalize(header)
    if not nh:
        return NO_MATCH
    leaf = leaf_segment(path)
    nl = normalize(leaf)
    nf = normalize(path)

    if nh == nf:
        return _tiered(0, 0.0, path)
    if nh == nl:
        return _tiered(0, 0.5, path)

    if _synonym_hit(nh, path):
        return _tiered(1, 0.0, path)

    header_tokens: Set[str] = {t for t in tokenize(header) if not t.isdigit()}
    leaf_tokens = set(tokenize(leaf))
    if header_tokens & leaf_tokens:
        path_tokens = set(tokenize(path))
        jaccard = len(header_tokens & path_tokens) / len(header_tokens | path_tokens)
        if jaccard >= TOKEN_MIN_JACCARD:
            return _tiered(2, 1.0 - jaccard, path)

    threshold = fuzzy_threshold(len(nh))
    if threshold:
        dist = min(levenshtein(nh, nl), levenshtein(nh, nf))
        if dist <= threshold:
            return _tiered(3, dist / (threshold + 1), path)

    field_acronym = path_acronym(path)
    if len(field_acronym) >= 2:
        dist = levenshtein(nh, field_acronym)
        header_acronym = acronym(header)
        if len(header_acronym) >= 3:
            dist = min(dist, levenshtein(header_acronym, field_acronym))
        threshold = acronym_threshold(len(field_acronym))
        if dist <= threshold:
            return _tiered(4, dist / (threshold + 1), path)

    return NO_MATCH


def find_best_match(
    header: str,
    fields: Iterable[Union[FieldDescriptor, str]],
) -> Optional[str]:
    """Best single field for one header, ignoring every other header.

    For whole files use `automap.generate_auto_mapping`, which resolves
    competition between headers.
    """
    if not header or not fields:
        return None
    best_path = None
    best_score = NO_MATCH
    for f in fields:
        path = f if isinstance(f, str) else f.path
        s = score(header, path)
        if s < best_score:
            best_path, best_score = path, s
    logger.debug("Best match for %r: %s (%.3f)", header, best_path, best_score)
    return best_path
