from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from .errors import ConfigError
from .models import Mapping, MappingEntry

logger = logging.getLogger(__name__)


@dataclass
class ConfigDiff:
    unknown_headers: List[str] = field(default_factory=list)  # in the config, not in the data
    unmapped_headers: List[str] = field(default_factory=list)  # in the data, not in the config


def to_config(mapping: Mapping) -> Dict[str, str]:
    """Flat header -> target path object for saving.

    Explicitly skipped headers are kept as '' so a reload restores the skip.
    Unapproved entries are not saved.
    """
    config: Dict[str, str] = {}
    for entry in mapping:
        if not entry.approved:
            continue
        config[entry.header] = entry.target_path or ''
    return config


def validate_config(config: Any) -> Dict[str, str]:
    if not isinstance(config, dict):
        raise ConfigError("Mapping configuration must be a JSON object of header -> path.")
    for header, path in config.items():
        if not isinstance(header, str) or not (path is None or isinstance(path, str)):
            raise ConfigError(f"Invalid mapping entry {header!r}: {path!r}")
    return config


def apply_config(config: Dict[str, str], headers: Sequence[str]) -> Tuple[Mapping, ConfigDiff]:
    """Seed a Mapping for `headers` from a saved configuration.

    Headers present in the configuration come back approved (an empty path is
    an approved skip); headers missing from it stay unapproved and empty.
    """
    config = validate_config(config)
    diff = ConfigDiff(
        unknown_headers=[h for h in config if h not in set(headers)],
        unmapped_headers=[h for h in headers if h not in config],
    )
    entries = [
        MappingEntry(h, (config[h] or '').strip() or None, True)
        for h in headers if h in config
    ]
    if diff.unknown_headers:
        logger.warning("Ignoring %d configured headers not in the data: %s",
                       len(diff.unknown_headers), ', '.join(diff.unknown_headers))
    return Mapping(headers, entries), diff
