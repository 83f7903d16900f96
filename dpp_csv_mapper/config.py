from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Settings:
    """Runtime settings; every function taking `settings` falls back to get_settings()."""

    context_base_url: str = "https://dpp-keystone.org/spec/contexts/v1/"
    core_context: str = "dpp-core.context.jsonld"
    sector_context: str = "dpp-{sector}.context.jsonld"
    schema_dir: str = "schemas"
    base_schemas: Tuple[str, ...] = ("dpp", "general-product")
    column_sample_limit: int = 100
    max_schema_depth: int = 64


def get_settings() -> Settings:
    """Settings from DPP_CONTEXT_BASE_URL and DPP_SCHEMA_DIR, defaults for the rest.

    The context base URL always ends with a slash.
    """
    base = os.getenv("DPP_CONTEXT_BASE_URL", Settings.context_base_url)
    if not base.endswith("/"):
        base += "/"
    return Settings(
        context_base_url=base,
        schema_dir=os.getenv("DPP_SCHEMA_DIR", Settings.schema_dir),
    )
