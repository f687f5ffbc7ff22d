"""Runtime settings for the analytics engine.

Defaults mirror what the browser build used: three JSON blobs in the
key/value store plus a persistent visitor id. Every field can be
overridden through ``HELMET_ANALYTICS_*`` environment variables.
"""

import os
from dataclasses import dataclass, fields

ENV_PREFIX = "HELMET_ANALYTICS_"


@dataclass(frozen=True)
class Settings:
    # Store keys
    assignments_key: str = "ab_assignments"
    counters_key: str = "ab_counters"
    funnel_log_key: str = "funnel_log"
    visitor_id_key: str = "visitor_id"

    # Affiliate clicks without an explicit value still signal purchase intent
    affiliate_click_default_value: float = 1.0
    # Separator used when a conversion path is rendered as a single string
    path_separator: str = " > "

    db_path: str = "data/analytics.duckdb"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: dict | None = None) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        if environ is None:
            environ = os.environ
        overrides = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            overrides[f.name] = float(raw) if f.type in (float, "float") else raw
        return cls(**overrides)


DEFAULT_SETTINGS = Settings()
