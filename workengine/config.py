"""
Runtime configuration for workengine.

Values come from the process environment (optionally seeded from a .env file
via env.load_env) so the CLI and embedding services share one source.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

BACKENDS = ("sqlite", "snapshot", "rest")

DEFAULT_DB_PATH = "data/relationships.db"
DEFAULT_SNAPSHOT_PATH = "data/relationships.json"
DEFAULT_REST_TIMEOUT = 10.0

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def parse_bool(name: str, value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    v = value.strip().lower()
    if v in _TRUTHY:
        return True
    if v in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {value!r}")


@dataclass(frozen=True)
class Settings:
    backend: str = "sqlite"
    database_path: Path = Path(DEFAULT_DB_PATH)
    snapshot_path: Path = Path(DEFAULT_SNAPSHOT_PATH)
    rest_url: Optional[str] = None
    rest_key: Optional[str] = None
    rest_timeout: float = DEFAULT_REST_TIMEOUT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Raises:
            ValueError: On an unknown backend or a malformed timeout
        """
        env = os.environ if environ is None else environ

        backend = env.get("WORKENGINE_BACKEND", "sqlite").strip().lower()
        if backend not in BACKENDS:
            raise ValueError(
                f"WORKENGINE_BACKEND must be one of {', '.join(BACKENDS)}, got {backend!r}"
            )

        raw_timeout = env.get("WORKENGINE_REST_TIMEOUT")
        try:
            rest_timeout = float(raw_timeout) if raw_timeout else DEFAULT_REST_TIMEOUT
        except ValueError:
            raise ValueError(f"WORKENGINE_REST_TIMEOUT must be a number, got {raw_timeout!r}")
        if rest_timeout <= 0:
            raise ValueError("WORKENGINE_REST_TIMEOUT must be positive")

        return cls(
            backend=backend,
            database_path=Path(env.get("WORKENGINE_DB", DEFAULT_DB_PATH)),
            snapshot_path=Path(env.get("WORKENGINE_SNAPSHOT", DEFAULT_SNAPSHOT_PATH)),
            rest_url=env.get("WORKENGINE_REST_URL") or None,
            rest_key=env.get("WORKENGINE_REST_KEY") or None,
            rest_timeout=rest_timeout,
        )
