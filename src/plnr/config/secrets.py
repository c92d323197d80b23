"""Secret lookup with dotenv support.

Priority order:
1. Environment variables (os.environ)
2. .env file in the current working directory (cached)
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import dotenv_values

SECRETS_FILE = ".env"


@lru_cache(maxsize=4)
def _load_secrets(secrets_path: Path | None = None) -> dict[str, str | None]:
    """Load and cache a dotenv file."""
    path = secrets_path or Path(SECRETS_FILE)
    if path.exists():
        return dotenv_values(path)
    return {}


def fetch_secret(
    key: str,
    default: str | None = None,
    secrets_path: Path | None = None,
) -> str | None:
    """Fetch a secret from the environment or a .env file.

    Environment variables win so tests can use monkeypatch.delenv().

    Example:
        >>> fetch_secret("OPENROUTER_API_KEY")
        'sk-or-v1-...'
    """
    value = os.environ.get(key)
    if value is not None:
        return value

    secrets = _load_secrets(secrets_path)
    found = secrets.get(key)
    if found is not None:
        return found

    return default


def clear_secret_cache() -> None:
    """Forget cached .env contents."""
    _load_secrets.cache_clear()
