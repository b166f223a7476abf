"""Secret lookup for toolrelay.

The tool server access token and the optional resume-history payload are
read from the environment, falling back to a project-local ``.env.secrets``
file parsed with python-dotenv.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import dotenv_values

SECRETS_FILE = ".env.secrets"

ACCESS_TOKEN_KEY = "TOOLPLEX_API_KEY"
RESUME_HISTORY_KEY = "TOOLPLEX_SESSION_RESUME_HISTORY"


@lru_cache(maxsize=4)
def _load_secrets(secrets_path: Path | None = None) -> dict[str, str | None]:
    path = secrets_path or Path(SECRETS_FILE)
    if not path.exists():
        return {}
    return dotenv_values(path)


def fetch_secret(
    key: str,
    default: str | None = None,
    secrets_path: Path | None = None,
) -> str | None:
    """Fetch a secret from the environment or ``.env.secrets``.

    Real environment variables win so tests can monkeypatch them.

    Args:
        key: Variable name (e.g. "TOOLPLEX_API_KEY")
        default: Value returned when the key is found nowhere
        secrets_path: Optional explicit path to a secrets file

    Returns:
        The secret value, or ``default``.
    """
    value = os.environ.get(key)
    if value is not None:
        return value

    secrets = _load_secrets(secrets_path)
    if secrets.get(key) is not None:
        return secrets[key]

    return default


def clear_secret_cache() -> None:
    """Forget cached ``.env.secrets`` contents."""
    _load_secrets.cache_clear()
