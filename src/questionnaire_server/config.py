"""Server settings, read once from ``SERVER_*`` environment variables.

Defaults suit local development: in-memory storage, bundled catalog,
remote sync off, CORS open.
"""

import os
from dataclasses import dataclass, field
from typing import Literal

from questionnaire_flow.constants import DRAFT_DEBOUNCE_SECONDS, DRAFT_STORAGE_KEY

StorageBackend = Literal["memory", "database"]
_BACKENDS = ("memory", "database")


@dataclass(frozen=True)
class ServerSettings:
    """Frozen settings snapshot handed to ``create_app()``."""

    host: str = "0.0.0.0"
    port: int = 8080
    # "*" allows any origin
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    # None loads questionnaire_flow/data/questionnaire.yaml
    catalog_path: str | None = None

    # "memory" keeps drafts and profiles in process; "database" uses
    # PostgreSQL through questionnaire_db.
    storage_backend: StorageBackend = "memory"
    # Per-user draft key is "<prefix>:<user_id>"
    draft_key_prefix: str = DRAFT_STORAGE_KEY
    draft_debounce_seconds: float = DRAFT_DEBOUNCE_SECONDS

    # None disables remote sync
    sync_base_url: str | None = None
    sync_timeout_seconds: float = 10.0

    # When set, X-User-ID is only trusted together with a matching
    # X-Proxy-Secret header.
    trusted_proxy_secret: str | None = None


def _env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    return value if value else default


def load_settings() -> ServerSettings:
    """Build :class:`ServerSettings` from the environment.

    Raises:
        ValueError: if ``SERVER_STORAGE_BACKEND`` names an unknown backend.
    """
    backend = _env("SERVER_STORAGE_BACKEND", "memory").lower()
    if backend not in _BACKENDS:
        raise ValueError(
            f"SERVER_STORAGE_BACKEND must be one of {_BACKENDS}, got {backend!r}"
        )

    origins = [
        origin.strip()
        for origin in _env("SERVER_CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]

    return ServerSettings(
        host=_env("SERVER_HOST", "0.0.0.0"),
        port=int(_env("SERVER_PORT", "8080")),
        cors_origins=origins,
        log_level=_env("SERVER_LOG_LEVEL", "INFO").upper(),
        catalog_path=_env("SERVER_CATALOG_PATH"),
        storage_backend=backend,
        draft_key_prefix=_env("SERVER_DRAFT_KEY_PREFIX", DRAFT_STORAGE_KEY),
        draft_debounce_seconds=float(
            _env("SERVER_DRAFT_DEBOUNCE_SECONDS", str(DRAFT_DEBOUNCE_SECONDS))
        ),
        sync_base_url=_env("SERVER_SYNC_BASE_URL"),
        sync_timeout_seconds=float(_env("SERVER_SYNC_TIMEOUT_SECONDS", "10")),
        trusted_proxy_secret=_env("TRUSTED_PROXY_SECRET"),
    )
