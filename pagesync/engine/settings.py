"""Process configuration loaded from PAGESYNC_* environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from pagesync.engine.models.enums import Language


class SyncSettings(BaseSettings):
    """pagesync process settings.

    All fields are read from environment variables with the ``PAGESYNC_``
    prefix.  For example, ``PAGESYNC_LOG_LEVEL=DEBUG`` maps to ``log_level``.

    These configure the engine itself.  Per-repository content settings
    (paths, commit templates, ...) are not managed here -- they live in the
    workspace and the remote config file.
    """

    model_config = SettingsConfigDict(
        env_prefix="PAGESYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"
    log_file: str | None = None
    """Optional DEBUG-level log file (rotated at 5 MB)."""

    # -- Local cache -----------------------------------------------------------
    cache_path: str = "./.pagesync/cache.json"
    """JSON file backing the local key/value cache."""

    # -- Remote config ---------------------------------------------------------
    config_path: str = ".pageelrc.json"
    """Well-known path of the config file inside the managed repository."""

    # -- Preferences -----------------------------------------------------------
    language: Language = Language.EN
    """UI language used when no global preference is cached."""


@lru_cache(maxsize=1)
def get_settings() -> SyncSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``get_settings.cache_clear()`` in tests to force a
    re-read after overriding env vars.
    """
    return SyncSettings()
