"""Shared enumerations used across the sync engine."""

from __future__ import annotations

from enum import StrEnum

# -- Settings ----------------------------------------------------------------


class ProjectType(StrEnum):
    ASTRO = "astro"
    GITHUB = "github"


class PublishDateSource(StrEnum):
    FILE = "file"
    SYSTEM = "system"


class Language(StrEnum):
    EN = "en"
    VI = "vi"


# -- Reconciliation ----------------------------------------------------------


class ConfigSource(StrEnum):
    """Which tier produced the reconciled settings."""

    NONE = "none"
    REMOTE_V2 = "remote_v2"
    REMOTE_V1 = "remote_v1"
    CACHE = "cache"
    SCAN = "scan"
    SCAN_FAILED = "scan_failed"


# -- UI routing --------------------------------------------------------------


class AppView(StrEnum):
    """Which top-level screen the consuming UI should show."""

    SCANNING = "scanning"
    SETUP = "setup"
    MAIN = "main"
