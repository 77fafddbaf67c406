"""Injected repository capabilities: file I/O and content discovery."""

from pagesync.engine.git.base import ConcurrencyConflictError, GitService, RepoEntry, RepositoryScanner
from pagesync.engine.git.local import LocalGitService
from pagesync.engine.git.scan import RepoScanner

__all__ = [
    "ConcurrencyConflictError",
    "GitService",
    "LocalGitService",
    "RepoEntry",
    "RepoScanner",
    "RepositoryScanner",
]
