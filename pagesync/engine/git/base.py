"""Capability interfaces handed to the engine.

The engine never speaks a Git hosting protocol itself.  It is given an
object implementing :class:`GitService` (file I/O with optimistic
concurrency) and one implementing :class:`RepositoryScanner` (content
discovery for first-run setup).  Authentication is the implementer's
concern.

Concurrency tokens are opaque strings (the blob SHA on Git hosts).  Updating
or deleting an existing file requires the token from a prior read; a stale
token must raise :class:`ConcurrencyConflictError`.
"""

from __future__ import annotations

from typing import Literal, Protocol, runtime_checkable

from pydantic import BaseModel


class ConcurrencyConflictError(RuntimeError):
    """Raised when a write carries a stale (or missing) concurrency token."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Concurrency token for '{path}' is stale")
        self.path = path


class RepoEntry(BaseModel):
    """One item of a directory listing."""

    name: str
    path: str
    type: Literal["file", "dir"]


@runtime_checkable
class GitService(Protocol):
    """Async file I/O against the managed repository."""

    async def get_file_content(self, path: str) -> str:
        """Return file text.  Raises ``FileNotFoundError`` if missing."""
        ...

    async def get_file_sha(self, path: str) -> str | None:
        """Return the concurrency token for *path*, or None if it does not exist."""
        ...

    async def create_file(self, path: str, content: str, message: str) -> None:
        """Create a new file.  Raises ``FileExistsError`` if present."""
        ...

    async def update_file(self, path: str, content: str, message: str, sha: str) -> None:
        """Replace an existing file.  Raises ``ConcurrencyConflictError`` on a stale token."""
        ...

    async def delete_file(self, path: str, sha: str, message: str) -> None:
        """Delete a file.  Raises ``ConcurrencyConflictError`` on a stale token."""
        ...

    async def get_repo_contents(self, path: str) -> list[RepoEntry]:
        """List a directory.  Raises ``FileNotFoundError`` if missing."""
        ...


@runtime_checkable
class RepositoryScanner(Protocol):
    """Content discovery used when no usable configuration exists."""

    async def find_production_url(self) -> str | None: ...

    async def scan_for_content_directories(self) -> list[str]: ...

    async def scan_for_image_directories(self) -> list[str]: ...
