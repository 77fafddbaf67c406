"""Local checkout implementation of the GitService capability.

Treats a working-tree directory as the repository::

    {root}/{path}

The concurrency token is the Git blob SHA-1 of the file content, so a token
obtained from a read goes stale as soon as anyone rewrites the file.  Commit
messages are recorded in :attr:`LocalGitService.history` rather than
committed; turning the edits into commits is left to the user's own Git
tooling.

Uses ``anyio.to_thread.run_sync`` for non-blocking file I/O.
"""

from __future__ import annotations

import hashlib
from functools import partial
from pathlib import Path

from anyio import to_thread
from loguru import logger

from pagesync.engine.git.base import ConcurrencyConflictError, RepoEntry

_SKIP_DIRS = frozenset({".git", "node_modules", ".venv", "__pycache__"})


def blob_sha(content: bytes) -> str:
    """SHA-1 of *content* as Git hashes a blob object."""
    header = f"blob {len(content)}\0".encode()
    return hashlib.sha1(header + content, usedforsecurity=False).hexdigest()


class LocalGitService:
    """Filesystem-backed implementation of the GitService protocol."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()
        self.history: list[tuple[str, str]] = []
        """``(message, path)`` for every successful mutation, oldest first."""

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, path: str) -> Path:
        target = (self._root / path.lstrip("/")).resolve()
        if not target.is_relative_to(self._root):
            msg = f"Path escapes repository root: {path}"
            raise ValueError(msg)
        return target

    # -- Read ------------------------------------------------------------------

    async def get_file_content(self, path: str) -> str:
        target = self._resolve(path)
        return await to_thread.run_sync(partial(target.read_text, encoding="utf-8"))

    async def get_file_sha(self, path: str) -> str | None:
        target = self._resolve(path)
        return await to_thread.run_sync(partial(_sha_or_none, target))

    async def get_repo_contents(self, path: str) -> list[RepoEntry]:
        target = self._resolve(path)
        return await to_thread.run_sync(partial(_list_dir, self._root, target))

    # -- Write -----------------------------------------------------------------

    async def create_file(self, path: str, content: str, message: str) -> None:
        target = self._resolve(path)
        await to_thread.run_sync(partial(_create, target, content))
        self._record(message, path)

    async def update_file(self, path: str, content: str, message: str, sha: str) -> None:
        target = self._resolve(path)
        await to_thread.run_sync(partial(_update, target, content, sha, path))
        self._record(message, path)

    async def delete_file(self, path: str, sha: str, message: str) -> None:
        target = self._resolve(path)
        await to_thread.run_sync(partial(_delete, target, sha, path))
        self._record(message, path)

    def _record(self, message: str, path: str) -> None:
        logger.debug("{}: {}", path, message)
        self.history.append((message, path))


# -- Sync helpers (run in thread pool) -----------------------------------------


def _sha_or_none(target: Path) -> str | None:
    if not target.is_file():
        return None
    return blob_sha(target.read_bytes())


def _check_token(target: Path, sha: str, path: str) -> None:
    if not target.is_file():
        raise FileNotFoundError(path)
    if blob_sha(target.read_bytes()) != sha:
        raise ConcurrencyConflictError(path)


def _create(target: Path, content: str) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("x", encoding="utf-8") as f:
        f.write(content)


def _update(target: Path, content: str, sha: str, path: str) -> None:
    _check_token(target, sha, path)
    target.write_text(content, encoding="utf-8")


def _delete(target: Path, sha: str, path: str) -> None:
    _check_token(target, sha, path)
    target.unlink()


def _list_dir(root: Path, target: Path) -> list[RepoEntry]:
    if not target.is_dir():
        raise FileNotFoundError(str(target))
    entries = []
    for child in sorted(target.iterdir()):
        if child.name in _SKIP_DIRS:
            continue
        entries.append(
            RepoEntry(
                name=child.name,
                path=child.relative_to(root).as_posix(),
                type="dir" if child.is_dir() else "file",
            )
        )
    return entries
