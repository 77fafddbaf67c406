"""Remote config store: the versioned config file inside the repository.

All I/O goes through the injected :class:`GitService`.  The store is the
boundary where remote failures stop: network errors, malformed JSON and
stale concurrency tokens are logged and reported as ``None`` / ``False``,
never raised, so callers can fall back to the cache or a scan.

Writes are not lock-guarded here; callers wrap them in the sync lock.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger

from pagesync.engine.git.base import ConcurrencyConflictError

if TYPE_CHECKING:
    from pagesync.engine.git.base import GitService

DEFAULT_CONFIG_PATH = ".pageelrc.json"


class RemoteUnavailableError(RuntimeError):
    """Remote config could not be read or parsed."""


@dataclass(frozen=True)
class RemoteDocument:
    """A parsed config file plus the token it was read at."""

    content: dict[str, Any]
    sha: str | None = None


def dumps(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False)


class RemoteConfigStore:
    """Read / write the single config file with optimistic concurrency."""

    def __init__(self, git: GitService, path: str = DEFAULT_CONFIG_PATH) -> None:
        self._git = git
        self.path = path

    # -- Read ------------------------------------------------------------------

    async def read(self) -> RemoteDocument | None:
        """Fetch and parse the config file.  None if missing or unavailable."""
        try:
            return await self._read()
        except FileNotFoundError:
            logger.info("No {} in repository", self.path)
            return None
        except Exception as exc:
            logger.warning("Remote config unavailable ({}): {}", self.path, exc)
            return None

    async def _read(self) -> RemoteDocument:
        raw = await self._git.get_file_content(self.path)
        try:
            content = json.loads(raw)
        except json.JSONDecodeError as exc:
            msg = f"{self.path} is not valid JSON: {exc}"
            raise RemoteUnavailableError(msg) from None
        if not isinstance(content, dict):
            msg = f"{self.path} does not contain a JSON object"
            raise RemoteUnavailableError(msg)
        sha = await self._git.get_file_sha(self.path)
        return RemoteDocument(content=content, sha=sha)

    async def token(self) -> str | None:
        """Current concurrency token, or None if the file is missing or unreachable."""
        try:
            return await self._git.get_file_sha(self.path)
        except Exception as exc:
            logger.warning("Could not fetch token for {}: {}", self.path, exc)
            return None

    # -- Write -----------------------------------------------------------------

    async def write(self, document: dict[str, Any], message: str, sha: str | None = None) -> bool:
        """Update the file at token *sha*, or create it when *sha* is None."""
        content = dumps(document)
        try:
            if sha is not None:
                await self._git.update_file(self.path, content, message, sha)
            else:
                await self._git.create_file(self.path, content, message)
        except ConcurrencyConflictError:
            logger.warning("Write to {} rejected: file changed since it was read", self.path)
            return False
        except Exception as exc:
            logger.warning("Write to {} failed: {}", self.path, exc)
            return False
        logger.info("Wrote {} ({})", self.path, message)
        return True

    async def save(self, document: dict[str, Any], message: str) -> bool:
        """Update if the file exists, otherwise create it."""
        return await self.write(document, message, sha=await self.token())

    async def delete(self, message: str) -> bool:
        """Delete the file.  True if it was deleted or did not exist."""
        try:
            sha = await self._git.get_file_sha(self.path)
            if sha is None:
                return True
            await self._git.delete_file(self.path, sha, message)
        except Exception as exc:
            logger.warning("Delete of {} failed: {}", self.path, exc)
            return False
        logger.info("Deleted {}", self.path)
        return True
