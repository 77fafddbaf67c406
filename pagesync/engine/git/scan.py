"""Repository content discovery built on ``GitService.get_repo_contents``.

Used during first-run setup to suggest a production URL and the posts /
images directories.  Suggestions are ranked so that conventional locations
(``src/content/blog``, ``public/images``, ...) come first; the engine
applies the first suggestion as a working default and exposes the rest.
"""

from __future__ import annotations

import json
import re
from collections import deque

from loguru import logger

from pagesync.engine.git.base import GitService, RepoEntry

CONTENT_EXTENSIONS = (".md", ".mdx")
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".avif")

_CONTENT_HINTS = ("src/content/", "content/", "posts", "blog", "_posts")
_IMAGE_HINTS = ("public/images", "public/", "src/assets", "assets", "images", "static")

_ASTRO_CONFIGS = ("astro.config.mjs", "astro.config.ts", "astro.config.js")
_SITE_RE = re.compile(r"""\bsite\s*:\s*['"`]([^'"`]+)['"`]""")


class RepoScanner:
    """Breadth-first scanner implementing the RepositoryScanner protocol."""

    def __init__(self, git: GitService, *, max_depth: int = 4) -> None:
        self._git = git
        self._max_depth = max_depth

    # -- Production URL --------------------------------------------------------

    async def find_production_url(self) -> str | None:
        for name in _ASTRO_CONFIGS:
            text = await self._read_optional(name)
            if text and (match := _SITE_RE.search(text)):
                return match.group(1).rstrip("/")

        cname = await self._read_optional("CNAME")
        if cname and cname.strip():
            return f"https://{cname.strip().splitlines()[0]}"

        package = await self._read_optional("package.json")
        if package:
            try:
                homepage = json.loads(package).get("homepage")
            except (json.JSONDecodeError, AttributeError):
                homepage = None
            if isinstance(homepage, str) and homepage.startswith("http"):
                return homepage.rstrip("/")
        return None

    # -- Directories -----------------------------------------------------------

    async def scan_for_content_directories(self) -> list[str]:
        found = await self._dirs_holding(CONTENT_EXTENSIONS)
        return _rank(found, _CONTENT_HINTS)

    async def scan_for_image_directories(self) -> list[str]:
        found = await self._dirs_holding(IMAGE_EXTENSIONS)
        return _rank(found, _IMAGE_HINTS)

    async def _dirs_holding(self, extensions: tuple[str, ...]) -> list[str]:
        """Directories (excluding the root) that directly contain a matching file."""
        found: list[str] = []
        queue: deque[tuple[str, int]] = deque([("", 0)])
        while queue:
            path, depth = queue.popleft()
            entries: list[RepoEntry] = await self._git.get_repo_contents(path)
            if path and any(e.type == "file" and e.name.lower().endswith(extensions) for e in entries):
                found.append(path)
            if depth < self._max_depth:
                queue.extend((e.path, depth + 1) for e in entries if e.type == "dir" and not e.name.startswith("."))
        logger.debug("Scan for {} matched {} directories", extensions, len(found))
        return found

    async def _read_optional(self, path: str) -> str | None:
        try:
            return await self._git.get_file_content(path)
        except FileNotFoundError:
            return None


def _rank(paths: list[str], hints: tuple[str, ...]) -> list[str]:
    def score(path: str) -> tuple[int, int, str]:
        for index, hint in enumerate(hints):
            if path.startswith(hint) or path.endswith(hint.rstrip("/")):
                return (index, path.count("/"), path)
        return (len(hints), path.count("/"), path)

    return sorted(paths, key=score)
