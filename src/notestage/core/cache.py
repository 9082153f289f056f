"""On-disk render cache.

Layout::

    .cache/
    ├── .gitignore
    ├── pages/
    │   └── guide/intro.md.json      # {"digest", "title", "toc", "html"}
    └── diagrams/
        └── <content_hash>.svg       # SVG markup or PNG data URI

A page entry is only returned when its stored digest equals the digest of
the current render inputs, so stale entries never need explicit cleanup.
"""

import hashlib
import json
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TypedDict


class CachedMetadata(TypedDict):
    """Page metadata stored next to the rendered HTML."""

    title: str | None
    digest: str
    toc: list[dict[str, str | int]]


@dataclass
class CacheEntry:
    """Cached page."""

    html: str
    meta: CachedMetadata


def compute_diagram_hash(source: str, endpoint: str, fmt: str, dpi: int = 192) -> str:
    """Cache key of a rendered diagram.

    Args:
        source: Diagram source code
        endpoint: Kroki endpoint (e.g., "plantuml", "mermaid")
        fmt: Output format ("svg" or "png")
        dpi: DPI used for rendering

    Returns:
        Hex SHA-256 digest
    """
    return hashlib.sha256(f"{endpoint}:{fmt}:{dpi}:{source}".encode()).hexdigest()


def compute_page_digest(*parts: str) -> str:
    """Invalidation digest of a page from its render inputs."""
    digest = hashlib.sha256()
    for part in parts:
        digest.update(part.encode("utf-8"))
        digest.update(b"\0")
    return digest.hexdigest()


class FileCache:
    """Render cache rooted at a directory."""

    _GITIGNORE_CONTENT = "# Ignore everything in this directory\n*\n"

    def __init__(self, cache_dir: Path) -> None:
        self._cache_dir = cache_dir
        self._pages_dir = cache_dir / "pages"
        self._diagrams_dir = cache_dir / "diagrams"

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def get(self, path: str, digest: str) -> CacheEntry | None:
        """Look up a rendered page.

        Args:
            path: Source path (e.g., "guide/intro.md")
            digest: Digest of the current render inputs

        Returns:
            CacheEntry, or None when missing, unreadable or stale
        """
        data = self._read_json(self._page_path(path))
        if data is None or data.get("digest") != digest:
            return None

        html = data.get("html")
        toc = data.get("toc")
        if not isinstance(html, str) or not isinstance(toc, list):
            return None

        meta: CachedMetadata = {"title": data.get("title"), "digest": digest, "toc": toc}
        return CacheEntry(html=html, meta=meta)

    def set(
        self,
        path: str,
        html: str,
        title: str | None,
        digest: str,
        toc: list[dict[str, str | int]],
    ) -> None:
        """Store a rendered page.

        Args:
            path: Source path (e.g., "guide/intro.md")
            html: Rendered HTML
            title: Page title (or None)
            digest: Digest of the render inputs
            toc: Table of contents entries
        """
        page_path = self._page_path(path)
        self._prepare(page_path.parent)
        payload = {"digest": digest, "title": title, "toc": toc, "html": html}
        page_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")

    def invalidate(self, path: str) -> None:
        self._page_path(path).unlink(missing_ok=True)

    def clear(self) -> None:
        """Drop all cached pages. Diagrams are kept."""
        shutil.rmtree(self._pages_dir, ignore_errors=True)

    def get_diagram(self, content_hash: str, fmt: str) -> str | None:
        """Look up a rendered diagram (SVG markup or PNG data URI)."""
        try:
            return (self._diagrams_dir / f"{content_hash}.{fmt}").read_text(encoding="utf-8")
        except OSError:
            return None

    def set_diagram(self, content_hash: str, fmt: str, content: str) -> None:
        self._prepare(self._diagrams_dir)
        (self._diagrams_dir / f"{content_hash}.{fmt}").write_text(content, encoding="utf-8")

    def _page_path(self, path: str) -> Path:
        return self._pages_dir / f"{path}.json"

    def _prepare(self, directory: Path) -> None:
        """Create a directory inside the cache, seeding the cache root's .gitignore."""
        if not self._cache_dir.exists():
            self._cache_dir.mkdir(parents=True)
            (self._cache_dir / ".gitignore").write_text(self._GITIGNORE_CONTENT, encoding="utf-8")
        directory.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _read_json(file_path: Path) -> dict | None:
        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return None
        return data if isinstance(data, dict) else None
