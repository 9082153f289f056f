"""Permalink resolution.

Builds the rewrite table mapping each content file's default path to the
path it is served at. A file declaring ``permalink`` in its front-matter is
served there; every other file is served at its default path.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from pathlib import PurePosixPath

from notestage.core.content import ContentFile
from notestage.core.types import ServedPath, SourcePath

logger = logging.getLogger(__name__)


class PermalinkCollisionError(ValueError):
    """Two or more content files resolve to the same served path or output file."""

    def __init__(self, collisions: dict[str, list[SourcePath]]) -> None:
        self.collisions = collisions
        details = "; ".join(
            f"{route!r} <- {', '.join(sources)}" for route, sources in sorted(collisions.items())
        )
        super().__init__(f"Permalink collision: {details}")


class RewriteTable(Mapping[SourcePath, ServedPath]):
    """Read-only mapping from source path to served path."""

    __slots__ = ("_entries", "_reverse")

    def __init__(self, entries: dict[SourcePath, ServedPath]) -> None:
        self._entries = dict(entries)
        self._reverse: dict[str, SourcePath] = {}
        for source in sorted(self._entries):
            self._reverse.setdefault(route_key(self._entries[source]), source)

    def __getitem__(self, source_path: SourcePath) -> ServedPath:
        return self._entries[source_path]

    def __iter__(self) -> Iterator[SourcePath]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def source_for(self, served_path: str) -> SourcePath | None:
        """Reverse lookup: find the source file served at a path.

        Args:
            served_path: Served path, with or without surrounding slashes

        Returns:
            Source path, or None if nothing is served there
        """
        return self._reverse.get(route_key(served_path))

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {source: self._entries[source] for source in sorted(self._entries)}


def route_key(path: str) -> str:
    """Normalize a served path for comparison (``/a/b/`` == ``a/b``)."""
    return path.strip().strip("/")


def output_path_for(served_path: str) -> PurePosixPath:
    """Map a served path to an output file path relative to the output dir.

    ``guide/intro.md`` -> ``guide/intro.html``, ``/pages/abc/`` ->
    ``pages/abc/index.html``, ``/pages/abc`` -> ``pages/abc.html``.

    Raises:
        ValueError: If the path leaves the output directory
    """
    path = served_path.strip()
    if ".." in PurePosixPath(path).parts:
        raise ValueError(f"Served path escapes the output directory: {served_path}")
    if path.endswith("/") or not path.strip("/"):
        return PurePosixPath(path.strip("/")) / "index.html"
    posix = PurePosixPath(path.strip("/"))
    if posix.suffix in (".md", ".html"):
        return posix.with_suffix(".html")
    return posix.with_name(posix.name + ".html")


def _claim_keys(served: str) -> list[str]:
    """Keys two served paths must not share: the route and the output file."""
    keys = [route_key(served)]
    if ".." not in PurePosixPath(served.strip()).parts:
        output = output_path_for(served).as_posix()
        if output != keys[0]:
            keys.append(output)
    return keys


def resolve_permalinks(
    files: Iterable[ContentFile],
    *,
    on_collision: str = "error",
) -> RewriteTable:
    """Build the rewrite table for a set of content files.

    Args:
        files: All content files of the build
        on_collision: "error" to raise on colliding served paths or output files,
                      "warn" to log each collision and keep every entry

    Returns:
        RewriteTable with one entry per file

    Raises:
        PermalinkCollisionError: If served paths or their output files collide
                                 and on_collision is "error"
    """
    if on_collision not in ("error", "warn"):
        raise ValueError(f"Unknown collision policy: {on_collision}")

    entries: dict[SourcePath, ServedPath] = {}
    claimed: dict[str, list[SourcePath]] = {}

    for content in files:
        permalink = content.permalink
        served = ServedPath(permalink if permalink is not None else content.source_path)
        entries[content.source_path] = served
        for key in _claim_keys(served):
            claimed.setdefault(key, []).append(content.source_path)

    collisions: dict[str, list[SourcePath]] = {}
    reported: set[tuple[SourcePath, ...]] = set()
    for key, sources in claimed.items():
        group = tuple(sorted(sources))
        if len(group) > 1 and group not in reported:
            reported.add(group)
            collisions[key] = list(group)
    if collisions:
        if on_collision == "error":
            raise PermalinkCollisionError(collisions)
        for route, sources in sorted(collisions.items()):
            logger.warning(f"Served path {route!r} claimed by {', '.join(sources)}")

    logger.debug(f"Resolved {len(entries)} routes ({len(entries) - _identity_count(entries)} custom)")
    return RewriteTable(entries)


def _identity_count(entries: dict[SourcePath, ServedPath]) -> int:
    return sum(1 for source, served in entries.items() if source == served)
