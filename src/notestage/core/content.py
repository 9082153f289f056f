"""Content tree scanning and front-matter parsing.

A content file is a markdown document with an optional YAML front-matter
block delimited by ``---`` lines at the very top of the file.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from notestage.core.types import SourcePath

logger = logging.getLogger(__name__)

_FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\n(.*?\n)?---[ \t]*(?:\n|\Z)", re.DOTALL)


class FrontMatterError(ValueError):
    """Front-matter block is not valid YAML or not a mapping."""


@dataclass(frozen=True)
class ContentFile:
    """Markdown document loaded from the content tree."""

    source_path: SourcePath
    front_matter: dict[str, Any] = field(default_factory=dict)
    body: str = ""

    def __post_init__(self) -> None:
        value = self.front_matter.get("permalink")
        if value is not None and not isinstance(value, str):
            raise ValueError(f"{self.source_path}: permalink must be a string")

    @property
    def permalink(self) -> str | None:
        """Declared permalink, or None when missing or blank."""
        value = self.front_matter.get("permalink")
        if not isinstance(value, str):
            return None
        return value.strip() or None


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Split markdown text into front-matter mapping and body.

    Args:
        text: Full file content

    Returns:
        Tuple of (front_matter, body). Front-matter is empty when absent.

    Raises:
        FrontMatterError: If the block is not valid YAML or not a mapping
    """
    text = text.replace("\r\n", "\n")
    match = _FRONT_MATTER_RE.match(text)
    if match is None:
        return {}, text

    raw = match.group(1) or ""
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise FrontMatterError(f"Invalid front-matter: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError("Front-matter must be a mapping")

    return data, text[match.end() :]


def load_content_file(source_dir: Path, path: Path) -> ContentFile:
    """Load a single content file.

    Args:
        source_dir: Content root
        path: Absolute path to the markdown file inside source_dir

    Returns:
        ContentFile with source_path relative to source_dir

    Raises:
        FrontMatterError: If front-matter is invalid
        UnicodeDecodeError: If the file is not valid UTF-8
        ValueError: If the permalink is not a string
    """
    source_path = SourcePath(path.relative_to(source_dir).as_posix())
    text = path.read_text(encoding="utf-8")
    try:
        front_matter, body = split_front_matter(text)
    except FrontMatterError as e:
        raise FrontMatterError(f"{source_path}: {e}") from e
    return ContentFile(source_path=source_path, front_matter=front_matter, body=body)


def list_content_paths(source_dir: Path) -> list[Path]:
    """List the markdown files under the content root.

    Hidden directories (``.vitepress``, ``.cache``, ...) are skipped.
    Paths are returned sorted.

    Raises:
        FileNotFoundError: If source_dir doesn't exist
    """
    if not source_dir.is_dir():
        raise FileNotFoundError(f"Source directory not found: {source_dir}")

    return [
        path
        for path in sorted(source_dir.rglob("*.md"))
        if not any(part.startswith(".") for part in path.relative_to(source_dir).parts)
    ]


def scan_content(source_dir: Path) -> list[ContentFile]:
    """Load every markdown file under the content root.

    Args:
        source_dir: Content root

    Returns:
        List of ContentFile sorted by source path

    Raises:
        FileNotFoundError: If source_dir doesn't exist
        FrontMatterError: If a file has invalid front-matter
        ValueError: If a file declares a non-string permalink
    """
    files = [load_content_file(source_dir, path) for path in list_content_paths(source_dir)]
    logger.debug(f"Scanned {len(files)} content files in {source_dir}")
    return files
