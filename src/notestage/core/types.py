"""Core type definitions."""

from typing import Any, NewType

# Content path relative to the source root, POSIX separators (e.g., "guide/intro.md")
SourcePath = NewType("SourcePath", str)

# Path a document is served at (e.g., "/pages/a1b2c3/" or "guide/intro.md")
ServedPath = NewType("ServedPath", str)

# mistune block token
Token = dict[str, Any]
