"""Shared test fixtures."""

from pathlib import Path

import pytest
from notestage.config import (
    Config,
    DiagramsConfig,
    DocsConfig,
    LocalesConfig,
    MarkdownConfig,
    RoutingConfig,
    ServerConfig,
)
from notestage.core.renderer import PageRenderer


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    """Create an empty content directory."""
    docs = tmp_path / "docs"
    docs.mkdir(exist_ok=True)
    return docs


@pytest.fixture
def test_config(tmp_path: Path, docs_dir: Path) -> Config:
    """Create a test configuration with tmp_path directories."""
    return Config(
        server=ServerConfig(),
        docs=DocsConfig(
            source_dir=docs_dir,
            out_dir=tmp_path / "dist",
            cache_dir=tmp_path / ".cache",
        ),
        diagrams=DiagramsConfig(),
        markdown=MarkdownConfig(),
        routing=RoutingConfig(),
        locales=LocalesConfig(prefixes=["en"]),
    )


@pytest.fixture
def renderer() -> PageRenderer:
    """Renderer with default settings, an ``en`` locale and no cache."""
    return PageRenderer(MarkdownConfig(), LocalesConfig(prefixes=["en"]), DiagramsConfig())
