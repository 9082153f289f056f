"""Page rendering with caching.

Runs a content file through the markdown engine and transform pipeline,
renders collected diagrams via Kroki when configured, and caches the result
keyed by a digest of the render inputs.
"""

import json
import logging
from dataclasses import dataclass
from typing import cast

from mistune import Markdown

from notestage.config import Config, DiagramsConfig, LocalesConfig, MarkdownConfig
from notestage.core.cache import CacheEntry, FileCache, compute_page_digest
from notestage.core.content import ContentFile
from notestage.core.diagrams import render_diagrams, replace_diagram_placeholders
from notestage.core.engine import TITLE_ENV_KEY, TOC_ENV_KEY, create_engine
from notestage.core.fences import DIAGRAMS_ENV_KEY, DiagramSource
from notestage.core.transforms import CONTEXT_ENV_KEY, RenderContext, build_pipeline
from notestage.core.types import SourcePath

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TocEntry:
    """Table of contents entry."""

    level: int
    title: str
    id: str


@dataclass
class RenderResult:
    """Result of rendering a markdown document."""

    html: str
    title: str | None
    toc: list[TocEntry]
    source_path: SourcePath
    from_cache: bool
    warnings: list[str]


class PageRenderer:
    """Renders content files with the site engine and transform pipeline.

    When a Kroki URL is configured, diagram fences are rendered server-side
    into figures. Otherwise they are left for client-side rendering.
    """

    def __init__(
        self,
        markdown: MarkdownConfig,
        locales: LocalesConfig,
        diagrams: DiagramsConfig,
        cache: FileCache | None = None,
    ) -> None:
        """Initialize renderer.

        Args:
            markdown: Markdown pipeline configuration
            locales: Locale configuration
            diagrams: Diagram rendering configuration
            cache: Optional FileCache for rendered pages and diagrams
        """
        self._markdown = markdown
        self._locales = locales
        self._diagrams = diagrams
        self._cache = cache

        self._engine = create_engine(
            server_side_diagrams=diagrams.kroki_url is not None,
            diagram_format=diagrams.format,
        )
        self._pipeline = build_pipeline(self._engine, markdown, locales)
        self._pipeline.install(self._engine)
        self._fingerprint = repr((markdown, locales, diagrams))

    @classmethod
    def from_config(cls, config: Config, cache: FileCache | None = None) -> "PageRenderer":
        return cls(config.markdown, config.locales, config.diagrams, cache)

    @property
    def engine(self) -> Markdown:
        """Markdown engine with the pipeline installed."""
        return self._engine

    def context_for(self, content: ContentFile) -> RenderContext:
        return RenderContext.for_document(content, self._markdown, self._locales)

    def render(self, content: ContentFile) -> RenderResult:
        """Render a content file.

        Args:
            content: Content file to render

        Returns:
            RenderResult with HTML, title, and ToC

        Raises:
            NestedFenceError: If marked fences nest too deeply
        """
        context = self.context_for(content)
        digest = compute_page_digest(
            content.source_path,
            json.dumps(content.front_matter, sort_keys=True, default=str),
            content.body,
            self._fingerprint,
        )

        if self._cache is not None:
            cached = self._cache.get(content.source_path, digest)
            if cached is not None:
                logger.debug(f"Cache hit: {content.source_path}")
                return _from_cache(cached, content.source_path)

        result = self._render_fresh(content, context)

        if self._cache is not None and not result.warnings:
            self._cache.set(
                content.source_path,
                result.html,
                result.title,
                digest,
                [{"level": e.level, "title": e.title, "id": e.id} for e in result.toc],
            )

        return result

    def _render_fresh(self, content: ContentFile, context: RenderContext) -> RenderResult:
        state = self._engine.block.state_cls()
        state.env[CONTEXT_ENV_KEY] = context
        html, state = self._engine.parse(content.body, state)
        html = cast(str, html)

        warnings: list[str] = []
        diagrams: list[DiagramSource] = state.env.get(DIAGRAMS_ENV_KEY, [])
        if diagrams and self._diagrams.kroki_url:
            rendered = render_diagrams(
                diagrams, self._diagrams.kroki_url, self._cache, dpi=self._diagrams.dpi
            )
            warnings.extend(
                f"Diagram {d.index} failed to render" for d in rendered if d.format == "error"
            )
            html = replace_diagram_placeholders(html, rendered)

        title = content.front_matter.get("title")
        if not isinstance(title, str) or not title.strip():
            title = state.env.get(TITLE_ENV_KEY)

        toc = [
            TocEntry(level=level, title=text, id=anchor)
            for level, anchor, text in state.env.get(TOC_ENV_KEY, [])
        ]

        logger.debug(f"Rendered {content.source_path} (home={context.is_home_page}, locale={context.locale})")
        return RenderResult(
            html=html,
            title=title,
            toc=toc,
            source_path=content.source_path,
            from_cache=False,
            warnings=warnings,
        )


def _from_cache(cached: CacheEntry, source_path: SourcePath) -> RenderResult:
    """Create RenderResult from cache entry."""
    toc = [
        TocEntry(level=int(entry["level"]), title=str(entry["title"]), id=str(entry["id"]))
        for entry in cached.meta["toc"]
    ]
    return RenderResult(
        html=cached.html,
        title=cached.meta["title"],
        toc=toc,
        source_path=source_path,
        from_cache=True,
        warnings=[],
    )
