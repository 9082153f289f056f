"""Server-side diagram rendering via Kroki.

Diagram fences collected by the engine are rendered through a Kroki server,
with content-hash caching to avoid redundant requests, and swapped in for
their ``{{DIAGRAM_N}}`` placeholders.
"""

import base64
import logging
import re
import urllib.error
import urllib.request
import zlib
from dataclasses import dataclass

from notestage.core.cache import FileCache, compute_diagram_hash
from notestage.core.fences import DiagramSource

logger = logging.getLogger(__name__)

GOOGLE_FONTS_RE = re.compile(r"@import\s+url\([^)]*fonts\.googleapis\.com[^)]*\)\s*;?")


@dataclass
class RenderedDiagram:
    """A rendered diagram ready for HTML insertion."""

    index: int
    content: str
    format: str


def render_diagrams(
    diagrams: list[DiagramSource],
    kroki_url: str,
    cache: FileCache | None = None,
    *,
    dpi: int = 192,
) -> list[RenderedDiagram]:
    """Render diagrams via Kroki, reusing cached results.

    A diagram that fails to render is replaced by an inline error block; the
    page itself still renders.

    Args:
        diagrams: Diagram sources collected from a document
        kroki_url: Kroki server URL
        cache: Optional FileCache for diagram caching
        dpi: DPI (part of the cache key)

    Returns:
        List of RenderedDiagram ordered by index
    """
    results: list[RenderedDiagram] = []
    server_url = kroki_url.rstrip("/")

    for diagram in diagrams:
        content_hash = compute_diagram_hash(diagram.source, diagram.endpoint, diagram.format, dpi)
        cached = cache.get_diagram(content_hash, diagram.format) if cache else None
        if cached is not None:
            results.append(RenderedDiagram(diagram.index, cached, diagram.format))
            continue

        try:
            if diagram.format == "svg":
                content = _render_svg(diagram, server_url)
            else:
                content = _render_png_data_uri(diagram, server_url)
        except (urllib.error.URLError, OSError, TimeoutError) as e:
            logger.warning(f"Diagram {diagram.index} ({diagram.endpoint}) failed: {e}")
            results.append(
                RenderedDiagram(
                    diagram.index,
                    f'<pre class="diagram-error">Diagram rendering failed: {e}</pre>',
                    "error",
                )
            )
            continue

        if cache:
            cache.set_diagram(content_hash, diagram.format, content)
        results.append(RenderedDiagram(diagram.index, content, diagram.format))

    results.sort(key=lambda r: r.index)
    return results


def _render_svg(diagram: DiagramSource, server_url: str) -> str:
    """Render diagram as SVG with Google Fonts imports stripped."""
    url = f"{server_url}/{diagram.endpoint}/svg/{_encode_source(diagram.source)}"

    with urllib.request.urlopen(url, timeout=30) as response:
        svg = response.read().decode("utf-8")

    return GOOGLE_FONTS_RE.sub("", svg)


def _render_png_data_uri(diagram: DiagramSource, server_url: str) -> str:
    """Render diagram as PNG data URI."""
    url = f"{server_url}/{diagram.endpoint}/png/{_encode_source(diagram.source)}"

    with urllib.request.urlopen(url, timeout=30) as response:
        png_data = response.read()

    b64 = base64.b64encode(png_data).decode("ascii")
    return f"data:image/png;base64,{b64}"


def _encode_source(source: str) -> str:
    """Encode diagram source for a Kroki GET URL (deflate + URL-safe base64)."""
    compressed = zlib.compress(source.encode("utf-8"), level=9)
    return base64.urlsafe_b64encode(compressed).decode("ascii")


def replace_diagram_placeholders(html: str, diagrams: list[RenderedDiagram]) -> str:
    """Replace diagram placeholders with rendered content.

    Args:
        html: HTML with {{DIAGRAM_N}} placeholders
        diagrams: Rendered diagrams

    Returns:
        HTML with diagrams inserted
    """
    for diagram in diagrams:
        placeholder = f"{{{{DIAGRAM_{diagram.index}}}}}"

        if diagram.format == "error":
            figure = diagram.content
        elif diagram.format == "svg":
            figure = f'<figure class="diagram">{diagram.content}</figure>'
        else:
            figure = f'<figure class="diagram"><img src="{diagram.content}" alt="diagram"></figure>'

        html = html.replace(placeholder, figure)

    return html
