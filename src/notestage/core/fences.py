"""Fence decorations: title/icon annotations and diagram recognition.

Both are plain mistune plugins. They only touch ``block_code`` tokens and
do not depend on each other or on the transform pipeline.
"""

import re
from dataclasses import dataclass
from typing import Any

from mistune import BlockState, Markdown
from mistune.util import escape as escape_text

from notestage.core.tokens import fence_info, fence_language, iter_tokens

_TITLE_RE = re.compile(r"\[(?P<title>[^\]]+)\]")

# Fence language -> Kroki endpoint
DIAGRAM_ENDPOINTS = {
    "mermaid": "mermaid",
    "plantuml": "plantuml",
    "puml": "plantuml",
    "graphviz": "graphviz",
    "dot": "graphviz",
    "d2": "d2",
    "ditaa": "ditaa",
    "erd": "erd",
    "nomnoml": "nomnoml",
    "bpmn": "bpmn",
    "c4plantuml": "c4plantuml",
}

DIAGRAMS_ENV_KEY = "diagrams"


@dataclass
class DiagramSource:
    """A diagram fence collected for server-side rendering."""

    index: int
    source: str
    endpoint: str
    format: str


def fence_icons_hook(md: Markdown, state: BlockState) -> None:
    for token in iter_tokens(state.tokens):
        if token["type"] != "block_code":
            continue
        info = fence_info(token)
        m = _TITLE_RE.search(info)
        if m is None:
            continue
        title = m.group("title").strip()
        remainder = (info[: m.start()] + info[m.end() :]).strip()
        attrs = dict(token.get("attrs") or {})
        attrs["info"] = remainder
        attrs["title"] = title
        attrs["icon"] = _icon_for(title, remainder)
        token["attrs"] = attrs


def _icon_for(title: str, info: str) -> str:
    """Icon name from the title's file extension, else the fence language."""
    name = title.rsplit("/", 1)[-1]
    if "." in name.strip("."):
        return name.rsplit(".", 1)[-1].lower()
    language = info.split(None, 1)
    return language[0].lower() if language else "text"


def fence_icons(md: Markdown) -> None:
    """Mistune plugin annotating ``lang [file.ext]`` fences with a title and icon."""
    md.before_render_hooks.append(fence_icons_hook)


def diagrams(*, server_side: bool = False, fmt: str = "svg") -> Any:
    """Create a mistune plugin recognizing diagram fences.

    Args:
        server_side: Emit ``{{DIAGRAM_N}}`` placeholders and collect sources in
                     ``state.env["diagrams"]`` for Kroki rendering. Otherwise
                     diagrams are emitted for client-side rendering.
        fmt: Output format requested from Kroki ("svg" or "png")

    Returns:
        Plugin function
    """

    def diagrams_hook(md: Markdown, state: BlockState) -> None:
        collected: list[DiagramSource] = state.env.setdefault(DIAGRAMS_ENV_KEY, [])
        for token in iter_tokens(state.tokens):
            if token["type"] != "block_code":
                continue
            language = fence_language(token)
            endpoint = DIAGRAM_ENDPOINTS.get(language)
            if endpoint is None:
                continue
            attrs: dict[str, Any] = {"language": language}
            if server_side:
                attrs["index"] = len(collected)
                collected.append(
                    DiagramSource(
                        index=attrs["index"],
                        source=token["raw"],
                        endpoint=endpoint,
                        format=fmt,
                    )
                )
            token["type"] = "diagram"
            token["attrs"] = attrs

    def plugin(md: Markdown) -> None:
        md.before_render_hooks.append(diagrams_hook)
        if md.renderer and md.renderer.NAME == "html":
            md.renderer.register("diagram", render_diagram)

    return plugin


def render_diagram(renderer: Any, code: str, language: str, index: int | None = None) -> str:
    if index is not None:
        return f"{{{{DIAGRAM_{index}}}}}\n"
    if language == "mermaid":
        return '<pre class="mermaid">' + escape_text(code) + "</pre>\n"
    return (
        '<pre class="diagram diagram-'
        + language
        + '"><code>'
        + escape_text(code)
        + "</code></pre>\n"
    )
