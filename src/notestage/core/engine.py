"""Default markdown engine.

A mistune ``Markdown`` instance with the site renderer and the plugins every
document is rendered with: GFM tables, strikethrough and task lists, custom
containers, fence icons, diagram recognition, heading ids and title
extraction. The transform pipeline is installed on top of this engine.
"""

import re
import unicodedata
from typing import Any, cast

from mistune import BlockState, HTMLRenderer, Markdown
from mistune.plugins.formatting import strikethrough
from mistune.plugins.table import table
from mistune.plugins.task_lists import task_lists
from mistune.toc import normalize_toc_item
from mistune.util import striptags

from notestage.core.containers import containers
from notestage.core.fences import diagrams, fence_icons
from notestage.core.types import Token

TITLE_ENV_KEY = "title"
TOC_ENV_KEY = "toc_items"

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_-]+")


class SiteRenderer(HTMLRenderer):
    """HTML renderer with the site's block extensions."""

    def __init__(self) -> None:
        super().__init__(escape=False)

    def block_code(
        self,
        code: str,
        info: str | None = None,
        title: str | None = None,
        icon: str | None = None,
    ) -> str:
        html = super().block_code(code, info)
        if title is None:
            return html
        annotation = ' data-title="' + _escape_attr(title) + '"'
        if icon:
            annotation += ' data-icon="' + _escape_attr(icon) + '"'
        return html.replace("<code", "<code" + annotation, 1)

    def page_title(self, text: str, level: int, placeholder: str, **attrs: Any) -> str:
        """Heading immediately followed by the page metadata placeholder."""
        return self.heading(text, level, **attrs).rstrip("\n") + placeholder + "\n"

    def markdown_fragment(self, text: str) -> str:
        return '<div class="markdown-fragment">\n' + text + "</div>\n"


def _escape_attr(value: str) -> str:
    return value.replace("&", "&amp;").replace('"', "&quot;").replace("<", "&lt;")


def slugify(text: str) -> str:
    """Heading anchor slug. Keeps unicode word characters (CJK included)."""
    text = unicodedata.normalize("NFKC", striptags(text)).strip().lower()
    text = _SLUG_STRIP_RE.sub("", text)
    return _SLUG_SPACE_RE.sub("-", text).strip("-") or "section"


def _toc_hook(md: Markdown, state: BlockState) -> None:
    """Assign unique slug ids to level 2-3 headings and record the ToC."""
    used: set[str] = set()
    toc_items = []
    for token in state.tokens:
        if token["type"] != "heading" or not 2 <= token["attrs"]["level"] <= 3:
            continue
        base = slugify(token["text"])
        slug = base
        n = 1
        while slug in used:
            slug = f"{base}-{n}"
            n += 1
        used.add(slug)
        token["attrs"]["id"] = slug
        toc_items.append(normalize_toc_item(md, token, parent=state))
    state.env[TOC_ENV_KEY] = toc_items


def _title_hook(md: Markdown, state: BlockState) -> None:
    """Record the plain text of the first top-level level-1 heading."""
    for token in state.tokens:
        if token["type"] in ("heading", "page_title") and token["attrs"]["level"] == 1:
            renderer = cast(HTMLRenderer, md.renderer)
            html = renderer(md.inline(token["text"], state.env), BlockState())
            state.env[TITLE_ENV_KEY] = striptags(html).strip() or None
            return
    state.env[TITLE_ENV_KEY] = None


def create_engine(*, server_side_diagrams: bool = False, diagram_format: str = "svg") -> Markdown:
    """Create the default markdown engine.

    Args:
        server_side_diagrams: Collect diagram fences for Kroki rendering
        diagram_format: Kroki output format ("svg" or "png")

    Returns:
        Configured mistune Markdown instance
    """
    md = Markdown(
        renderer=SiteRenderer(),
        plugins=[
            table,
            strikethrough,
            task_lists,
            containers,
            fence_icons,
            diagrams(server_side=server_side_diagrams, fmt=diagram_format),
        ],
    )
    md.before_render_hooks.insert(0, _title_hook)
    md.before_render_hooks.append(_toc_hook)
    return md


def parse_fragment(md: Markdown, source: str) -> list[Token]:
    """Parse markdown into block tokens without rendering.

    Args:
        md: Engine whose block parser (and registered rules) to use
        source: Markdown source

    Returns:
        Block tokens of the fragment
    """
    source = source.replace("\r\n", "\n").replace("\r", "\n")
    if not source.endswith("\n"):
        source += "\n"
    state = md.block.state_cls()
    state.process(source)
    md.block.parse(state)
    return state.tokens
