"""Custom container blocks (admonitions).

Syntax::

    ::: warning Optional title
    Content, parsed as markdown.
    :::

Containers nest when the outer block uses a longer marker (``::::``).
"""

import re
from typing import Any

from mistune import BlockParser, BlockState, Markdown
from mistune.util import escape as escape_text

CONTAINER_KINDS = ("tip", "info", "warning", "danger", "details")

CONTAINER_PATTERN = (
    r"^ {0,3}(?P<container_mark>:{3,})[ \t]*"
    r"(?P<container_kind>[A-Za-z][\w-]*)(?P<container_title>[^\n]*)$"
)


def default_label(kind: str) -> str:
    """Engine default title for a container kind."""
    if kind == "details":
        return "Details"
    return kind.upper()


def parse_container(block: BlockParser, m: re.Match[str], state: BlockState) -> int | None:
    kind = m.group("container_kind").lower()
    if kind not in CONTAINER_KINDS:
        return None

    marker = m.group("container_mark")
    end_re = re.compile(r"^ {0,3}:{" + str(len(marker)) + r",}[ \t]*(?:\n|$)", re.M)
    cursor_start = min(m.end() + 1, state.cursor_max)

    end_m = end_re.search(state.src, cursor_start)
    if end_m:
        content = state.src[cursor_start : end_m.start()]
        end_pos = end_m.end()
    else:
        content = state.src[cursor_start:]
        end_pos = state.cursor_max

    rules = None
    if state.depth() >= block.max_nested_level - 1:
        rules = [rule for rule in block.rules if rule != "container"]

    child = state.child_state(content)
    block.parse(child, rules)

    title = m.group("container_title").strip() or None
    state.append_token(
        {
            "type": "container",
            "children": child.tokens,
            "attrs": {"kind": kind, "title": title},
        }
    )
    return end_pos


def render_container(
    renderer: Any,
    text: str,
    kind: str,
    title: str | None = None,
    label: str | None = None,
) -> str:
    heading = escape_text(title or label or default_label(kind))
    if kind == "details":
        return (
            '<details class="details custom-block"><summary>'
            + heading
            + "</summary>\n"
            + text
            + "</details>\n"
        )
    return (
        '<div class="'
        + kind
        + ' custom-block"><p class="custom-block-title">'
        + heading
        + "</p>\n"
        + text
        + "</div>\n"
    )


def containers(md: Markdown) -> None:
    """Mistune plugin for ``:::`` custom containers."""
    md.block.register("container", CONTAINER_PATTERN, parse_container, before="fenced_code")
    if md.renderer and md.renderer.NAME == "html":
        md.renderer.register("container", render_container)
