"""Helpers for walking and rewriting mistune block tokens."""

from collections.abc import Callable, Iterator

from notestage.core.types import Token


def iter_tokens(tokens: list[Token]) -> Iterator[Token]:
    """Yield tokens depth-first in document order."""
    for token in tokens:
        yield token
        children = token.get("children")
        if children:
            yield from iter_tokens(children)


def rewrite_tokens(tokens: list[Token], fn: Callable[[Token], Token | None]) -> list[Token]:
    """Return a rewritten copy of a token list.

    Children are rewritten before their parent is passed to ``fn``. ``fn``
    returns a replacement token, or None to keep the token as is. The input
    list and its tokens are not modified.

    Args:
        tokens: Block tokens
        fn: Replacement function

    Returns:
        New token list
    """
    result: list[Token] = []
    for token in tokens:
        children = token.get("children")
        if children:
            token = {**token, "children": rewrite_tokens(children, fn)}
        replacement = fn(token)
        result.append(token if replacement is None else replacement)
    return result


def fence_info(token: Token) -> str:
    """Info string of a code block token ("" when absent)."""
    attrs = token.get("attrs") or {}
    return attrs.get("info") or ""


def fence_language(token: Token) -> str:
    """First word of a code block's info string, lower-cased."""
    info = fence_info(token).split(None, 1)
    return info[0].lower() if info else ""
