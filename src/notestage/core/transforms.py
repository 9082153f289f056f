"""Markdown transform pipeline.

Document-structure-aware passes run on the block tokens of one document
after parsing and before rendering. Each pass is a callable
``(tokens, context) -> tokens`` that returns a rewritten copy; passes are
composed explicitly by ``TransformPipeline`` in a fixed order:

1. home-page bypass (no pass runs for the home document)
2. page metadata placeholder after the first level-1 heading
3. nested markdown rendering for marked fences
4. admonition labels for the root locale, over the whole document
   including rendered fragments
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from mistune import BlockState, Markdown

from notestage.config import LocalesConfig, MarkdownConfig
from notestage.core.content import ContentFile
from notestage.core.engine import parse_fragment
from notestage.core.tokens import fence_info, rewrite_tokens
from notestage.core.types import Token

logger = logging.getLogger(__name__)

ROOT_LOCALE = "root"
CONTEXT_ENV_KEY = "render_context"


class NestedFenceError(RuntimeError):
    """Marked fences are nested deeper than allowed."""


@dataclass(frozen=True)
class RenderContext:
    """Per-document render state."""

    is_home_page: bool
    locale: str
    raw_markdown: str

    @classmethod
    def for_document(
        cls,
        content: ContentFile,
        markdown: MarkdownConfig,
        locales: LocalesConfig,
    ) -> "RenderContext":
        """Build the context for a content file.

        The home page is matched exactly against the configured path. The
        locale is the first path segment when it is a configured prefix.
        """
        first_segment = content.source_path.split("/", 1)[0]
        has_prefix = "/" in content.source_path and first_segment in locales.prefixes
        return cls(
            is_home_page=content.source_path == markdown.home_page,
            locale=first_segment if has_prefix else ROOT_LOCALE,
            raw_markdown=content.body,
        )


class Transform(Protocol):
    def __call__(self, tokens: list[Token], context: RenderContext) -> list[Token]: ...


class PageMetaTransform:
    """Append a metadata placeholder to the first level-1 heading."""

    def __init__(self, placeholder: str) -> None:
        self.placeholder = placeholder

    def __call__(self, tokens: list[Token], context: RenderContext) -> list[Token]:
        found = False

        def mark_first_title(token: Token) -> Token | None:
            nonlocal found
            if found or token["type"] != "heading" or token["attrs"]["level"] != 1:
                return None
            found = True
            return {
                **token,
                "type": "page_title",
                "attrs": {**token["attrs"], "placeholder": self.placeholder},
            }

        return rewrite_tokens(tokens, mark_first_title)


class LocalizeContainersTransform:
    """Label untitled containers in root-locale documents."""

    def __init__(self, labels: dict[str, str]) -> None:
        self.labels = dict(labels)

    def __call__(self, tokens: list[Token], context: RenderContext) -> list[Token]:
        if context.locale != ROOT_LOCALE:
            return tokens

        def localize(token: Token) -> Token | None:
            if token["type"] != "container":
                return None
            attrs = token["attrs"]
            label = self.labels.get(attrs["kind"])
            if attrs.get("title") or label is None:
                return None
            return {**token, "attrs": {**attrs, "label": label}}

        return rewrite_tokens(tokens, localize)


class NestedFenceTransform:
    """Render marked fences as nested markdown instead of code.

    A fence is marked when its info string contains the marker as a
    whitespace-separated word (e.g. ``md render``). Marked fences inside a
    nested fragment are expanded too, up to ``max_nesting`` levels.
    """

    def __init__(
        self,
        marker: str,
        parse: Callable[[str], list[Token]],
        *,
        max_nesting: int = 4,
    ) -> None:
        self.marker = marker
        self.parse = parse
        self.max_nesting = max_nesting

    def __call__(self, tokens: list[Token], context: RenderContext) -> list[Token]:
        return self._expand(tokens, 1)

    def is_marked(self, token: Token) -> bool:
        return (
            token["type"] == "block_code"
            and token.get("style") == "fenced"
            and self.marker in fence_info(token).split()
        )

    def _expand(self, tokens: list[Token], depth: int) -> list[Token]:
        def expand(token: Token) -> Token | None:
            if not self.is_marked(token):
                return None
            if depth > self.max_nesting:
                raise NestedFenceError(
                    f"Nested markdown fences exceed the maximum depth of {self.max_nesting}"
                )
            children = self.parse(token["raw"])
            return {"type": "markdown_fragment", "children": self._expand(children, depth + 1)}

        return rewrite_tokens(tokens, expand)


class TransformPipeline:
    """Ordered list of transforms applied to every non-home document."""

    def __init__(self, transforms: Sequence[Transform]) -> None:
        self.transforms = list(transforms)

    def apply(self, tokens: list[Token], context: RenderContext) -> list[Token]:
        if context.is_home_page:
            return tokens
        for transform in self.transforms:
            tokens = transform(tokens, context)
        return tokens

    def install(self, md: Markdown) -> None:
        """Run the pipeline on ``md`` for documents parsed with a context.

        Runs before every other render hook, so plugin hooks also see tokens
        produced by the pipeline. Documents parsed without a context in
        ``state.env`` are rendered by the engine unchanged.
        """

        def pipeline_hook(md: Markdown, state: BlockState) -> None:
            context = state.env.get(CONTEXT_ENV_KEY)
            if context is None:
                return
            state.tokens = self.apply(state.tokens, context)

        md.before_render_hooks.insert(0, pipeline_hook)


def build_pipeline(md: Markdown, markdown: MarkdownConfig, locales: LocalesConfig) -> TransformPipeline:
    """Create the standard pipeline for an engine.

    Args:
        md: Engine used to parse nested fragments
        markdown: Markdown configuration
        locales: Locale configuration (root-locale labels)

    Returns:
        TransformPipeline, not yet installed
    """
    return TransformPipeline(
        [
            PageMetaTransform(markdown.metadata_placeholder),
            NestedFenceTransform(
                markdown.nested_fence_marker,
                lambda source: parse_fragment(md, source),
                max_nesting=markdown.max_nesting,
            ),
            LocalizeContainersTransform(locales.labels),
        ]
    )
