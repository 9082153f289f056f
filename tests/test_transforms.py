"""Tests for the markdown transform pipeline."""

import pytest
from notestage.config import DiagramsConfig, LocalesConfig, MarkdownConfig
from notestage.core.content import ContentFile
from notestage.core.renderer import PageRenderer
from notestage.core.transforms import (
    ROOT_LOCALE,
    LocalizeContainersTransform,
    NestedFenceError,
    NestedFenceTransform,
    PageMetaTransform,
    RenderContext,
    TransformPipeline,
)
from notestage.core.types import SourcePath

PLACEHOLDER = "<ArticleMetadata />"


def _doc(path: str, body: str) -> ContentFile:
    return ContentFile(SourcePath(path), {}, body)


def _context(*, home: bool = False, locale: str = ROOT_LOCALE) -> RenderContext:
    return RenderContext(is_home_page=home, locale=locale, raw_markdown="")


class TestRenderContext:
    """Tests for RenderContext.for_document()."""

    @pytest.mark.parametrize(
        ("path", "is_home", "locale"),
        [
            ("index.md", True, "root"),
            ("guide/index.md", False, "root"),
            ("en/index.md", False, "en"),
            ("en/guide/intro.md", False, "en"),
            ("en.md", False, "root"),
            ("fr/page.md", False, "root"),
        ],
    )
    def test__home_and_locale(self, path: str, is_home: bool, locale: str) -> None:
        context = RenderContext.for_document(
            _doc(path, "body"), MarkdownConfig(), LocalesConfig(prefixes=["en"])
        )

        assert context.is_home_page is is_home
        assert context.locale == locale
        assert context.raw_markdown == "body"


class TestHomePageBypass:
    """The home document is rendered by the engine unchanged."""

    def test__home_page__identical_to_engine_output(self, renderer: PageRenderer) -> None:
        body = "# Welcome\n\n::: tip\nHi\n:::\n\n```md render\n# Nested\n```\n"

        result = renderer.render(_doc("index.md", body))

        assert result.html == renderer.engine(body)
        assert PLACEHOLDER not in result.html
        assert "TIP" in result.html
        assert "markdown-fragment" not in result.html

    def test__custom_home_page__matched_exactly(self) -> None:
        renderer = PageRenderer(MarkdownConfig(home_page="README.md"), LocalesConfig(), DiagramsConfig())

        home = renderer.render(_doc("README.md", "# Home\n"))
        index = renderer.render(_doc("index.md", "# Index\n"))

        assert PLACEHOLDER not in home.html
        assert PLACEHOLDER in index.html


class TestPageMetadata:
    """Tests for the metadata placeholder."""

    def test__placeholder_follows_first_h1(self, renderer: PageRenderer) -> None:
        result = renderer.render(_doc("guide.md", "# Title\n\ntext\n"))

        assert result.html == "<h1>Title</h1>" + PLACEHOLDER + "\n<p>text</p>\n"

    def test__multiple_h1__placeholder_once(self, renderer: PageRenderer) -> None:
        result = renderer.render(_doc("guide.md", "# One\n\n# Two\n\n# Three\n"))

        assert result.html.count(PLACEHOLDER) == 1
        assert "<h1>One</h1>" + PLACEHOLDER in result.html

    def test__no_h1__no_placeholder(self, renderer: PageRenderer) -> None:
        result = renderer.render(_doc("guide.md", "## Only a section\n\ntext\n"))

        assert PLACEHOLDER not in result.html

    def test__h1_inside_container__receives_placeholder(self, renderer: PageRenderer) -> None:
        result = renderer.render(_doc("guide.md", "::: info\n# Inside\n:::\n"))

        assert "<h1>Inside</h1>" + PLACEHOLDER in result.html

    def test__h1_inside_rendered_fence__no_placeholder(self, renderer: PageRenderer) -> None:
        result = renderer.render(_doc("guide.md", "```md render\n# Example\n```\n"))

        assert PLACEHOLDER not in result.html
        assert "<h1>Example</h1>" in result.html

    def test__custom_placeholder(self) -> None:
        renderer = PageRenderer(
            MarkdownConfig(metadata_placeholder="<Meta/>"), LocalesConfig(), DiagramsConfig()
        )

        result = renderer.render(_doc("a.md", "# A\n"))

        assert result.html == "<h1>A</h1><Meta/>\n"

    def test__rerendering_output__placeholder_not_duplicated(self, renderer: PageRenderer) -> None:
        first = renderer.render(_doc("guide.md", "# Title\n\nBody\n"))

        second = renderer.render(_doc("guide.md", first.html))

        assert second.html.count(PLACEHOLDER) == 1

    def test__transform_does_not_mutate_input(self) -> None:
        tokens = [{"type": "heading", "text": "T", "attrs": {"level": 1}}]

        result = PageMetaTransform(PLACEHOLDER)(tokens, _context())

        assert tokens == [{"type": "heading", "text": "T", "attrs": {"level": 1}}]
        assert result[0]["type"] == "page_title"
        assert result[0]["attrs"] == {"level": 1, "placeholder": PLACEHOLDER}


class TestContainerLabels:
    """Tests for root-locale container labels."""

    def test__root_locale__uses_localized_labels(self, renderer: PageRenderer) -> None:
        body = "::: tip\na\n:::\n\n::: warning\nb\n:::\n\n::: details\nc\n:::\n"

        html = renderer.render(_doc("guide.md", body)).html

        assert '<p class="custom-block-title">提示</p>' in html
        assert '<p class="custom-block-title">注意</p>' in html
        assert "<summary>详细信息</summary>" in html
        assert "TIP" not in html

    def test__prefixed_locale__keeps_default_labels(self, renderer: PageRenderer) -> None:
        html = renderer.render(_doc("en/guide.md", "::: tip\na\n:::\n")).html

        assert '<p class="custom-block-title">TIP</p>' in html

    def test__explicit_title__not_replaced(self, renderer: PageRenderer) -> None:
        html = renderer.render(_doc("guide.md", "::: danger STOP\na\n:::\n")).html

        assert '<p class="custom-block-title">STOP</p>' in html

    def test__label_text_in_code__untouched(self, renderer: PageRenderer) -> None:
        body = "```text\n::: tip\nTIP\n:::\n```\n"

        html = renderer.render(_doc("guide.md", body)).html

        assert "custom-block" not in html
        assert "TIP" in html

    def test__container_inside_rendered_fence__localized(self, renderer: PageRenderer) -> None:
        """Containers coming from a marked fence get root-locale labels too."""
        body = "```md render\n::: tip\nhi\n:::\n```\n"

        html = renderer.render(_doc("guide.md", body)).html

        assert '<div class="markdown-fragment">' in html
        assert '<p class="custom-block-title">提示</p>' in html
        assert "TIP" not in html

    def test__container_inside_rendered_fence__prefixed_locale_keeps_default(
        self, renderer: PageRenderer
    ) -> None:
        body = "```md render\n::: tip\nhi\n:::\n```\n"

        html = renderer.render(_doc("en/guide.md", body)).html

        assert '<p class="custom-block-title">TIP</p>' in html

    def test__nested_container__localized(self) -> None:
        transform = LocalizeContainersTransform({"tip": "Hint"})
        inner = {"type": "container", "children": [], "attrs": {"kind": "tip", "title": None}}
        outer = {"type": "container", "children": [inner], "attrs": {"kind": "info", "title": None}}

        result = transform([outer], _context())

        assert result[0]["attrs"] == {"kind": "info", "title": None}
        assert result[0]["children"][0]["attrs"]["label"] == "Hint"


class TestNestedFences:
    """Tests for rendering marked fences as markdown."""

    def test__marked_fence__rendered_as_markdown(self, renderer: PageRenderer) -> None:
        body = "```md render\n- **bold** item\n```\n"

        html = renderer.render(_doc("guide.md", body)).html

        assert html == (
            '<div class="markdown-fragment">\n'
            "<ul>\n<li><strong>bold</strong> item</li>\n</ul>\n"
            "</div>\n"
        )

    def test__unmarked_fence__stays_code(self, renderer: PageRenderer) -> None:
        body = "```md\n- **bold** item\n```\n"

        html = renderer.render(_doc("guide.md", body)).html

        assert html == '<pre><code class="language-md">- **bold** item\n</code></pre>\n'

    def test__marker_must_be_whole_word(self, renderer: PageRenderer) -> None:
        html = renderer.render(_doc("guide.md", "```md renderer\n# x\n```\n")).html

        assert "<pre><code" in html
        assert "markdown-fragment" not in html

    def test__fragment_content_gets_engine_features(self, renderer: PageRenderer) -> None:
        body = "```md render\n::: tip\nhi\n:::\n\n- [x] done\n```\n"

        html = renderer.render(_doc("guide.md", body)).html

        assert 'class="tip custom-block"' in html
        assert 'disabled checked/>done' in html

    def test__nested_marked_fences__expanded(self, renderer: PageRenderer) -> None:
        body = "````md render\nouter\n\n```md render\n*inner*\n```\n````\n"

        html = renderer.render(_doc("guide.md", body)).html

        assert html.count('<div class="markdown-fragment">') == 2
        assert "<em>inner</em>" in html
        assert "<pre><code" not in html

    def test__nesting_beyond_limit__raises(self) -> None:
        renderer = PageRenderer(MarkdownConfig(max_nesting=1), LocalesConfig(), DiagramsConfig())
        body = "````md render\n```md render\ninner\n```\n````\n"

        with pytest.raises(NestedFenceError, match="maximum depth of 1"):
            renderer.render(_doc("guide.md", body))

    def test__transform_uses_injected_parser(self) -> None:
        calls: list[str] = []

        def parse(source: str) -> list[dict]:
            calls.append(source)
            return [{"type": "paragraph", "text": source}]

        transform = NestedFenceTransform("render", parse)
        fence = {"type": "block_code", "raw": "x\n", "style": "fenced", "attrs": {"info": "md render"}}

        result = transform([fence], _context())

        assert calls == ["x\n"]
        assert result == [{"type": "markdown_fragment", "children": [{"type": "paragraph", "text": "x\n"}]}]


class TestTransformPipeline:
    def test__passes_run_in_order(self) -> None:
        seen: list[str] = []

        def first(tokens, context):
            seen.append("first")
            return tokens + [{"type": "a"}]

        def second(tokens, context):
            seen.append("second")
            return tokens + [{"type": "b"}]

        pipeline = TransformPipeline([first, second])

        result = pipeline.apply([], _context())

        assert seen == ["first", "second"]
        assert [t["type"] for t in result] == ["a", "b"]

    def test__home_page__no_pass_runs(self) -> None:
        def fail(tokens, context):
            raise AssertionError("pass must not run")

        tokens = [{"type": "paragraph", "text": "x"}]

        assert TransformPipeline([fail]).apply(tokens, _context(home=True)) is tokens
