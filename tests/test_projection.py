"""Tests for the HTML projection."""

from __future__ import annotations

from bs4 import BeautifulSoup

from annodoc.document import EditorDocument
from annodoc.projection import load_projection, render_projection
from annodoc.schemas import (
    AddMark,
    BlockNode,
    BlockType,
    Bold,
    CommentMark,
    Italic,
    Link,
    TextNode,
    TrackDelete,
    TrackInsert,
)
from annodoc.transactions import Transaction


def _load(html: str) -> BlockNode:
    return load_projection(BeautifulSoup(html, "lxml"))


class TestRenderProjection:
    """Tests for rendering the tree."""

    def test_adjacent_runs_share_wrappers(self) -> None:
        doc = EditorDocument.from_markdown("Hello world")
        doc.apply_transaction(
            Transaction.of(
                AddMark(start=1, end=12, mark=Bold()),
                AddMark(start=7, end=12, mark=Italic()),
            )
        )
        soup = doc.serialize_to_projection()
        assert str(soup.find("p")) == "<p><strong>Hello <em>world</em></strong></p>"

    def test_comment_spans_formatting_boundary(self) -> None:
        doc = EditorDocument.from_text("Hello world")
        doc.apply_transaction(
            Transaction.of(
                AddMark(start=0, end=11, mark=CommentMark(comment_id="c1")),
                AddMark(start=0, end=5, mark=Bold()),
            )
        )
        spans = doc.serialize_to_projection().find_all("span")
        assert len(spans) == 1
        assert spans[0]["data-comment-id"] == "c1"
        assert spans[0].get_text() == "Hello world"

    def test_plain_text_root_renders_paragraph(self) -> None:
        soup = render_projection(EditorDocument.from_text("Hi").root)
        assert str(soup) == "<p>Hi</p>"

    def test_newline_renders_break(self) -> None:
        soup = render_projection(EditorDocument.from_text("a\nb").root)
        assert str(soup) == "<p>a<br/>b</p>"

    def test_code_block_keeps_newlines(self) -> None:
        root = BlockNode(
            type=BlockType.DOC,
            children=[
                BlockNode(
                    type=BlockType.CODE_BLOCK,
                    language="js",
                    children=[TextNode(text="a\nb")],
                )
            ],
        )
        assert str(render_projection(root)) == '<pre><code class="language-js">a\nb</code></pre>'


class TestLoadProjection:
    """Tests for reading HTML back into a tree."""

    def test_roundtrip_keeps_annotations(self) -> None:
        root = BlockNode(
            type=BlockType.DOC,
            children=[
                BlockNode(type=BlockType.HEADING, level=2, children=[TextNode(text="Title")]),
                BlockNode(
                    type=BlockType.ORDERED_LIST,
                    start=3,
                    children=[
                        BlockNode(
                            type=BlockType.LIST_ITEM,
                            children=[
                                BlockNode(
                                    type=BlockType.PARAGRAPH,
                                    children=[
                                        TextNode(text="keep "),
                                        TextNode(
                                            text="new",
                                            marks=(TrackInsert(suggestion_id="s1", user_id="u1"),),
                                        ),
                                        TextNode(
                                            text="old",
                                            marks=(
                                                CommentMark(comment_id="c1"),
                                                TrackDelete(suggestion_id="s2", original_text="old"),
                                            ),
                                        ),
                                    ],
                                )
                            ],
                        )
                    ],
                ),
                BlockNode(
                    type=BlockType.BLOCKQUOTE,
                    children=[
                        BlockNode(
                            type=BlockType.PARAGRAPH,
                            children=[
                                TextNode(text="see ", marks=()),
                                TextNode(text="docs", marks=(Link(href="https://example.com"),)),
                            ],
                        )
                    ],
                ),
            ],
        )
        assert load_projection(render_projection(root)) == root

    def test_headings_clamp(self) -> None:
        root = _load("<h5>Deep</h5>")
        assert root.children[0].level == 3

    def test_loose_inline_content_becomes_paragraph(self) -> None:
        root = _load("<div>loose <b>text</b></div>")
        assert root.children[0].type == BlockType.PARAGRAPH
        assert root.children[0].text_content == "loose text"

    def test_orphan_list_item(self) -> None:
        root = _load("<li>x</li>")
        assert root.children[0].type == BlockType.BULLET_LIST
        assert root.children[0].text_content == "x"

    def test_table_flattens_to_rows(self) -> None:
        root = _load("<table><tr><td>a</td><td>b</td></tr><tr><td>c</td><td>d</td></tr></table>")
        assert [child.text_content for child in root.children] == ["a | b", "c | d"]

    def test_unsupported_elements_are_dropped(self) -> None:
        root = _load("<p>one</p><hr/><script>x()</script><p>two</p>")
        assert [child.text_content for child in root.children] == ["one", "two"]

    def test_whitespace_is_collapsed(self) -> None:
        root = _load("<p>  a \n   b  </p>")
        assert root.children[0].text_content == "a b"

    def test_break_becomes_newline(self) -> None:
        root = _load("<p>a<br>b</p>")
        assert root.children[0].text_content == "a\nb"

    def test_empty_blockquote_gets_paragraph(self) -> None:
        root = _load("<blockquote></blockquote>")
        assert root.children[0].children[0].type == BlockType.PARAGRAPH
