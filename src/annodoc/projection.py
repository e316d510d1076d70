"""HTML-like projection of the document tree, built with BeautifulSoup."""

from __future__ import annotations

import logging
import re
from typing import Iterable

try:
    from bs4 import BeautifulSoup
    from bs4.element import Comment as HTMLComment
    from bs4.element import Doctype, NavigableString, Tag
except ImportError as exc:  # pragma: no cover - runtime dependency check
    raise RuntimeError(
        "BeautifulSoup4 is required for the document projection (pip install beautifulsoup4)."
    ) from exc

from annodoc.schemas.marks import (
    Bold,
    Code,
    CommentMark,
    Italic,
    Link,
    Mark,
    Strike,
    TrackDelete,
    TrackInsert,
    Underline,
    add_mark,
)
from annodoc.schemas.nodes import MAX_HEADING_LEVEL, BlockNode, BlockType, TextNode

logger = logging.getLogger(__name__)

_TRANSPARENT_TAGS = {"html", "body", "div", "section", "article", "main", "header", "footer"}
_HEADING_RE = re.compile(r"^h([1-6])$")
_LANGUAGE_RE = re.compile(r"^language-(.+)$")
_WHITESPACE_RE = re.compile(r"[ \t\r\n\f]+")

_SIMPLE_MARK_TAGS: dict[str, Mark] = {
    "strong": Bold(),
    "b": Bold(),
    "em": Italic(),
    "i": Italic(),
    "u": Underline(),
    "s": Strike(),
    "del": Strike(),
    "strike": Strike(),
    "code": Code(),
}


def render_projection(root: BlockNode) -> BeautifulSoup:
    """Render the tree as a BeautifulSoup fragment.

    Blocks map to ``p``/``h1``-``h3``/``ul``/``ol``/``li``/``blockquote``/
    ``pre > code``. Each mark becomes a wrapper element; adjacent text runs
    that share a mark share its wrapper, so one wrapper is one run.
    """
    soup = BeautifulSoup("", "lxml")
    if root.is_textblock and root.children:
        paragraph = soup.new_tag("p")
        _render_inline(soup, paragraph, root.children, code=False)
        soup.append(paragraph)
        return soup
    for child in root.children:
        if isinstance(child, BlockNode):
            soup.append(_render_block(soup, child))
    return soup


def _render_block(soup: BeautifulSoup, block: BlockNode) -> Tag:
    if block.type == BlockType.PARAGRAPH:
        tag = soup.new_tag("p")
    elif block.type == BlockType.HEADING:
        tag = soup.new_tag(f"h{block.level or 1}")
    elif block.type == BlockType.CODE_BLOCK:
        tag = soup.new_tag("pre")
        code = soup.new_tag("code")
        if block.language:
            code["class"] = [f"language-{block.language}"]
        _render_inline(soup, code, block.children, code=True)
        tag.append(code)
        return tag
    elif block.type == BlockType.BULLET_LIST:
        tag = soup.new_tag("ul")
    elif block.type == BlockType.ORDERED_LIST:
        tag = soup.new_tag("ol")
        if block.start not in (None, 1):
            tag["start"] = str(block.start)
    elif block.type == BlockType.LIST_ITEM:
        tag = soup.new_tag("li")
    elif block.type == BlockType.BLOCKQUOTE:
        tag = soup.new_tag("blockquote")
    else:
        raise ValueError(f"Cannot render block type {block.type.value}")

    if block.type in {BlockType.PARAGRAPH, BlockType.HEADING}:
        _render_inline(soup, tag, block.children, code=False)
    else:
        for child in block.children:
            if isinstance(child, BlockNode):
                tag.append(_render_block(soup, child))
    return tag


def _mark_tag(soup: BeautifulSoup, mark: Mark) -> Tag:
    if isinstance(mark, CommentMark):
        return soup.new_tag(
            "span", attrs={"class": ["comment-highlight"], "data-comment-id": mark.comment_id}
        )
    if isinstance(mark, TrackInsert):
        attrs = {"class": ["track-insert"], "data-suggestion-id": mark.suggestion_id}
        if mark.user_id:
            attrs["data-user-id"] = mark.user_id
        return soup.new_tag("span", attrs=attrs)
    if isinstance(mark, TrackDelete):
        attrs = {"class": ["track-delete"], "data-suggestion-id": mark.suggestion_id}
        if mark.user_id:
            attrs["data-user-id"] = mark.user_id
        attrs["data-original-text"] = mark.original_text
        return soup.new_tag("span", attrs=attrs)
    if isinstance(mark, Link):
        return soup.new_tag("a", attrs={"href": mark.href})
    if isinstance(mark, Bold):
        return soup.new_tag("strong")
    if isinstance(mark, Italic):
        return soup.new_tag("em")
    if isinstance(mark, Underline):
        return soup.new_tag("u")
    if isinstance(mark, Strike):
        return soup.new_tag("s")
    if isinstance(mark, Code):
        return soup.new_tag("code")
    raise ValueError(f"Cannot render mark {mark!r}")


def _render_inline(soup: BeautifulSoup, parent: Tag, children: Iterable, *, code: bool) -> None:
    stack: list[tuple[Mark, Tag]] = []
    for child in children:
        if not isinstance(child, TextNode):
            continue
        marks = child.marks
        keep = 0
        while keep < len(stack) and keep < len(marks) and stack[keep][0] == marks[keep]:
            keep += 1
        del stack[keep:]
        for mark in marks[keep:]:
            wrapper = _mark_tag(soup, mark)
            (stack[-1][1] if stack else parent).append(wrapper)
            stack.append((mark, wrapper))
        target = stack[-1][1] if stack else parent
        if code:
            target.append(NavigableString(child.text))
            continue
        lines = child.text.split("\n")
        for index, line in enumerate(lines):
            if index:
                target.append(soup.new_tag("br"))
            if line:
                target.append(NavigableString(line))


def load_projection(soup: BeautifulSoup | Tag) -> BlockNode:
    """Build a document tree from a projection or any comparable HTML.

    Loose inline content becomes paragraphs, ``h4``-``h6`` clamp to level 3,
    and elements without a node type (rules, tables, images) are flattened
    or dropped.
    """
    root = BlockNode(type=BlockType.DOC)
    container = soup.body if isinstance(soup, BeautifulSoup) and soup.body else soup
    _load_blocks(container, root)
    return root


def _load_blocks(container: Tag, parent: BlockNode) -> None:
    pending: list[Tag | NavigableString] = []

    def flush() -> None:
        if pending:
            paragraph = _load_textblock(pending, BlockNode(type=BlockType.PARAGRAPH))
            if paragraph.children:
                parent.children.append(paragraph)
            pending.clear()

    for child in container.children:
        if isinstance(child, (HTMLComment, Doctype)):
            continue
        if isinstance(child, NavigableString):
            pending.append(child)
            continue
        if not isinstance(child, Tag):
            continue
        name = child.name
        if name in _TRANSPARENT_TAGS:
            flush()
            _load_blocks(child, parent)
        elif name == "p":
            flush()
            parent.children.append(_load_textblock(child.children, BlockNode(type=BlockType.PARAGRAPH)))
        elif _HEADING_RE.match(name):
            flush()
            level = min(int(name[1]), MAX_HEADING_LEVEL)
            parent.children.append(
                _load_textblock(child.children, BlockNode(type=BlockType.HEADING, level=level))
            )
        elif name in {"ul", "ol"}:
            flush()
            block = _load_list(child)
            if block is not None:
                parent.children.append(block)
        elif name == "li":
            flush()
            parent.children.append(
                BlockNode(type=BlockType.BULLET_LIST, children=[_load_list_item(child)])
            )
        elif name == "blockquote":
            flush()
            quote = BlockNode(type=BlockType.BLOCKQUOTE)
            _load_blocks(child, quote)
            if not quote.children:
                quote.children.append(BlockNode(type=BlockType.PARAGRAPH))
            parent.children.append(quote)
        elif name == "pre":
            flush()
            parent.children.append(_load_code_block(child))
        elif name == "table":
            flush()
            logger.debug("Flattening table into paragraphs")
            for row in child.find_all("tr"):
                cells = [_normalize_text(cell.get_text(" ")) for cell in row.find_all(["th", "td"])]
                if any(cells):
                    paragraph = BlockNode(type=BlockType.PARAGRAPH)
                    paragraph.append_text(" | ".join(cells))
                    parent.children.append(paragraph)
        elif name in {"hr", "img", "script", "style"}:
            flush()
            logger.debug("Dropping unsupported <%s> element", name)
        else:
            pending.append(child)
    flush()


def _load_list(tag: Tag) -> BlockNode | None:
    block_type = BlockType.ORDERED_LIST if tag.name == "ol" else BlockType.BULLET_LIST
    block = BlockNode(type=block_type)
    if block_type == BlockType.ORDERED_LIST:
        start = tag.get("start")
        if start and str(start).isdigit() and int(start) != 1:
            block.start = int(start)
    for item in tag.find_all("li", recursive=False):
        block.children.append(_load_list_item(item))
    return block if block.children else None


def _load_list_item(tag: Tag) -> BlockNode:
    item = BlockNode(type=BlockType.LIST_ITEM)
    _load_blocks(tag, item)
    if not item.children:
        item.children.append(BlockNode(type=BlockType.PARAGRAPH))
    return item


def _load_code_block(tag: Tag) -> BlockNode:
    code = tag.find("code")
    language = None
    if code is not None:
        for cls in tag_classes(code):
            match = _LANGUAGE_RE.match(cls)
            if match:
                language = match.group(1)
                break
    block = BlockNode(type=BlockType.CODE_BLOCK, language=language)
    text = (code or tag).get_text()
    if text.endswith("\n"):
        text = text[:-1]
    block.append_text(text)
    return block


def _load_textblock(nodes: Iterable, block: BlockNode) -> BlockNode:
    chars: list[tuple[str, tuple[Mark, ...]]] = []
    for node in nodes:
        _collect_inline(node, (), chars)
    for char, marks in _tidy_whitespace(chars):
        block.append_text(char, marks)
    return block


def _collect_inline(
    node: Tag | NavigableString, marks: tuple[Mark, ...], chars: list[tuple[str, tuple[Mark, ...]]]
) -> None:
    if isinstance(node, (HTMLComment, Doctype)):
        return
    if isinstance(node, NavigableString):
        text = _WHITESPACE_RE.sub(" ", str(node))
        chars.extend((char, marks) for char in text)
        return
    if not isinstance(node, Tag):
        return
    if node.name == "br":
        chars.append(("\n", marks))
        return
    if node.name == "img":
        logger.debug("Dropping inline image %s", node.get("src"))
        return
    mark = _tag_mark(node)
    if mark is not None:
        marks = add_mark(marks, mark)
    for child in node.children:
        _collect_inline(child, marks, chars)


def _tag_mark(tag: Tag) -> Mark | None:
    if tag.name in _SIMPLE_MARK_TAGS:
        return _SIMPLE_MARK_TAGS[tag.name]
    if tag.name == "a":
        href = tag.get("href")
        return Link(href=href) if href else None
    if tag.name != "span":
        return None
    classes = tag_classes(tag)
    if "comment-highlight" in classes and tag.get("data-comment-id"):
        return CommentMark(comment_id=tag["data-comment-id"])
    if "track-insert" in classes and tag.get("data-suggestion-id"):
        return TrackInsert(
            suggestion_id=tag["data-suggestion-id"], user_id=tag.get("data-user-id")
        )
    if "track-delete" in classes and tag.get("data-suggestion-id"):
        return TrackDelete(
            suggestion_id=tag["data-suggestion-id"],
            user_id=tag.get("data-user-id"),
            original_text=tag.get("data-original-text", ""),
        )
    return None


def _tidy_whitespace(
    chars: list[tuple[str, tuple[Mark, ...]]],
) -> list[tuple[str, tuple[Mark, ...]]]:
    tidy: list[tuple[str, tuple[Mark, ...]]] = []
    for char, marks in chars:
        if char == " ":
            if not tidy or tidy[-1][0] in {" ", "\n"}:
                continue
        elif char == "\n" and tidy and tidy[-1][0] == " ":
            tidy.pop()
        tidy.append((char, marks))
    while tidy and tidy[-1][0] in {" ", "\n"}:
        tidy.pop()
    return tidy


def tag_classes(tag: Tag) -> list[str]:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        return classes.split()
    return list(classes)


def _normalize_text(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()
