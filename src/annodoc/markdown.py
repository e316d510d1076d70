"""Convert between Markdown and the document projection."""

from __future__ import annotations

import logging
import re
from typing import Iterable

try:
    from bs4 import BeautifulSoup
    from bs4.element import Comment as HTMLComment
    from bs4.element import NavigableString, Tag
except ImportError as exc:  # pragma: no cover - runtime dependency check
    raise RuntimeError(
        "BeautifulSoup4 is required for HTML parsing (pip install beautifulsoup4)."
    ) from exc

from markdown_it import MarkdownIt

from annodoc.output_formatter import format_annotation_footer, format_metadata_header
from annodoc.projection import tag_classes
from annodoc.schemas.export import CommentData, SuggestionData

logger = logging.getLogger(__name__)

_BLOCK_TAGS = {
    "p", "h1", "h2", "h3", "h4", "h5", "h6", "ul", "ol", "li", "pre",
    "blockquote", "table", "hr", "section", "article", "div", "main",
}
_TRANSPARENT_TAGS = {"html", "body", "section", "article", "div", "main", "header", "footer"}

_ESCAPE_RE = re.compile(r"([\\`*_\[\]<~])")
_LINE_START_RE = re.compile(r"^(?:(\d+)([.)])|(#{1,6}|>|\+|-+|=+))(?=\s|$)", re.MULTILINE)

_MARKDOWN_PATTERNS = (
    re.compile(r"^#{1,6}\s", re.MULTILINE),  # headers
    re.compile(r"^\s*[-*+]\s", re.MULTILINE),  # unordered lists
    re.compile(r"^\s*\d+\.\s", re.MULTILINE),  # ordered lists
    re.compile(r"\*\*.+\*\*", re.MULTILINE),  # bold
    re.compile(r"\*.+\*", re.MULTILINE),  # italic
    re.compile(r"`[^`]+`"),  # inline code
    re.compile(r"```[\s\S]*```"),  # code blocks
    re.compile(r"^\s*>", re.MULTILINE),  # blockquotes
    re.compile(r"\[.+\]\(.+\)"),  # links
    re.compile(r"!\[.+\]\(.+\)"),  # images
)

_PARSER: MarkdownIt | None = None


def _markdown_parser() -> MarkdownIt:
    global _PARSER
    if _PARSER is None:
        # breaks=True: a single newline is a hard line break.
        _PARSER = MarkdownIt("commonmark", {"breaks": True, "html": True}).enable(
            ["strikethrough", "table"]
        )
    return _PARSER


def parse_markdown(text: str) -> BeautifulSoup:
    """Parse GFM-flavoured Markdown into an HTML projection.

    Unrecognized syntax passes through as literal text. This function never
    raises: if the parser fails, every line is imported as plain text.
    """
    try:
        html = _markdown_parser().render(text or "")
    except Exception:
        logger.warning("Markdown parsing failed; importing as plain text", exc_info=True)
        soup = BeautifulSoup("", "lxml")
        for line in (text or "").split("\n\n"):
            paragraph = soup.new_tag("p")
            paragraph.string = line
            soup.append(paragraph)
        return soup
    return BeautifulSoup(html, "lxml")


def to_markdown(projection: BeautifulSoup | Tag | str) -> str:
    """Serialize a projection into clean Markdown.

    Comment and suggestion wrappers are unwrapped to their text, leaving no
    annotation artifacts.
    """
    return _convert(projection, annotate=False)


def to_annotated_markdown(
    projection: BeautifulSoup | Tag | str,
    comments: Iterable[CommentData] = (),
    suggestions: Iterable[SuggestionData] = (),
) -> str:
    """Serialize a projection into Markdown annotated for LLM consumption.

    Suggestion runs become ``<!-- SUGGESTION(insert|delete): text -->``,
    commented runs are followed by ``<!-- COMMENT_REF[id] -->``. A metadata
    header with counts and a legend is prepended, and comment and suggestion
    listings are appended. The format is one-directional.

    Args:
        projection: Projection (or HTML) to serialize.
        comments: Comments to count and list; resolved ones are listed apart.
        suggestions: Pending suggestions to count and list.

    Returns:
        The annotated Markdown text.
    """
    comments = list(comments)
    suggestions = list(suggestions)
    body = _convert(projection, annotate=True)
    header = format_metadata_header(comments, suggestions)
    return header + body + format_annotation_footer(comments, suggestions)


def looks_like_markdown(text: str) -> bool:
    """Heuristic: does ``text`` use any common Markdown idiom?"""
    return any(pattern.search(text) for pattern in _MARKDOWN_PATTERNS)


def _convert(projection: BeautifulSoup | Tag | str, *, annotate: bool) -> str:
    if isinstance(projection, str):
        projection = BeautifulSoup(projection, "lxml")
    container = projection
    if isinstance(projection, BeautifulSoup) and projection.body is not None:
        container = projection.body
    blocks = _serialize_children(container, annotate=annotate)
    return "\n\n".join(block for block in blocks if block).strip("\n")


def _serialize_children(container: Tag, *, annotate: bool = False) -> list[str]:
    blocks: list[str] = []
    pending: list[Tag | NavigableString] = []

    def flush() -> None:
        if pending:
            paragraph = _serialize_paragraph(pending, annotate=annotate)
            if paragraph:
                blocks.append(paragraph)
            pending.clear()

    for child in container.children:
        if isinstance(child, HTMLComment):
            continue
        if isinstance(child, Tag) and child.name in _BLOCK_TAGS | _TRANSPARENT_TAGS:
            flush()
            blocks.extend(_serialize_block(child, annotate=annotate))
        elif isinstance(child, (Tag, NavigableString)):
            pending.append(child)
    flush()
    return blocks


def _serialize_block(tag: Tag, *, annotate: bool = False) -> list[str]:
    if tag.name in _TRANSPARENT_TAGS:
        return _serialize_children(tag, annotate=annotate)

    if tag.name in {"h1", "h2", "h3", "h4", "h5", "h6"}:
        level = int(tag.name[1])
        heading = _cleanup_inline_text(_serialize_children_inline(tag, annotate=annotate))
        heading = heading.replace("\n", " ")
        if not heading:
            return []
        return [f"{'#' * level} {heading}"]

    if tag.name == "p":
        paragraph = _serialize_paragraph(tag.children, annotate=annotate)
        return [paragraph] if paragraph else []

    if tag.name in {"ul", "ol", "li"}:
        lines = _serialize_list(tag, annotate=annotate)
        return ["\n".join(lines)] if lines else []

    if tag.name == "pre":
        return [_serialize_code_block(tag, annotate=annotate)]

    if tag.name == "table":
        table_md = _serialize_table(tag, annotate=annotate)
        return [table_md] if table_md else []

    if tag.name == "blockquote":
        inner = "\n\n".join(_serialize_children(tag, annotate=annotate))
        if not inner:
            return []
        return ["\n".join(f"> {line}" if line else ">" for line in inner.split("\n"))]

    if tag.name == "hr":
        return ["---"]

    return _serialize_children(tag, annotate=annotate)


def _serialize_paragraph(nodes: Iterable, *, annotate: bool = False) -> str:
    content = "".join(_serialize_inline(node, annotate=annotate) for node in nodes)
    content = _cleanup_inline_text(content)
    return _LINE_START_RE.sub(_escape_line_start, content)


def _serialize_code_block(tag: Tag, *, annotate: bool = False) -> str:
    code = tag.find("code") or tag
    language = ""
    for cls in tag_classes(code):
        if cls.startswith("language-"):
            language = cls[len("language-"):]
            break
    text = _serialize_children_inline(code, code=True).rstrip("\n")
    fence = "```"
    while fence in text:
        fence += "`"
    block = f"{fence}{language}\n{text}\n{fence}"
    markers = _code_markers(code) if annotate else ""
    # A closing fence must end its line.
    return f"{block}\n{markers}" if markers else block


def _serialize_inline(
    node: Tag | NavigableString, *, annotate: bool = False, code: bool = False
) -> str:
    if isinstance(node, HTMLComment):
        return ""

    if isinstance(node, NavigableString):
        if code:
            return str(node)
        return _escape_text(str(node).replace("\n", " "))

    if node.name == "br":
        return "\n"

    if code:
        return _serialize_children_inline(node, code=True)

    if node.name in {"em", "i"}:
        return _wrap(_serialize_children_inline(node, annotate=annotate), "*")

    if node.name in {"strong", "b"}:
        return _wrap(_serialize_children_inline(node, annotate=annotate), "**")

    if node.name in {"s", "del", "strike"}:
        return _wrap(_serialize_children_inline(node, annotate=annotate), "~~")

    if node.name == "u":
        return _wrap(_serialize_children_inline(node, annotate=annotate), "<u>", "</u>")

    if node.name == "code":
        return _serialize_inline_code(node, annotate=annotate)

    if node.name == "a":
        text = _serialize_children_inline(node, annotate=annotate).strip()
        href = node.get("href")
        if href:
            return f"[{text or href}]({href})"
        return text

    if node.name == "img":
        src = node.get("src")
        if not src:
            return ""
        return f"![{_escape_text(node.get('alt', ''))}]({src})"

    return _serialize_annotation(node, annotate=annotate)


def _serialize_annotation(node: Tag, *, annotate: bool) -> str:
    content = _serialize_children_inline(node, annotate=annotate)
    if not annotate or node.name != "span":
        return content
    marker = _annotation_marker(node, content)
    if marker is None:
        return content
    if "comment-highlight" in tag_classes(node):
        return f"{content}{marker}"
    return marker


def _annotation_marker(node: Tag, content: str) -> str | None:
    classes = tag_classes(node)
    if "track-insert" in classes:
        return f"<!-- SUGGESTION(insert): {content} -->"
    if "track-delete" in classes:
        return f"<!-- SUGGESTION(delete): {content} -->"
    if "comment-highlight" in classes:
        return f"<!-- COMMENT_REF[{node.get('data-comment-id', '')}] -->"
    return None


def _code_markers(code: Tag) -> str:
    """Markers for annotated runs inside code, which cannot carry them inline."""
    markers = (_annotation_marker(span, span.get_text()) for span in code.find_all("span"))
    return "".join(marker for marker in markers if marker)


def _serialize_inline_code(node: Tag, *, annotate: bool = False) -> str:
    text = _serialize_children_inline(node, code=True)
    if not text:
        return ""
    fence = "`"
    while fence in text:
        fence += "`"
    markers = _code_markers(node) if annotate else ""
    if text.startswith("`") or text.endswith("`"):
        return f"{fence} {text} {fence}{markers}"
    return f"{fence}{text}{fence}{markers}"


def _serialize_children_inline(tag: Tag, *, annotate: bool = False, code: bool = False) -> str:
    return "".join(
        _serialize_inline(child, annotate=annotate, code=code) for child in tag.children
    )


def _wrap(content: str, opener: str, closer: str | None = None) -> str:
    """Wrap ``content`` in delimiters, keeping surrounding whitespace outside."""
    closer = opener if closer is None else closer
    core = content.strip()
    if not core:
        return content
    leading = content[: len(content) - len(content.lstrip())]
    trailing = content[len(content.rstrip()):]
    return f"{leading}{opener}{core}{closer}{trailing}"


def _escape_text(text: str) -> str:
    return _ESCAPE_RE.sub(r"\\\1", text)


def _escape_line_start(match: re.Match[str]) -> str:
    if match.group(1):
        return match.group(1) + "\\" + match.group(2)
    return "\\" + match.group(3)


def _cleanup_inline_text(text: str) -> str:
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    return text.strip()


def _serialize_list(list_tag: Tag, *, annotate: bool = False) -> list[str]:
    if list_tag.name == "li":
        items = [list_tag]
    else:
        items = list_tag.find_all("li", recursive=False)
    ordered = list_tag.name == "ol"
    start = 1
    if ordered and str(list_tag.get("start", "1")).isdigit():
        start = int(list_tag.get("start", "1"))

    lines: list[str] = []
    for index, item in enumerate(items):
        marker = f"{start + index}. " if ordered else "- "
        content = "\n".join(_serialize_children(item, annotate=annotate))
        if not content:
            lines.append(marker.rstrip())
            continue
        indent = " " * len(marker)
        for number, line in enumerate(content.split("\n")):
            if number == 0:
                lines.append(marker + line)
            else:
                lines.append(indent + line if line else "")
    return lines


def _serialize_table(table: Tag, *, annotate: bool = False) -> str:
    rows = []
    for row in table.find_all("tr"):
        cells = row.find_all(["th", "td"], recursive=False)
        if not cells:
            continue
        values = []
        for cell in cells:
            cell_text = _cleanup_inline_text(
                _serialize_children_inline(cell, annotate=annotate)
            ).replace("\n", "<br>").replace("|", "\\|")
            values.append(cell_text)
        rows.append(values)

    if not rows:
        return ""

    max_cols = max(len(row) for row in rows)
    normalized = [row + [""] * (max_cols - len(row)) for row in rows]
    header = normalized[0]
    lines = [
        "| " + " | ".join(header) + " |",
        "| " + " | ".join("---" for _ in header) + " |",
    ]
    for row in normalized[1:]:
        lines.append("| " + " | ".join(row) + " |")
    return "\n".join(lines)
