"""Format export summaries and the annotated Markdown header and footer."""

from __future__ import annotations

from typing import Sequence

try:
    import tiktoken
except ImportError:  # pragma: no cover - optional dependency
    tiktoken = None

from annodoc.schemas import CommentData, ExportResult, SuggestionData

_ID_PREFIX_LENGTH = 8


def format_export(
    *,
    title: str,
    content: str,
    filename: str,
    annotated: bool,
    comments: Sequence[CommentData] = (),
    suggestions: Sequence[SuggestionData] = (),
) -> ExportResult:
    """Create summary and content for a Markdown export."""
    summary_lines = [f"Title: {title}", f"Format: {'annotated' if annotated else 'clean'} Markdown"]
    summary_lines.append(f"File: {filename}")
    if annotated:
        resolved = sum(1 for comment in comments if comment.resolved)
        summary_lines.append(f"Comments: {len(comments) - resolved} active, {resolved} resolved")
        summary_lines.append(f"Pending suggestions: {len(suggestions)}")

    token_estimate = _format_token_count(content)
    if token_estimate:
        summary_lines.append(f"Estimated tokens: {token_estimate}")

    return ExportResult(summary="\n".join(summary_lines), content=content, filename=filename)


def format_metadata_header(
    comments: Sequence[CommentData], suggestions: Sequence[SuggestionData]
) -> str:
    """HTML comment block with annotation counts and the marker legend."""
    active = [comment for comment in comments if not comment.resolved]
    resolved = [comment for comment in comments if comment.resolved]
    lines = [
        "<!--",
        "DOCUMENT METADATA FOR LLM:",
        f"- Total comments: {len(comments)}",
        f"- Active comments: {len(active)}",
        f"- Resolved comments: {len(resolved)}",
        f"- Pending suggestions: {len(suggestions)}",
        "",
        "ANNOTATION FORMAT:",
        "- <!-- SUGGESTION(insert): text --> = Suggested insertion",
        "- <!-- SUGGESTION(delete): text --> = Suggested deletion",
        "- <!-- COMMENT_REF[id] --> = Reference to comment with given ID",
        "-->",
        "",
    ]
    return "\n".join(lines)


def format_annotation_footer(
    comments: Sequence[CommentData], suggestions: Sequence[SuggestionData]
) -> str:
    """Comment and suggestion listings; empty listings are left out."""
    sections: list[str] = []

    active = [comment for comment in comments if not comment.resolved]
    if active:
        lines = ["", "", "---", "", "## Comments", ""]
        lines.extend(
            f'- **[{_short_id(comment.id)}]**: "{comment.content}"{_author(comment.author)}'
            for comment in active
        )
        sections.append("\n".join(lines))

    resolved = [comment for comment in comments if comment.resolved]
    if resolved:
        lines = ["", "## Resolved Comments", ""]
        lines.extend(
            f'- ~~[{_short_id(comment.id)}]: "{comment.content}"{_author(comment.author)}~~'
            for comment in resolved
        )
        sections.append("\n".join(lines))

    if suggestions:
        lines = ["", "## Pending Suggestions", ""]
        lines.extend(
            f'- **{suggestion.type.upper()}** [{_short_id(suggestion.id)}]: '
            f'"{suggestion.content}"{_author(suggestion.author)}'
            for suggestion in suggestions
        )
        sections.append("\n".join(lines))

    return "\n".join(sections)


def _short_id(identifier: str) -> str:
    return identifier[:_ID_PREFIX_LENGTH]


def _author(author: str | None) -> str:
    return f" — *{author}*" if author else ""


def _format_token_count(text: str) -> str | None:
    if not tiktoken:
        return None
    try:
        encoding = tiktoken.get_encoding("o200k_base")
        total_tokens = len(encoding.encode(text, disallowed_special=()))
    except Exception:
        return None

    if total_tokens >= 1_000_000:
        return f"{total_tokens / 1_000_000:.1f}M"
    if total_tokens >= 1_000:
        return f"{total_tokens / 1_000:.1f}k"
    return str(total_tokens)
