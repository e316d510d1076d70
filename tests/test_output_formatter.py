"""Tests for export summaries."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from annodoc.output_formatter import format_annotation_footer, format_export
from annodoc.schemas import CommentData, SuggestionData


class TestFormatExport:
    """Tests for format_export."""

    def test_clean_summary(self) -> None:
        with patch("annodoc.output_formatter.tiktoken", None):
            result = format_export(
                title="My Doc", content="Hello", filename="my_doc.md", annotated=False
            )

        assert result.summary == "Title: My Doc\nFormat: clean Markdown\nFile: my_doc.md"
        assert result.content == "Hello"
        assert result.filename == "my_doc.md"

    def test_annotated_summary_counts(self) -> None:
        comments = [
            CommentData(id="a", content="x"),
            CommentData(id="b", content="y", resolved=True),
        ]
        suggestions = [SuggestionData(id="s", type="insert", content="z")]
        with patch("annodoc.output_formatter.tiktoken", None):
            result = format_export(
                title="My Doc",
                content="Hello",
                filename="my_doc_annotated.md",
                annotated=True,
                comments=comments,
                suggestions=suggestions,
            )

        assert "Comments: 1 active, 1 resolved" in result.summary
        assert "Pending suggestions: 1" in result.summary
        assert "Estimated tokens" not in result.summary

    def test_token_estimate(self) -> None:
        encoding = MagicMock()
        encoding.encode.return_value = list(range(1500))
        mock_tiktoken = MagicMock()
        mock_tiktoken.get_encoding.return_value = encoding

        with patch("annodoc.output_formatter.tiktoken", mock_tiktoken):
            result = format_export(
                title="My Doc", content="Hello", filename="my_doc.md", annotated=False
            )

        assert result.summary.endswith("Estimated tokens: 1.5k")
        mock_tiktoken.get_encoding.assert_called_once_with("o200k_base")

    def test_token_estimate_failure_is_ignored(self) -> None:
        mock_tiktoken = MagicMock()
        mock_tiktoken.get_encoding.side_effect = ValueError("no encoding")

        with patch("annodoc.output_formatter.tiktoken", mock_tiktoken):
            result = format_export(
                title="My Doc", content="Hello", filename="my_doc.md", annotated=False
            )

        assert "Estimated tokens" not in result.summary


class TestFormatAnnotationFooter:
    """Tests for the comment and suggestion listings."""

    def test_empty(self) -> None:
        assert format_annotation_footer([], []) == ""

    def test_all_sections_in_order(self) -> None:
        footer = format_annotation_footer(
            [
                CommentData(id="1234567890", content="open", author="A"),
                CommentData(id="abcdefghij", content="done", resolved=True),
            ],
            [SuggestionData(id="s-1", type="delete", content="world", author="B")],
        )

        assert footer == "\n".join(
            [
                "",
                "",
                "---",
                "",
                "## Comments",
                "",
                '- **[12345678]**: "open" — *A*',
                "",
                "## Resolved Comments",
                "",
                '- ~~[abcdefgh]: "done"~~',
                "",
                "## Pending Suggestions",
                "",
                '- **DELETE** [s-1]: "world" — *B*',
            ]
        )
