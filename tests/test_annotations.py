"""Tests for comment marks and suggestion resolution."""

from __future__ import annotations

from itertools import permutations

import pytest

from annodoc import annotations as overlay
from annodoc.document import EditorDocument
from annodoc.exceptions import InvalidStepError
from annodoc.positions import Range
from annodoc.schemas import CommentMark, DeleteRange, InsertText, MarkType, User
from annodoc.tracking import TrackChanges
from annodoc.transactions import Transaction


def _suggest(doc: EditorDocument, step, id_factory, user_id: str = "user-a") -> str:
    result = doc.apply_transaction(Transaction.of(step), TrackChanges(user_id, id_factory))
    return result.suggestion_ids[0]


class TestComments:
    """Tests for comment attachment."""

    def test_add_comment_marks_selection(self, user: User) -> None:
        doc = EditorDocument.from_text("Hello world")
        comment = overlay.add_comment(doc, Range(6, 11), "fix this", user, "doc-1")

        assert (comment.position_from, comment.position_to) == (6, 11)
        assert comment.resolved is False
        assert comment.user_name == "A"
        assert overlay.comment_ranges(doc) == [(Range(6, 11), comment.id)]
        assert doc.text_content == "Hello world"

    def test_empty_selection_is_rejected(self, user: User) -> None:
        doc = EditorDocument.from_text("Hello")
        with pytest.raises(InvalidStepError):
            overlay.add_comment(doc, Range(2, 2), "nothing", user, "doc-1")

    def test_separate_comments_keep_their_ranges(self, user: User) -> None:
        doc = EditorDocument.from_text("Hello world")
        first = overlay.add_comment(doc, Range(0, 5), "one", user, "doc-1", comment_id="c1")
        overlay.add_comment(doc, Range(6, 11), "two", user, "doc-1", comment_id="c2")

        assert overlay.comment_ranges(doc, first.id) == [(Range(0, 5), "c1")]
        assert overlay.comment_ranges(doc, "c2") == [(Range(6, 11), "c2")]

    def test_overlapping_comment_takes_shared_text(self, user: User) -> None:
        doc = EditorDocument.from_text("Hello world")
        overlay.add_comment(doc, Range(0, 8), "one", user, "doc-1", comment_id="c1")
        overlay.add_comment(doc, Range(6, 11), "two", user, "doc-1", comment_id="c2")

        assert overlay.comment_ranges(doc) == [(Range(0, 6), "c1"), (Range(6, 11), "c2")]
        assert doc.marks_at(7) == (CommentMark(comment_id="c2"),)

    def test_remove_comment_mark(self, user: User) -> None:
        doc = EditorDocument.from_text("Hello world")
        overlay.add_comment(doc, Range(6, 11), "fix", user, "doc-1", comment_id="c1")

        result = overlay.remove_comment_mark(doc, "c1")
        assert result.changed
        assert overlay.comment_ranges(doc) == []
        assert doc == EditorDocument.from_text("Hello world")


class TestResolveSuggestion:
    """Tests for accepting and rejecting single suggestions."""

    def test_reject_then_accept_delete(self, id_factory) -> None:
        doc = EditorDocument.from_text("Hello world")
        suggestion_id = _suggest(doc, DeleteRange(start=6, end=11), id_factory)

        overlay.reject_suggestion(doc, suggestion_id)
        assert doc == EditorDocument.from_text("Hello world")

        suggestion_id = _suggest(doc, DeleteRange(start=6, end=11), id_factory)
        overlay.accept_suggestion(doc, suggestion_id)
        assert doc.text_content == "Hello "

    @pytest.mark.parametrize("pos", [0, 6, 11])
    def test_accepting_insert_matches_direct_edit(self, pos: int, id_factory) -> None:
        tracked = EditorDocument.from_text("Hello world")
        suggestion_id = _suggest(tracked, InsertText(pos=pos, text="big"), id_factory)
        overlay.accept_suggestion(tracked, suggestion_id)

        direct = EditorDocument.from_text("Hello world")
        direct.apply_transaction(Transaction.of(InsertText(pos=pos, text="big")))
        assert tracked == direct

    def test_rejecting_insert_restores_original(self, id_factory) -> None:
        doc = EditorDocument.from_text("Hello world")
        suggestion_id = _suggest(doc, InsertText(pos=6, text="big "), id_factory)

        overlay.reject_suggestion(doc, suggestion_id)
        assert doc == EditorDocument.from_text("Hello world")

    def test_unknown_id_is_a_no_op(self) -> None:
        doc = EditorDocument.from_text("Hello world")
        result = overlay.accept_suggestion(doc, "missing")
        assert not result.changed
        assert doc == EditorDocument.from_text("Hello world")

    def test_only_named_suggestion_is_resolved(self, id_factory) -> None:
        doc = EditorDocument.from_text("Hello world")
        first = _suggest(doc, DeleteRange(start=0, end=5), id_factory)
        _suggest(doc, DeleteRange(start=6, end=11), id_factory)

        overlay.accept_suggestion(doc, first)
        assert doc.text_content == " world"
        assert doc.is_mark_active(MarkType.TRACK_DELETE, 1, 6)


class TestResolveAll:
    """Tests for bulk accept and reject."""

    @pytest.mark.parametrize(
        "order", list(permutations([(1, 3), (5, 6), (8, 10)]))
    )
    def test_accept_all_ignores_creation_order(self, order, id_factory) -> None:
        doc = EditorDocument.from_text("abcdefghij")
        for start, end in order:
            _suggest(doc, DeleteRange(start=start, end=end), id_factory)

        overlay.accept_all_suggestions(doc)
        assert doc.text_content == "adegh"
        assert overlay.collect_suggestions(doc) == []

    def test_reject_all_mixed(self, id_factory) -> None:
        doc = EditorDocument.from_text("Hello world")
        _suggest(doc, InsertText(pos=5, text=","), id_factory)
        _suggest(doc, DeleteRange(start=7, end=12), id_factory)

        overlay.reject_all_suggestions(doc)
        assert doc == EditorDocument.from_text("Hello world")

    def test_accept_all_mixed(self, id_factory) -> None:
        doc = EditorDocument.from_text("Hello world")
        _suggest(doc, InsertText(pos=5, text=","), id_factory)
        _suggest(doc, DeleteRange(start=7, end=12), id_factory)

        overlay.accept_all_suggestions(doc)
        assert doc.text_content == "Hello, "

    def test_nothing_to_resolve(self) -> None:
        result = overlay.accept_all_suggestions(EditorDocument.from_text("Hi"))
        assert not result.changed


class TestCollectSuggestions:
    """Tests for deriving suggestion records from marks."""

    def test_records_in_document_order(self, id_factory) -> None:
        doc = EditorDocument.from_text("Hello world")
        _suggest(doc, DeleteRange(start=6, end=11), id_factory)
        _suggest(doc, InsertText(pos=0, text="Oh "), id_factory, user_id="user-b")

        suggestions = overlay.collect_suggestions(doc)
        assert [(s.id, s.type, s.content) for s in suggestions] == [
            ("s-2", "insert", "Oh "),
            ("s-1", "delete", "world"),
        ]
        assert (suggestions[1].start, suggestions[1].end) == (9, 14)
        assert suggestions[0].user_id == "user-b"

    def test_find_runs_for_one_id(self, id_factory) -> None:
        doc = EditorDocument.from_text("Hello world")
        suggestion_id = _suggest(doc, DeleteRange(start=6, end=11), id_factory)

        runs = overlay.find_suggestion_runs(doc.tokens(), suggestion_id)
        assert [(run.start, run.end) for run in runs] == [(6, 11)]
        assert overlay.find_suggestion_runs(doc.tokens(), "other") == []
