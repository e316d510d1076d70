"""Tests for rewriting edits into tracked suggestions."""

from __future__ import annotations

from annodoc.annotations import collect_suggestions
from annodoc.document import EditorDocument
from annodoc.positions import Range
from annodoc.schemas import AddMark, Bold, DeleteRange, InsertText, MarkType, TrackDelete, TrackInsert
from annodoc.schemas.marks import find_mark
from annodoc.tracking import TrackChanges
from annodoc.transactions import Transaction


def _track_mark(doc: EditorDocument, pos: int, mark_type: MarkType):
    return find_mark(doc.marks_at(pos + 1), mark_type)


class TestTrackedInsert:
    """Tests for insertions while suggesting."""

    def test_insert_is_marked(self, id_factory) -> None:
        doc = EditorDocument.from_text("Hello world")
        tracking = TrackChanges("user-a", id_factory)
        result = doc.apply_transaction(Transaction.of(InsertText(pos=6, text="big ")), tracking)

        assert doc.text_content == "Hello big world"
        assert result.suggestion_ids == ["s-1"]
        assert _track_mark(doc, 6, MarkType.TRACK_INSERT) == TrackInsert(
            suggestion_id="s-1", user_id="user-a"
        )
        assert not doc.is_mark_active(MarkType.TRACK_INSERT, 10, 11)

    def test_typing_on_own_insert_extends_it(self, id_factory) -> None:
        doc = EditorDocument.from_text("Hello world")
        tracking = TrackChanges("user-a", id_factory)
        doc.apply_transaction(Transaction.of(InsertText(pos=6, text="big")), tracking)
        result = doc.apply_transaction(Transaction.of(InsertText(pos=9, text=" ")), tracking)

        assert result.suggestion_ids == []
        suggestions = collect_suggestions(doc)
        assert [(s.id, s.content) for s in suggestions] == [("s-1", "big ")]

    def test_other_user_gets_new_suggestion(self, id_factory) -> None:
        doc = EditorDocument.from_text("Hello world")
        doc.apply_transaction(
            Transaction.of(InsertText(pos=6, text="big")), TrackChanges("user-a", id_factory)
        )
        result = doc.apply_transaction(
            Transaction.of(InsertText(pos=9, text="!")), TrackChanges("user-b", id_factory)
        )

        assert result.suggestion_ids == ["s-2"]
        assert [s.user_id for s in collect_suggestions(doc)] == ["user-a", "user-b"]

    def test_formatting_steps_pass_through(self, id_factory) -> None:
        doc = EditorDocument.from_text("Hello")
        result = doc.apply_transaction(
            Transaction.of(AddMark(start=0, end=5, mark=Bold())), TrackChanges("user-a", id_factory)
        )
        assert result.suggestion_ids == []
        assert doc.is_mark_active(MarkType.BOLD, 0, 5)
        assert not doc.is_mark_active(MarkType.TRACK_INSERT, 0, 5)


class TestTrackedDelete:
    """Tests for deletions while suggesting."""

    def test_delete_keeps_text_and_marks_it(self, id_factory) -> None:
        doc = EditorDocument.from_text("Hello world")
        result = doc.apply_transaction(
            Transaction.of(DeleteRange(start=6, end=11)), TrackChanges("user-a", id_factory)
        )

        assert doc.text_content == "Hello world"
        assert result.suggestion_ids == ["s-1"]
        assert _track_mark(doc, 6, MarkType.TRACK_DELETE) == TrackDelete(
            suggestion_id="s-1", user_id="user-a", original_text="world"
        )
        assert doc.is_mark_active(MarkType.TRACK_DELETE, 6, 11)

    def test_deleting_own_insert_withdraws_it(self, id_factory) -> None:
        doc = EditorDocument.from_text("Hello world")
        tracking = TrackChanges("user-a", id_factory)
        doc.apply_transaction(Transaction.of(InsertText(pos=6, text="big ")), tracking)
        result = doc.apply_transaction(Transaction.of(DeleteRange(start=6, end=10)), tracking)

        assert doc == EditorDocument.from_text("Hello world")
        assert result.suggestion_ids == []

    def test_mixed_delete_marks_only_original_text(self, id_factory) -> None:
        doc = EditorDocument.from_text("Hello world")
        tracking = TrackChanges("user-a", id_factory)
        doc.apply_transaction(Transaction.of(InsertText(pos=6, text="big ")), tracking)
        doc.apply_transaction(Transaction.of(DeleteRange(start=4, end=12)), tracking)

        assert doc.text_content == "Hello world"
        suggestions = collect_suggestions(doc)
        assert len(suggestions) == 1
        assert suggestions[0].id == "s-2"
        assert suggestions[0].type == "delete"
        assert suggestions[0].content == "o wo"
        assert (suggestions[0].start, suggestions[0].end) == (4, 8)


class TestTrackedTransaction:
    """Tests for several steps in one tracked transaction."""

    def test_later_steps_skip_pending_deletions(self, id_factory) -> None:
        doc = EditorDocument.from_text("Hello world")
        result = doc.apply_transaction(
            Transaction.of(DeleteRange(start=0, end=6), InsertText(pos=0, text="Hi ")),
            TrackChanges("user-a", id_factory),
        )

        assert doc.text_content == "Hello Hi world"
        assert result.suggestion_ids == ["s-1", "s-2"]
        assert doc.is_mark_active(MarkType.TRACK_DELETE, 0, 6)
        assert doc.is_mark_active(MarkType.TRACK_INSERT, 6, 9)
        assert doc.find_text("Hi ") == Range(6, 9)

    def test_begin_resets_created_ids(self, id_factory) -> None:
        tracking = TrackChanges("user-a", id_factory)
        doc = EditorDocument.from_text("ab")
        doc.apply_transaction(Transaction.of(DeleteRange(start=0, end=1)), tracking)
        result = doc.apply_transaction(Transaction.of(AddMark(start=0, end=2, mark=Bold())), tracking)
        assert result.suggestion_ids == []
