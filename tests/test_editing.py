from __future__ import annotations

import pytest
from pydantic import ValidationError

from folio_core.document.builder import load_markdown
from folio_core.document.editing import apply_operations
from folio_core.document.enums import EditAction, LinearItemType
from folio_core.document.models import EditOperation, ItemDraft
from folio_core.errors import EditOperationError


def op(action: EditAction, *, pointer: str | None = None, index: int | None = None,
       target_id: int | None = None, items: list[str] | None = None) -> EditOperation:
    return EditOperation(
        action=action,
        target_pointer=pointer,
        target_index=index,
        target_id=target_id,
        items=[ItemDraft(markdown=m) for m in (items or [])],
    )


def labels(doc) -> list[str]:
    return [i.pointer.label for i in doc.items]


def assert_consistent(doc) -> None:
    assert [i.index for i in doc.items] == list(range(len(doc.items)))
    assert doc.source_text == "\n\n".join(i.markdown for i in doc.items)
    ids = [i.pointer.id for i in doc.items]
    assert len(ids) == len(set(ids))
    assert all(pid < doc.next_pointer_id for pid in ids)


class TestReplace:
    def test_replace_first_paragraph(self, simple_md):
        doc = load_markdown(simple_md)
        outcome = apply_operations(doc, [op(EditAction.replace, pointer="1.p1", items=["Rewritten."])])
        new = outcome.document
        assert outcome.applied == 1
        assert len(new.items) == 3
        assert new.items[1].pointer.label == "1.p1"
        assert new.items[1].text == "Rewritten."
        assert new.items[1].type == LinearItemType.paragraph
        assert "Rewritten." in new.source_text
        assert new.generation == doc.generation + 1
        assert_consistent(new)

    def test_replaced_content_gets_a_fresh_id(self, simple_md):
        doc = load_markdown(simple_md)
        new = apply_operations(doc, [op(EditAction.replace, index=1, items=["X"])]).document
        assert new.items[1].pointer.id == doc.next_pointer_id
        assert new.items[0].pointer.id == doc.items[0].pointer.id

    def test_input_document_is_untouched(self, simple_md):
        doc = load_markdown(simple_md)
        apply_operations(doc, [op(EditAction.remove, index=1)])
        assert len(doc.items) == 3
        assert doc.source_text == simple_md

    def test_replace_heading_infers_type_and_level(self, simple_md):
        doc = load_markdown(simple_md)
        new = apply_operations(doc, [op(EditAction.replace, index=0, items=["## Renamed"])]).document
        assert new.items[0].type == LinearItemType.heading
        assert new.items[0].level == 2
        assert new.items[0].text == "Renamed"
        assert labels(new) == ["0.1", "0.1.p1", "0.1.p2"]

    def test_explicit_draft_fields_win(self, simple_md):
        doc = load_markdown(simple_md)
        draft = ItemDraft(markdown="    raw", type=LinearItemType.paragraph, text="plain")
        new = apply_operations(
            doc, [EditOperation(action=EditAction.replace, target_index=2, items=[draft])]
        ).document
        assert new.items[2].type == LinearItemType.paragraph
        assert new.items[2].text == "plain"


class TestInsertRemoveSplit:
    def test_insert_heading_shifts_only_later_labels(self):
        doc = load_markdown("# A\n\ntext\n\n## B\n\ntext")
        before_ids = [i.pointer.id for i in doc.items]
        new = apply_operations(doc, [op(EditAction.insert_after, pointer="1.p1", items=["# C"])]).document
        assert labels(new) == ["1", "1.p1", "2", "2.1", "2.1.p1"]
        kept = [i.pointer.id for i in new.items if i.pointer.id in before_ids]
        assert kept == before_ids
        assert new.items[2].pointer.id == doc.next_pointer_id
        assert_consistent(new)

    def test_insert_before(self, simple_md):
        doc = load_markdown(simple_md)
        new = apply_operations(doc, [op(EditAction.insert_before, pointer="1.p1", items=["Lead.", "More."])]).document
        assert [i.text for i in new.items] == ["Title", "Lead.", "More.", "First paragraph", "Second paragraph"]
        assert labels(new) == ["1", "1.p1", "1.p2", "1.p3", "1.p4"]

    def test_remove(self, simple_md):
        doc = load_markdown(simple_md)
        new = apply_operations(doc, [op(EditAction.remove, pointer="1.p1")]).document
        assert [i.text for i in new.items] == ["Title", "Second paragraph"]
        assert new.items[1].pointer.label == "1.p1"
        assert new.items[1].pointer.id == doc.items[2].pointer.id
        assert_consistent(new)

    def test_split(self, simple_md):
        doc = load_markdown(simple_md)
        new = apply_operations(doc, [op(EditAction.split, index=1, items=["First", "paragraph"])]).document
        assert [i.text for i in new.items] == ["Title", "First", "paragraph", "Second paragraph"]
        assert_consistent(new)


class TestMerge:
    def test_merge_with_next(self, simple_md):
        doc = load_markdown(simple_md)
        new = apply_operations(doc, [op(EditAction.merge_with_next, pointer="1.p1")]).document
        assert len(new.items) == 2
        assert new.items[1].markdown == "First paragraph\n\nSecond paragraph"
        assert new.items[1].text == "First paragraph\n\nSecond paragraph"
        assert new.items[1].type == LinearItemType.paragraph
        assert_consistent(new)

    def test_merge_with_previous(self, simple_md):
        doc = load_markdown(simple_md)
        new = apply_operations(doc, [op(EditAction.merge_with_previous, pointer="1.p2")]).document
        assert [i.text for i in new.items] == ["Title", "First paragraph\n\nSecond paragraph"]

    def test_explicit_items_take_precedence(self, simple_md):
        doc = load_markdown(simple_md)
        new = apply_operations(doc, [op(EditAction.merge_with_next, index=1, items=["Both, combined."])]).document
        assert [i.text for i in new.items] == ["Title", "Both, combined."]

    def test_missing_neighbour_is_skipped(self, simple_md):
        doc = load_markdown(simple_md)
        outcome = apply_operations(
            doc,
            [op(EditAction.merge_with_previous, index=0), op(EditAction.merge_with_next, index=2)],
        )
        assert outcome.applied == 0
        assert len(outcome.skipped) == 2
        assert outcome.document is doc


class TestBatchSemantics:
    def test_replace_then_insert_after_same_target(self, simple_md):
        doc = load_markdown(simple_md)
        new = apply_operations(
            doc,
            [
                op(EditAction.replace, pointer="1.p1", items=["Replacement."]),
                op(EditAction.insert_after, pointer="1.p1", items=["Inserted."]),
            ],
        ).document
        assert [i.text for i in new.items] == ["Title", "Replacement.", "Inserted.", "Second paragraph"]
        assert_consistent(new)

    def test_targets_resolve_against_original_snapshot(self, simple_md):
        doc = load_markdown(simple_md)
        # After the first removal index 2 would be out of range if resolved live.
        new = apply_operations(
            doc, [op(EditAction.remove, index=1), op(EditAction.replace, index=2, items=["Last."])]
        ).document
        assert [i.text for i in new.items] == ["Title", "Last."]

    def test_operation_on_removed_target_is_skipped(self, simple_md):
        doc = load_markdown(simple_md)
        outcome = apply_operations(
            doc, [op(EditAction.remove, index=1), op(EditAction.replace, pointer="1.p1", items=["X"])]
        )
        assert outcome.applied == 1
        assert outcome.skipped[0].operation_index == 1
        assert "removed" in outcome.skipped[0].reason

    def test_merged_target_still_addressable(self, simple_md):
        doc = load_markdown(simple_md)
        new = apply_operations(
            doc,
            [
                op(EditAction.merge_with_next, index=1),
                op(EditAction.insert_after, index=2, items=["Tail."]),
            ],
        ).document
        assert [i.text for i in new.items][-1] == "Tail."
        assert len(new.items) == 3

    def test_pointer_match_is_case_insensitive_and_accepts_compact(self, simple_md):
        doc = load_markdown(simple_md)
        outcome = apply_operations(
            doc,
            [
                op(EditAction.replace, pointer="1.P1", items=["A."]),
                op(EditAction.replace, pointer="3:1.p2", items=["B."]),
            ],
        )
        assert [i.text for i in outcome.document.items] == ["Title", "A.", "B."]

    def test_target_id(self, simple_md):
        doc = load_markdown(simple_md)
        new = apply_operations(doc, [op(EditAction.remove, target_id=3)]).document
        assert [i.text for i in new.items] == ["Title", "First paragraph"]

    def test_unknown_targets_are_skipped(self, simple_md):
        doc = load_markdown(simple_md)
        outcome = apply_operations(
            doc,
            [
                op(EditAction.remove, pointer="9.p9"),
                op(EditAction.remove, index=42),
                op(EditAction.remove, target_id=999),
                op(EditAction.replace, index=1, items=[]),
                op(EditAction.remove, index=2),
            ],
        )
        assert outcome.applied == 1
        assert [s.operation_index for s in outcome.skipped] == [0, 1, 2, 3]
        assert len(outcome.document.items) == 2

    def test_targetless_operation_is_skipped(self, simple_md):
        # model_construct bypasses the target validator.
        untargeted = EditOperation.model_construct(
            action=EditAction.remove, target_pointer=None, target_index=None, target_id=None, items=[]
        )
        outcome = apply_operations(load_markdown(simple_md), [untargeted])
        assert outcome.applied == 0
        assert outcome.skipped[0].reason == "no target given"

    def test_strict_mode_fails_whole_batch(self, simple_md):
        doc = load_markdown(simple_md)
        with pytest.raises(EditOperationError) as excinfo:
            apply_operations(
                doc,
                [op(EditAction.remove, index=1), op(EditAction.remove, pointer="9.p9")],
                strict=True,
            )
        assert excinfo.value.operation_index == 1
        assert len(doc.items) == 3

    def test_ids_never_reused_across_batches(self, simple_md):
        doc = load_markdown(simple_md)
        first = apply_operations(doc, [op(EditAction.remove, index=2)]).document
        second = apply_operations(first, [op(EditAction.insert_after, index=1, items=["New."])]).document
        assert second.items[2].pointer.id not in {i.pointer.id for i in doc.items}


class TestEditOperationModel:
    def test_requires_a_target(self):
        with pytest.raises(ValidationError):
            EditOperation(action=EditAction.remove)

    def test_draft_level_bounds(self):
        with pytest.raises(ValidationError):
            ItemDraft(markdown="# x", level=7)

    def test_from_json(self):
        parsed = EditOperation.model_validate(
            {"action": "insert_after", "target_pointer": "1", "items": [{"markdown": "Hi"}]}
        )
        assert parsed.action == EditAction.insert_after
        assert parsed.items[0].markdown == "Hi"
