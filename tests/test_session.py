from __future__ import annotations

import pytest

from folio_core.document.enums import EditAction
from folio_core.document.models import EditOperation, ItemDraft
from folio_core.errors import DocumentNotFoundError, EditOperationError, InvalidPointerError, TargetSetNotFoundError


class TestDocuments:
    def test_first_loaded_document_becomes_default(self, session, simple_md):
        doc = session.load_document(simple_md, "a")
        session.load_document("other", "b")
        assert session.default_document_id == "a"
        assert session.get_document() is doc
        assert session.list_documents() == ["a", "b"]

    def test_make_default(self, session, simple_md):
        session.load_document(simple_md, "a")
        session.load_document("other", "b", make_default=True)
        assert session.get_document().id == "b"

    def test_unknown_document(self, session):
        with pytest.raises(DocumentNotFoundError):
            session.get_document("missing")
        with pytest.raises(DocumentNotFoundError):
            session.get_items()

    def test_get_items(self, report_session):
        items = report_session.get_items("report")
        assert [i.pointer.compact for i in items] == ["1:1", "2:1.p1", "3:1.p2", "4:1.1", "5:1.1.p1"]

    def test_resolve_pointer(self, report_session):
        assert report_session.resolve_pointer("report", "4:1.1").text == "Risks"
        assert report_session.resolve_pointer(None, "1.P2").text == "Costs fell."
        assert report_session.resolve_pointer("report", "9.9") is None
        with pytest.raises(InvalidPointerError):
            report_session.resolve_pointer("report", "not a pointer")

    def test_apply_operations_commits(self, session, simple_md):
        session.load_document(simple_md, "a")
        outcome = session.apply_operations(
            "a", [EditOperation(action=EditAction.remove, target_pointer="1.p2")]
        )
        assert session.get_document("a") is outcome.document
        assert len(session.get_items("a")) == 2

    def test_strict_failure_leaves_document_unchanged(self, session, simple_md):
        original = session.load_document(simple_md, "a")
        with pytest.raises(EditOperationError):
            session.apply_operations(
                "a",
                [
                    EditOperation(action=EditAction.remove, target_index=1),
                    EditOperation(action=EditAction.remove, target_pointer="7.p7"),
                ],
                strict=True,
            )
        assert session.get_document("a") is original

    def test_edit_listeners_hear_committed_edits_only(self, session, simple_md):
        seen = []
        session.add_edit_listener(lambda doc: seen.append(doc.generation))
        session.load_document(simple_md, "a")
        session.apply_operations("a", [EditOperation(action=EditAction.remove, target_index=99)])
        assert seen == []
        session.apply_operations("a", [EditOperation(action=EditAction.remove, target_index=1)])
        assert seen == [1]

    def test_write_markdown(self, session, simple_md, tmp_path):
        session.load_document(simple_md, "a")
        target = tmp_path / "out.md"
        text = session.write_markdown("a", target)
        assert text == simple_md
        assert target.read_text(encoding="utf-8") == simple_md + "\n"

    def test_load_file_uses_stem_as_id(self, session, tmp_path):
        path = tmp_path / "notes.md"
        path.write_text("# Notes\n\nhello\n", encoding="utf-8")
        doc = session.load_file(path)
        assert doc.id == "notes"

    def test_unload(self, session, simple_md):
        session.load_document(simple_md, "a")
        session.create_target_set("a", [1])
        session.unload_document("a")
        assert session.default_document_id is None
        assert session.list_target_sets() == []
        with pytest.raises(DocumentNotFoundError):
            session.unload_document("a")


class TestTargetSets:
    def test_duplicates_and_out_of_range_are_ignored(self, report_session):
        target_set = report_session.create_target_set("report", [2, 2, 99, -1, 1], label="numbers")
        assert [t.index for t in target_set.targets] == [2, 1]
        assert [t.compact_pointer for t in target_set.targets] == ["3:1.p2", "2:1.p1"]
        assert target_set.targets[0].text == "Costs fell."
        assert target_set.label == "numbers"
        assert target_set.document_id == "report"

    def test_ref_ids_are_deterministic_per_set(self, report_session):
        target_set = report_session.create_target_set("report", [1, 2])
        ids = {t.id for t in target_set.targets}
        assert len(ids) == 2

    def test_get_list_delete(self, report_session):
        first = report_session.create_target_set("report", [1])
        second = report_session.create_target_set("report", [2])
        assert report_session.get_target_set(first.id) == first
        assert [s.id for s in report_session.list_target_sets("report")] == [first.id, second.id]
        report_session.delete_target_set(first.id)
        with pytest.raises(TargetSetNotFoundError):
            report_session.get_target_set(first.id)
        with pytest.raises(TargetSetNotFoundError):
            report_session.delete_target_set(first.id)

    def test_bulk_operations_survive_label_shifts(self, report_session):
        target_set = report_session.create_target_set("report", [2, 4])
        # Shift every label after the heading.
        report_session.apply_operations(
            "report",
            [EditOperation(action=EditAction.insert_after, target_index=0, items=[ItemDraft(markdown="Preface.")])],
        )
        outcome = report_session.apply_operations("report", target_set.build_operations(EditAction.remove))
        assert outcome.applied == 2
        texts = [i.text for i in outcome.document.items]
        assert texts == ["Report", "Preface.", "Revenue grew 5%.", "Risks"]

    def test_reload_discards_target_sets_of_the_old_content(self, session):
        session.load_document("# Title\n\nKeep me\n\nDelete me", "doc")
        stale = session.create_target_set("doc", [2])
        kept = session.load_document("elsewhere", "other")
        other_set = session.create_target_set(kept.id, [0])

        session.load_document("# Other\n\nAlpha\n\nBeta\n\nGamma", "doc")

        with pytest.raises(TargetSetNotFoundError):
            session.get_target_set(stale.id)
        assert session.list_target_sets() == [other_set]
        assert [i.text for i in session.get_items("doc")] == ["Other", "Alpha", "Beta", "Gamma"]

    def test_build_operations_with_items(self, report_session):
        target_set = report_session.create_target_set("report", [1])
        ops = target_set.build_operations(EditAction.replace, [ItemDraft(markdown="Revenue grew 7%.")])
        assert ops[0].target_id == 2
        outcome = report_session.apply_operations("report", ops)
        assert outcome.document.items[1].text == "Revenue grew 7%."
