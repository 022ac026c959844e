from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from agent_pipeline import cli
from agent_pipeline.llm.client import LLMResponse

runner = CliRunner()


@pytest.fixture
def doc_path(tmp_path, simple_md):
    path = tmp_path / "doc.md"
    path.write_text(simple_md + "\n", encoding="utf-8")
    return path


def test_show(doc_path):
    result = runner.invoke(cli.app, ["show", str(doc_path)])
    assert result.exit_code == 0, result.output
    assert "1:1" in result.output
    assert "2:1.p1" in result.output
    assert "3:1.p2" in result.output


def test_scan_with_keyword(doc_path):
    result = runner.invoke(cli.app, ["scan", str(doc_path), "--keyword", "second", "--max-elements", "1"])
    assert result.exit_code == 0, result.output
    assert "3:1.p2" in result.output
    assert "1 item(s) in 1 portion(s)" in result.output


def test_scan_rejects_bad_budget(doc_path):
    result = runner.invoke(cli.app, ["scan", str(doc_path), "--max-elements", "500"])
    assert result.exit_code == 1


def test_scan_start_after(doc_path):
    result = runner.invoke(cli.app, ["scan", str(doc_path), "--start-after", "1.p1"])
    assert result.exit_code == 0, result.output
    assert "3:1.p2" in result.output
    assert "2:1.p1" not in result.output


def test_scan_rejects_unparsable_start_after(doc_path):
    result = runner.invoke(cli.app, ["scan", str(doc_path), "--start-after", "nowhere"])
    assert result.exit_code == 1


def test_edit_prints_result(doc_path, tmp_path):
    ops = tmp_path / "ops.json"
    ops.write_text(
        json.dumps(
            [
                {"action": "replace", "target_pointer": "1.p1", "items": [{"markdown": "Rewritten."}]},
                {"action": "remove", "target_pointer": "9.p9"},
            ]
        ),
        encoding="utf-8",
    )
    result = runner.invoke(cli.app, ["edit", str(doc_path), str(ops)])
    assert result.exit_code == 0, result.output
    assert "# Title\n\nRewritten.\n\nSecond paragraph" in result.output
    assert "skipped #1 remove" in result.output


def test_edit_strict_failure(doc_path, tmp_path):
    ops = tmp_path / "ops.json"
    ops.write_text(json.dumps([{"action": "remove", "target_index": 42}]), encoding="utf-8")
    result = runner.invoke(cli.app, ["edit", str(doc_path), str(ops), "--strict"])
    assert result.exit_code == 1


def test_edit_writes_output_file(doc_path, tmp_path):
    ops = tmp_path / "ops.json"
    ops.write_text(json.dumps([{"action": "merge_with_next", "target_index": 1}]), encoding="utf-8")
    out = tmp_path / "out.md"
    result = runner.invoke(cli.app, ["edit", str(doc_path), str(ops), "-o", str(out)])
    assert result.exit_code == 0, result.output
    assert out.read_text(encoding="utf-8") == "# Title\n\nFirst paragraph\n\nSecond paragraph\n"


def test_edit_invalid_operations_file(doc_path, tmp_path):
    ops = tmp_path / "ops.json"
    ops.write_text(json.dumps([{"action": "explode", "target_index": 1}]), encoding="utf-8")
    result = runner.invoke(cli.app, ["edit", str(doc_path), str(ops)])
    assert result.exit_code == 1


class _FakeClient:
    replies = [
        '{"decision": "done", "newEvidence": [{"pointer": "2:1.p1", "excerpt": "First paragraph"}]}',
        '{"decision": "success", "semanticPointerFrom": "2:1.p1", "summary": "It is the first one."}',
    ]

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.pending = list(self.replies)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return None

    def complete_json(self, *, system, messages, schema=None):
        return LLMResponse(raw_text=self.pending.pop(0), json=None, model_name="fake")


def test_ask_json(doc_path, monkeypatch):
    monkeypatch.setattr(cli, "OpenAICompatClient", _FakeClient)
    result = runner.invoke(cli.app, ["ask", str(doc_path), "Which paragraph comes first?", "--json"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["success"] is True
    assert payload["semantic_pointer_from"] == "2:1.p1"
    assert payload["stop_reason"] == "decision_done"
