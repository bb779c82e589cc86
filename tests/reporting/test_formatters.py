"""Tests for run reports and their formatters."""

import csv
import io
import json

from lingopipe.core.context import RunContext
from lingopipe.reporting.formatters import save_report, to_csv, to_json, to_markdown
from lingopipe.reporting.report import RunReport
from tests.conftest import make_request


def _snapshot(**changes):
    ctx = RunContext(make_request({"a": "A", "b": "B"}, targets=("ko", "ja")))
    ctx.add_translation("ko", "a", "에이")
    ctx.add_translation("ja", "a", "エー")
    ctx.metadata["diff"] = {"ko": {"added": 1, "changed": 0, "removed": 0, "unchanged": 1}}
    ctx.plugin_data("token_chunking")["total_chunks"] = 2
    ctx.add_token_usage(10, 20)
    for name, value in changes.items():
        setattr(ctx, name, value)
    ctx.complete()
    return ctx.snapshot()


def _report(**changes):
    return RunReport.from_snapshot(
        _snapshot(**changes),
        source_locale="en",
        target_locales=["ko", "ja"],
        provider="dummy",
    )


class TestRunReport:
    def test_from_snapshot(self):
        report = _report()
        assert report.total_texts == 2
        assert report.translated == {"ko": 1, "ja": 1}
        assert report.chunks == 2
        assert report.token_usage["total"] == 30
        assert report.diff["ko"]["unchanged"] == 1
        assert report.status == "completed"

    def test_status(self):
        assert _report(failed=True).status == "failed"
        assert _report(aborted=True).status == "aborted"
        assert _report(warnings=["careful"]).status == "completed with warnings"

    def test_explicit_total(self):
        report = RunReport.from_snapshot(_snapshot(), total_texts=10)
        assert report.total_texts == 10
        assert report.texts_sent == 2
        assert report.target_locales == ["ko", "ja"]


class TestFormatters:
    def test_json(self):
        data = json.loads(to_json(_report()))
        assert data["status"] == "completed"
        assert data["translated"] == {"ko": 1, "ja": 1}

    def test_markdown(self):
        md = to_markdown(_report(errors=["fr: down"]))
        assert md.startswith("# Translation Report")
        assert "| ko | 1 | 1 | 0 | 1 | 0 |" in md
        assert "| ja | 1 | - | - | - | - |" in md
        assert "## Errors" in md
        assert "- fr: down" in md
        assert "## Warnings" not in md

    def test_csv(self):
        rows = list(csv.DictReader(io.StringIO(to_csv(_report()))))
        assert [r["locale"] for r in rows] == ["ko", "ja"]
        assert rows[0]["added"] == "1"
        assert rows[1]["added"] == ""
        assert rows[0]["output_tokens"] == "20"

    def test_save_by_suffix(self, tmp_path):
        report = _report()
        save_report(report, tmp_path / "out" / "report.md")
        save_report(report, tmp_path / "report.csv")
        save_report(report, tmp_path / "report.txt")

        assert (tmp_path / "out" / "report.md").read_text(encoding="utf-8").startswith("# Translation")
        assert (tmp_path / "report.csv").read_text(encoding="utf-8").startswith("locale,")
        assert json.loads((tmp_path / "report.txt").read_text(encoding="utf-8"))["provider"] == "dummy"
