from pathlib import Path

from wasmcov.data.convert import load_summary_json, write_summary_json
from wasmcov.data.models import (
    ArtifactOutcome,
    FinalizeSummary,
    MergeOutcome,
    ReportOutcome,
    ReportSummary,
)
from wasmcov.export import write_finalize_markdown, write_report_markdown


def _report_summary(tmp_path: Path) -> ReportSummary:
    prof = str(tmp_path / "merged-profiles" / "foo.profdata")
    return ReportSummary(
        merges=[
            MergeOutcome(name="foo", sample_count=2, profile_path=prof, status="merged"),
            MergeOutcome(name="bar", sample_count=1, profile_path=str(tmp_path / "bar.profdata"), status="merged"),
        ],
        reports=[
            ReportOutcome(
                name="foo",
                state="reported",
                profile_path=prof,
                object_path=str(tmp_path / "staging" / "foo.o"),
                report_dir=str(tmp_path / "reports" / "foo"),
            ),
            ReportOutcome(name="bar", state="object_missing", message="object file not found"),
        ],
    )


def test_write_finalize_markdown(tmp_path: Path):
    summary = FinalizeSummary(
        build_root=str(tmp_path / "target"),
        staging_dir=str(tmp_path / "staging"),
        outcomes=[
            ArtifactOutcome(
                name="foo",
                module_path=str(tmp_path / "target" / "deps" / "foo.wasm"),
                status="processed",
                object_path=str(tmp_path / "staging" / "foo.o"),
                functions_neutralized=3,
            ),
            ArtifactOutcome(
                name="bar",
                module_path=str(tmp_path / "target" / "deps" / "bar.wasm"),
                status="ir_missing",
                message="LL file | missing",
            ),
        ],
    )
    out_md = tmp_path / "staging" / "finalize-summary.md"
    out_md.parent.mkdir()
    write_finalize_markdown(summary, str(out_md))
    text = out_md.read_text(encoding="utf-8")
    assert "Build Artifacts" in text
    assert "Processed: 1 / 2" in text
    assert "foo.o" in text
    assert "ir_missing" in text
    # Pipe characters in messages must not break the table.
    assert "LL file \\| missing" in text
    assert "LL file \\\\| missing" not in text


def test_write_finalize_markdown_empty(tmp_path: Path):
    summary = FinalizeSummary(build_root=str(tmp_path), staging_dir=str(tmp_path))
    out_md = tmp_path / "finalize-summary.md"
    write_finalize_markdown(summary, str(out_md))
    assert "No instrumented modules" in out_md.read_text(encoding="utf-8")


def test_write_report_markdown_links_reports(tmp_path: Path):
    (tmp_path / "reports").mkdir()
    out_md = tmp_path / "reports" / "summary.md"
    write_report_markdown(_report_summary(tmp_path), str(out_md))
    text = out_md.read_text(encoding="utf-8")
    assert "Coverage Reports" in text
    assert "[index.html](foo/index.html)" in text
    assert "object_missing" in text
    assert "Skipped (no object file): 1" in text


def test_summary_json_roundtrip(tmp_path: Path):
    summary = _report_summary(tmp_path)
    out = tmp_path / "reports" / "summary.json"
    write_summary_json(out, summary)
    loaded = load_summary_json(out, ReportSummary)
    assert loaded == summary
    assert [r.name for r in loaded.skipped] == ["bar"]
