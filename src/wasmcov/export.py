"""Markdown summaries for pipeline runs.

Functions
---------
write_finalize_markdown
    Table of per-module outcomes of a build finalization.
write_report_markdown
    Table of per-binary report states, with links to each HTML report.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path

from mdutils.mdutils import MdUtils  # type: ignore[import-untyped]

from wasmcov.data.models import FinalizeSummary, ReportSummary


def _file_base(path: str) -> str:
    # mdutils appends .md itself
    return path[:-3] if path.endswith(".md") else path


def _rel(target: str | None, start: Path) -> str:
    if not target:
        return ""
    try:
        return os.path.relpath(target, start)
    except ValueError:
        return target


def write_finalize_markdown(summary: FinalizeSummary, path: str) -> None:
    """Write the outcome of ``finalize-build-artifacts`` as a Markdown table.

    Parameters
    ----------
    summary : FinalizeSummary
        Outcomes to render.
    path : str
        Destination file path (created/overwritten). A ``.md`` suffix is
        stripped to satisfy mdutils' file naming.
    """

    base = Path(path).parent
    md = MdUtils(file_name=_file_base(path))
    md.new_header(level=1, title="Build Artifacts")
    md.new_list(
        items=[
            f"Generated: {datetime.now(timezone.utc).isoformat()}",
            f"Build root: {summary.build_root}",
            f"Processed: {len(summary.processed)} / {len(summary.outcomes)}",
        ]
    )
    if not summary.outcomes:
        md.new_paragraph("No instrumented modules were found.")
        md.create_md_file()
        return
    header = ["module", "status", "functions", "object", "message"]
    # mdutils escapes "|" inside cells itself
    table: list[str] = header.copy()
    for o in summary.outcomes:
        table.extend(
            [
                o.name,
                o.status,
                str(o.functions_neutralized),
                _rel(o.object_path, base),
                o.message.replace("\n", " "),
            ]
        )
    md.new_table(columns=len(header), rows=len(summary.outcomes) + 1, text=table, text_align="left")
    md.create_md_file()


def write_report_markdown(summary: ReportSummary, path: str) -> None:
    """Write the outcome of ``generate-report`` as a Markdown table.

    Reported binaries link to their ``index.html``; skipped and failed ones
    carry the reason.
    """

    base = Path(path).parent
    md = MdUtils(file_name=_file_base(path))
    md.new_header(level=1, title="Coverage Reports")
    md.new_list(
        items=[
            f"Generated: {datetime.now(timezone.utc).isoformat()}",
            f"Reported: {len(summary.reported)} / {len(summary.reports)}",
            f"Skipped (no object file): {len(summary.skipped)}",
        ]
    )
    if not summary.reports:
        md.new_paragraph("No raw profile samples were found.")
        md.create_md_file()
        return
    header = ["binary", "state", "samples", "report", "message"]
    samples = {m.name: m.sample_count for m in summary.merges}
    table: list[str] = header.copy()
    for r in summary.reports:
        link = ""
        if r.state == "reported" and r.report_dir:
            index = _rel(str(Path(r.report_dir) / "index.html"), base)
            link = md.new_inline_link(link=index, text="index.html")
        table.extend(
            [
                r.name,
                r.state,
                str(samples.get(r.name, 0)),
                link,
                r.message.replace("\n", " "),
            ]
        )
    md.new_table(columns=len(header), rows=len(summary.reports) + 1, text=table, text_align="left")
    md.create_md_file()
