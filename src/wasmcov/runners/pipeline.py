"""Coverage pipeline orchestration.

Sequences the artifact pipeline over a `Workspace`:

- build phase (``finalize-build-artifacts``): discover instrumented modules,
  neutralize their IR, compile objects, stage the modules;
- report phase (``generate-report``): merge raw samples per binary, match
  each merged profile with an object file, render HTML reports.

Per-artifact problems are logged as warnings and recorded in the returned
summaries; a phase only fails as a whole when its input cannot be scanned or
when every artifact it attempted failed.

Examples
--------
>>> cfg = load_config()
>>> toolchain = probe_toolchain(cfg.toolchain)
>>> pipeline = CoveragePipeline(cfg, toolchain, Workspace.from_root("wasmcov"))
>>> pipeline.finalize_build_artifacts("target")
>>> pipeline.generate_report()
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Sequence

from wasmcov.config import WasmcovConfig
from wasmcov.coverage.discovery import discover_modules
from wasmcov.coverage.neutralize import neutralize_ir_file
from wasmcov.coverage.vendor.clang import compile_ir
from wasmcov.coverage.vendor.cov import render_report
from wasmcov.coverage.vendor.process import ToolRunner, run_tool
from wasmcov.coverage.vendor.profdata import merge_profiles
from wasmcov.data.convert import write_summary_json
from wasmcov.data.models import (
    ArtifactOutcome,
    CompiledModule,
    FinalizeSummary,
    MergeOutcome,
    ReportOutcome,
    ReportSummary,
    Toolchain,
    logical_key,
)
from wasmcov.errors import PipelineError, ToolError, TransformError
from wasmcov.export import write_finalize_markdown, write_report_markdown
from wasmcov.workspace import Workspace, default_workspace_root

logger = logging.getLogger(__name__)

OBJECT_SUFFIX = ".o"
FINALIZE_SUMMARY_MD = "finalize-summary.md"
REPORT_SUMMARY_MD = "summary.md"
REPORT_SUMMARY_JSON = "summary.json"


class CoveragePipeline:
    """Orchestrator for the build and report phases.

    Parameters
    ----------
    config : WasmcovConfig
        Effective configuration.
    toolchain : Toolchain
        Resolved external tools (probe once, pass in).
    workspace : Workspace or None, optional
        Workspace to operate on; defaults to ``config.workspace.root`` or
        ``<cwd>/wasmcov``.
    runner : ToolRunner, optional
        Command runner for the external tools.
    """

    def __init__(
        self,
        config: WasmcovConfig,
        toolchain: Toolchain,
        workspace: Workspace | None = None,
        runner: ToolRunner = run_tool,
    ) -> None:
        self.m_config = config
        self.m_toolchain = toolchain
        if workspace is None:
            workspace = Workspace.from_root(config.workspace.root or default_workspace_root())
        self.m_workspace = workspace
        self.m_runner = runner

    @property
    def config(self) -> WasmcovConfig:
        return self.m_config

    @property
    def toolchain(self) -> Toolchain:
        return self.m_toolchain

    @property
    def workspace(self) -> Workspace:
        return self.m_workspace

    # -------------------------------
    # Build phase
    # -------------------------------

    def finalize_build_artifacts(self, build_root: Path | str | None = None) -> FinalizeSummary:
        """Turn every instrumented module under ``build_root`` into a coverage object.

        Parameters
        ----------
        build_root : Path, str or None
            Build-output tree to scan; defaults to the staging directory
            (where instrumented builds are directed).

        Returns
        -------
        FinalizeSummary
            One outcome per discovered module.

        Raises
        ------
        ScanError
            If ``build_root`` cannot be enumerated.
        PipelineError
            If every module with an IR pair failed to process.
        """

        staging = self.workspace.staging_dir()
        root = Path(build_root).resolve() if build_root is not None else staging
        modules = discover_modules(root, self.config.build.marker_bytes)
        logger.info("Found %d instrumented module(s) under %s", len(modules), root)

        outcomes = [self._finalize_module(m, staging) for m in modules]
        summary = FinalizeSummary(build_root=str(root), staging_dir=str(staging), outcomes=outcomes)
        write_finalize_markdown(summary, str(staging / FINALIZE_SUMMARY_MD))

        attempted = [o for o in outcomes if o.status != "ir_missing"]
        if attempted and all(o.status == "failed" for o in attempted):
            raise PipelineError(f"All {len(attempted)} module(s) failed to process; see warnings above.")
        logger.info("Processed files have been saved to %s", staging)
        return summary

    def _finalize_module(self, module: CompiledModule, staging: Path) -> ArtifactOutcome:
        logger.info("Processing WASM file: %s", module.path)
        if module.ir_path is None:
            logger.warning("LL file not found for %s: %s", module.path, module.pairing_error)
            return ArtifactOutcome(
                name=module.name,
                module_path=module.path,
                status="ir_missing",
                message=module.pairing_error or "",
            )

        new_ll = staging / f"{module.name}.ll"
        obj = staging / f"{module.name}{OBJECT_SUFFIX}"
        try:
            count = neutralize_ir_file(Path(module.ir_path), new_ll)
            logger.debug("Neutralized %d function(s) in %s", count, new_ll)
            compile_ir(
                self.toolchain.clang,
                new_ll,
                obj,
                target_triple=self.config.build.target_triple,
                runner=self.m_runner,
            )
            shutil.copyfile(module.path, staging / Path(module.path).name)
        except (TransformError, ToolError, OSError) as exc:
            logger.warning("Skipping %s: %s", module.name, exc)
            return ArtifactOutcome(
                name=module.name,
                module_path=module.path,
                status="failed",
                ir_path=str(new_ll) if new_ll.exists() else None,
                message=str(exc),
            )
        return ArtifactOutcome(
            name=module.name,
            module_path=module.path,
            status="processed",
            ir_path=str(new_ll),
            object_path=str(obj),
            functions_neutralized=count,
        )

    # -------------------------------
    # Report phase
    # -------------------------------

    def merge_profiles(self, extra_args: Sequence[str] = ()) -> list[MergeOutcome]:
        """Merge the raw samples of every binary into ``merged-profiles/<name>.profdata``.

        Raises
        ------
        PipelineError
            If there were samples to merge and every merge failed.
        """

        outcomes = self._merge_all(extra_args)
        if outcomes and all(o.status == "failed" for o in outcomes):
            raise PipelineError(f"All {len(outcomes)} profile merge(s) failed; see warnings above.")
        return outcomes

    def _merge_all(self, extra_args: Sequence[str]) -> list[MergeOutcome]:
        args = [*self.config.merge.extra_args, *extra_args]
        outcomes: list[MergeOutcome] = []
        for name, samples in self.workspace.sample_groups():
            out = self.workspace.merged_profile_path(name)
            logger.info("Merging %d profraw file(s) for %s", len(samples), name)
            # Regenerated from scratch; never leave a stale profile behind.
            out.unlink(missing_ok=True)
            try:
                merge_profiles(self.toolchain.llvm_profdata, samples, out, extra_args=args, runner=self.m_runner)
            except ToolError as exc:
                logger.warning("Failed to merge profiles for %s: %s", name, exc)
                out.unlink(missing_ok=True)
                outcomes.append(
                    MergeOutcome(
                        name=name,
                        sample_count=len(samples),
                        profile_path=str(out),
                        status="failed",
                        message=str(exc),
                    )
                )
                continue
            logger.info("Profdata file has been saved to %s", out)
            outcomes.append(MergeOutcome(name=name, sample_count=len(samples), profile_path=str(out), status="merged"))
        return outcomes

    def find_object_file(self, name: str) -> Path | None:
        """Return the object file matching logical ``name``, if any.

        The staging directory is searched first, then the object store. An
        exact stem match wins over a dash/underscore-insensitive one.
        """

        key = logical_key(name)
        for d in (self.workspace.staging_dir(), self.workspace.objects_dir()):
            exact = d / f"{name}{OBJECT_SUFFIX}"
            if exact.is_file():
                return exact
            for obj in sorted(d.glob(f"*{OBJECT_SUFFIX}")):
                if obj.is_file() and logical_key(obj.stem) == key:
                    return obj
        return None

    def generate_report(self, extra_args: Sequence[str] = ()) -> ReportSummary:
        """Merge raw samples and render one HTML report per binary.

        Parameters
        ----------
        extra_args : sequence of str
            Appended verbatim to the report tool command (after the
            configured ``report.extra_args``).

        Returns
        -------
        ReportSummary
            Merge outcomes and the terminal report state of every binary.

        Raises
        ------
        PipelineError
            If every binary that reached the report tool (or the merge tool)
            failed.
        """

        merges = self._merge_all(())
        args = [*self.config.report.extra_args, *extra_args]
        reports: list[ReportOutcome] = []
        for merged in merges:
            if merged.status != "merged":
                reports.append(ReportOutcome(name=merged.name, state="failed", message=merged.message))
                continue
            reports.append(self._report_one(merged, args))

        summary = ReportSummary(merges=merges, reports=reports)
        reports_dir = self.workspace.reports_dir()
        write_summary_json(reports_dir / REPORT_SUMMARY_JSON, summary)
        write_report_markdown(summary, str(reports_dir / REPORT_SUMMARY_MD))

        attempted = [r for r in reports if r.state != "object_missing"]
        if attempted and all(r.state == "failed" for r in attempted):
            raise PipelineError(f"All {len(attempted)} report(s) failed; see warnings above.")
        if not merges:
            logger.warning("No raw profile samples found in %s", self.workspace.raw_profiles_dir())
        return summary

    def _report_one(self, merged: MergeOutcome, extra_args: Sequence[str]) -> ReportOutcome:
        name = merged.name
        logger.info("Generating coverage report for %s", name)
        obj = self.find_object_file(name)
        if obj is None:
            logger.warning(
                "Object file not found for %s; object files should be placed in %s or %s",
                name,
                self.workspace.staging_dir(),
                self.workspace.objects_dir(),
            )
            return ReportOutcome(
                name=name,
                state="object_missing",
                profile_path=merged.profile_path,
                message="object file not found",
            )

        report_dir = self.workspace.report_dir(name)
        try:
            if report_dir.exists():
                shutil.rmtree(report_dir)
            render_report(
                self.toolchain.llvm_cov,
                Path(merged.profile_path),
                obj,
                report_dir,
                extra_args=extra_args,
                runner=self.m_runner,
            )
        except (ToolError, OSError) as exc:
            logger.warning("Failed to generate coverage report for %s: %s", name, exc)
            return ReportOutcome(
                name=name,
                state="failed",
                profile_path=merged.profile_path,
                object_path=str(obj),
                message=str(exc),
            )
        logger.info("Coverage report has been saved to %s", report_dir)
        return ReportOutcome(
            name=name,
            state="reported",
            profile_path=merged.profile_path,
            object_path=str(obj),
            report_dir=str(report_dir),
        )

    # -------------------------------
    # Maintenance
    # -------------------------------

    def clean(self, full: bool = False) -> None:
        """Reset the workspace (see :meth:`Workspace.reset`)."""

        self.workspace.reset(full=full)
        logger.info("Cleaned workspace %s (full=%s)", self.workspace.root, full)
