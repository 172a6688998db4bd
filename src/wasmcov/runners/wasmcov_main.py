"""Command-line entry point for wasmcov.

Subcommands map onto the pipeline operations::

    wasmcov build   [-- <cargo args>]
    wasmcov run     [-- <cargo args> [-- <binary args>]]
    wasmcov test    [-- <cargo args> [-- <binary args>]]
    wasmcov finalize [--build-root PATH]
    wasmcov merge   [-- <llvm-profdata args>]
    wasmcov report  [-- <llvm-cov args>]
    wasmcov clean   [--all]
    wasmcov probe

Everything after the first ``--`` is passed through untouched. The tool can
also be invoked as a cargo subcommand (``cargo wasmcov ...``), in which case
cargo passes ``wasmcov`` as the first argument.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from wasmcov.config import WasmcovConfig, load_config, write_config_yaml
from wasmcov.coverage.vendor.cargo import split_args
from wasmcov.coverage.vendor.checks import probe_toolchain
from wasmcov.errors import WasmcovError
from wasmcov.runners.instrumented_build import cargo_build, run_with_coverage
from wasmcov.runners.pipeline import CoveragePipeline
from wasmcov.workspace import Workspace, default_workspace_root

logger = logging.getLogger("wasmcov")

ENV_WASMCOV_DIR = "WASMCOV_DIR"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wasmcov",
        description="Code coverage for instrumented WebAssembly builds.",
    )
    parser.add_argument(
        "--wasmcov-dir",
        type=str,
        default=None,
        help=f"Workspace directory (default: ${ENV_WASMCOV_DIR} or ./wasmcov).",
    )
    parser.add_argument(
        "--override",
        action="append",
        default=None,
        help="Config override in Hydra syntax (e.g., toolchain.llvm_version=17). May be repeated.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("build", help="Build with WASM coverage instrumentation, then finalize artifacts.")
    sub.add_parser("run", help="Build and run binaries with coverage, then finalize artifacts.")
    sub.add_parser("test", help="Build and run test binaries with coverage, then finalize artifacts.")
    p_fin = sub.add_parser("finalize", help="Neutralize IR and compile coverage objects for a build tree.")
    p_fin.add_argument("--build-root", type=str, default=None, help="Build-output tree (default: staging dir).")
    sub.add_parser("merge", help="Merge raw profiles into one profdata file per binary.")
    sub.add_parser("report", help="Merge raw profiles and generate HTML coverage reports.")
    p_clean = sub.add_parser("clean", help="Remove coverage data from the workspace.")
    p_clean.add_argument("--all", action="store_true", help="Remove the entire workspace content.")
    sub.add_parser("probe", help="Print the detected toolchain.")
    return parser


def _resolve_workspace_root(args: argparse.Namespace, cfg: WasmcovConfig) -> Path:
    for candidate in (args.wasmcov_dir, cfg.workspace.root, os.environ.get(ENV_WASMCOV_DIR)):
        if candidate:
            return Path(candidate).resolve()
    return default_workspace_root()


def _setup_logging(cfg: WasmcovConfig, workspace: Workspace | None, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, cfg.logging.level, logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    root_logger.addHandler(console)
    logging.captureWarnings(True)
    if workspace is not None and cfg.logging.file:
        fh = logging.FileHandler(workspace.root / cfg.logging.file, encoding="utf-8")
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(fh)


def _run(args: argparse.Namespace, passthrough: list[str]) -> int:
    cfg = load_config(args.override)
    workspace = Workspace.from_root(_resolve_workspace_root(args, cfg))

    if args.command == "clean":
        _setup_logging(cfg, None, args.verbose)
        workspace.reset(full=bool(args.all))
        logger.info("Cleaned workspace %s (full=%s)", workspace.root, bool(args.all))
        return 0

    _setup_logging(cfg, workspace, args.verbose)
    toolchain = probe_toolchain(cfg.toolchain)
    if args.command == "probe":
        print(f"llvm_version={toolchain.llvm_version}")
        print(f"nightly={toolchain.is_nightly}")
        print(f"clang={toolchain.clang}")
        print(f"llvm_profdata={toolchain.llvm_profdata}")
        print(f"llvm_cov={toolchain.llvm_cov}")
        return 0

    write_config_yaml(workspace.root / "config.yaml", cfg)
    pipeline = CoveragePipeline(cfg, toolchain, workspace)

    if args.command == "build":
        cargo_build(cfg, toolchain, workspace, passthrough)
        pipeline.finalize_build_artifacts()
    elif args.command in ("run", "test"):
        cargo_args, binary_args = split_args(passthrough)
        run_with_coverage(cfg, toolchain, workspace, args.command, cargo_args, binary_args)
        pipeline.finalize_build_artifacts()
    elif args.command == "finalize":
        pipeline.finalize_build_artifacts(args.build_root)
    elif args.command == "merge":
        pipeline.merge_profiles(passthrough)
    elif args.command == "report":
        summary = pipeline.generate_report(passthrough)
        print(f"Reports: {len(summary.reported)} generated, {len(summary.skipped)} skipped")
        print(f"  reports_dir={workspace.reports_dir()}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    raw = list(sys.argv[1:] if argv is None else argv)
    if raw and raw[0] == "wasmcov":
        raw = raw[1:]
    own, passthrough = split_args(raw)
    args = _build_parser().parse_args(own)
    try:
        return _run(args, passthrough)
    except WasmcovError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:  # noqa: BLE001
        print(f"ERROR: wasmcov {args.command} failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
