"""Instrumented cargo builds feeding the coverage pipeline.

The build output is directed into the workspace staging directory, so
``finalize-build-artifacts`` can scan it without any extra path plumbing.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Mapping, Sequence

from wasmcov.config import WasmcovConfig
from wasmcov.coverage.discovery import discover_modules
from wasmcov.coverage.vendor.cargo import build_cargo_cmd, build_env, parse_executables
from wasmcov.coverage.vendor.process import ToolRunner, run_streaming, run_tool
from wasmcov.data.models import Toolchain
from wasmcov.workspace import Workspace

logger = logging.getLogger(__name__)

Streamer = Callable[..., None]


def coverage_env(config: WasmcovConfig, toolchain: Toolchain, workspace: Workspace) -> dict[str, str]:
    """Return the child environment for instrumented builds and runs."""

    return build_env(
        config.build.rustflags,
        target_dir=workspace.staging_dir(),
        workspace_root=workspace.root,
        is_nightly=toolchain.is_nightly,
    )


def prepare_target_directory(config: WasmcovConfig, workspace: Workspace) -> Path:
    """Delete stale instrumented modules from the staging tree and return it.

    Cargo may skip relinking unchanged crates; removing the old instrumented
    outputs guarantees discovery only sees modules from the coming build.
    """

    target_dir = workspace.staging_dir()
    for module in discover_modules(target_dir, config.build.marker_bytes):
        logger.debug("Removing stale module %s", module.path)
        Path(module.path).unlink(missing_ok=True)
    return target_dir


def cargo_build(
    config: WasmcovConfig,
    toolchain: Toolchain,
    workspace: Workspace,
    cargo_args: Sequence[str] = (),
    *,
    streamer: Streamer = run_streaming,
) -> Path:
    """Run ``cargo build`` with coverage instrumentation into the staging tree."""

    target_dir = prepare_target_directory(config, workspace)
    env = coverage_env(config, toolchain, workspace)
    streamer(build_cargo_cmd("build", cargo_args), env=env)
    return target_dir


def build_executables(
    subcommand: str,
    cargo_args: Sequence[str],
    env: Mapping[str, str] | None = None,
    *,
    streamer: Streamer = run_streaming,
    runner: ToolRunner = run_tool,
) -> list[str]:
    """Build native binaries (``build``) or test binaries (``test --no-run``).

    ``env`` defaults to the caller's own environment; the native binaries are
    never built with the coverage flags.

    Returns
    -------
    list of str
        Executable paths reported by cargo's JSON messages.
    """

    args = list(cargo_args)
    if subcommand == "test":
        args.append("--no-run")
    streamer(build_cargo_cmd(subcommand, args), env=env)
    out = runner(build_cargo_cmd(subcommand, args, message_format_json=True), env=env)
    return parse_executables(out, test=(subcommand == "test"))


def run_executables(
    executables: Sequence[str],
    binary_args: Sequence[str],
    env: Mapping[str, str],
    *,
    streamer: Streamer = run_streaming,
) -> None:
    """Run each executable in turn; the first failure propagates as `ToolError`."""

    for exe in executables:
        logger.info("Running binary: %s", exe)
        streamer([exe, *binary_args], env=env)


def run_with_coverage(
    config: WasmcovConfig,
    toolchain: Toolchain,
    workspace: Workspace,
    subcommand: str,
    cargo_args: Sequence[str] = (),
    binary_args: Sequence[str] = (),
    *,
    streamer: Streamer = run_streaming,
    runner: ToolRunner = run_tool,
) -> list[str]:
    """Build binaries (``run``) or test binaries (``test``) and run them with coverage.

    The binaries themselves are built with the plain environment. Only their
    runs see the coverage environment, so the wasm modules they build while
    running are the instrumented ones that land in the staging tree.

    Returns
    -------
    list of str
        The executables that were run.
    """

    cargo_subcommand = "test" if subcommand == "test" else "build"
    executables = build_executables(cargo_subcommand, cargo_args, streamer=streamer, runner=runner)
    prepare_target_directory(config, workspace)
    env = coverage_env(config, toolchain, workspace)
    run_executables(executables, binary_args, env, streamer=streamer)
    return executables
