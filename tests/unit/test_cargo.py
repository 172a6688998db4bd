from __future__ import annotations

import json
from pathlib import Path

from wasmcov.coverage.vendor.cargo import (
    RUSTFLAGS_SEPARATOR,
    build_cargo_cmd,
    build_env,
    parse_executables,
    split_args,
)


def _artifact(exe: str | None, *, test: bool) -> str:
    return json.dumps(
        {
            "reason": "compiler-artifact",
            "executable": exe,
            "profile": {"test": test, "opt_level": "0"},
        }
    )


def test_build_env_encodes_rustflags(tmp_path: Path) -> None:
    env = build_env(
        ["--emit=llvm-ir", "-Cinstrument-coverage"],
        target_dir=tmp_path / "staging",
        workspace_root=tmp_path,
        is_nightly=True,
    )
    assert env["CARGO_ENCODED_RUSTFLAGS"] == f"--emit=llvm-ir{RUSTFLAGS_SEPARATOR}-Cinstrument-coverage"
    assert env["CARGO_TARGET_DIR"] == str(tmp_path / "staging")
    assert env["WASMCOV_DIR"] == str(tmp_path)
    assert "RUSTUP_TOOLCHAIN" not in env


def test_build_env_forces_nightly_on_stable(tmp_path: Path) -> None:
    env = build_env([], target_dir=tmp_path, workspace_root=tmp_path, is_nightly=False)
    assert env["RUSTUP_TOOLCHAIN"] == "nightly"


def test_build_cargo_cmd() -> None:
    assert build_cargo_cmd("build", ["--release"]) == ["cargo", "build", "--release"]
    assert build_cargo_cmd("test", ["--no-run"], message_format_json=True) == [
        "cargo",
        "test",
        "--message-format=json",
        "--no-run",
    ]


def test_split_args() -> None:
    assert split_args(["--release", "--", "--nocapture", "--", "x"]) == (["--release"], ["--nocapture", "--", "x"])
    assert split_args(["--", "--nocapture"]) == ([], ["--nocapture"])
    assert split_args([]) == ([], [])


def test_parse_executables_filters_by_profile() -> None:
    output = "\n".join(
        [
            "   Compiling foo v0.1.0",
            _artifact("/t/debug/deps/foo-123", test=True),
            _artifact("/t/debug/foo", test=False),
            _artifact(None, test=True),
            json.dumps({"reason": "build-finished", "success": True}),
            "{not json",
        ]
    )
    assert parse_executables(output, test=True) == ["/t/debug/deps/foo-123"]
    assert parse_executables(output, test=False) == ["/t/debug/foo"]
