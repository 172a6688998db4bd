from __future__ import annotations

import sys
from pathlib import Path

import pytest

from wasmcov.coverage.vendor.clang import build_compile_cmd, compile_ir
from wasmcov.coverage.vendor.cov import build_show_cmd, render_report
from wasmcov.coverage.vendor.process import run_tool
from wasmcov.coverage.vendor.profdata import build_merge_cmd, merge_profiles
from wasmcov.errors import ToolError


def test_compile_cmd_targets_host_triple() -> None:
    cmd = build_compile_cmd("clang-17", Path("/s/foo.ll"), Path("/s/foo.o"))
    assert cmd == [
        "clang-17",
        "--target=x86_64-unknown-linux-gnu",
        "-Wno-override-module",
        "-c",
        "-o",
        "/s/foo.o",
        "/s/foo.ll",
    ]
    custom = build_compile_cmd("clang", Path("a.ll"), Path("a.o"), target_triple="aarch64-unknown-linux-gnu")
    assert custom[1] == "--target=aarch64-unknown-linux-gnu"


def test_merge_cmd_is_order_independent() -> None:
    a = build_merge_cmd("llvm-profdata-17", [Path("/r/2.profraw"), Path("/r/1.profraw")], Path("/m/x.profdata"))
    b = build_merge_cmd("llvm-profdata-17", [Path("/r/1.profraw"), Path("/r/2.profraw")], Path("/m/x.profdata"))
    assert a == b
    assert a == ["llvm-profdata-17", "merge", "-sparse", "/r/1.profraw", "/r/2.profraw", "-o", "/m/x.profdata"]


def test_merge_cmd_appends_extra_args() -> None:
    cmd = build_merge_cmd("p", [Path("a.profraw")], Path("o.profdata"), ["--failure-mode=all"])
    assert cmd[-1] == "--failure-mode=all"


def test_show_cmd_appends_extra_args() -> None:
    cmd = build_show_cmd(
        "llvm-cov-17",
        Path("/m/foo.profdata"),
        Path("/s/foo.o"),
        Path("/r/foo"),
        ["--show-instantiations=false"],
    )
    assert cmd == [
        "llvm-cov-17",
        "show",
        "--instr-profile",
        "/m/foo.profdata",
        "/s/foo.o",
        "--format=html",
        "--output-dir",
        "/r/foo",
        "--show-instantiations=false",
    ]


def test_adapters_use_injected_runner(tmp_path: Path, fake_runner) -> None:
    obj = compile_ir("clang-17", tmp_path / "f.ll", tmp_path / "objs" / "f.o", runner=fake_runner)
    assert obj.is_file()

    out = merge_profiles(
        "llvm-profdata-17",
        [tmp_path / "a.profraw"],
        tmp_path / "merged" / "f.profdata",
        runner=fake_runner,
    )
    assert out.is_file()

    report = render_report("llvm-cov-17", out, obj, tmp_path / "report", runner=fake_runner)
    assert (report / "index.html").is_file()
    assert [Path(c[0]).name for c in fake_runner.calls] == ["clang-17", "llvm-profdata-17", "llvm-cov-17"]


def test_merge_requires_inputs(tmp_path: Path, fake_runner) -> None:
    with pytest.raises(ValueError):
        merge_profiles("llvm-profdata-17", [], tmp_path / "x.profdata", runner=fake_runner)
    assert fake_runner.calls == []


def test_run_tool_returns_stdout() -> None:
    out = run_tool([sys.executable, "-c", "print('hello')"])
    assert out.strip() == "hello"


def test_run_tool_env_is_layered_not_replaced(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WASMCOV_PARENT_VAR", "parent")
    code = "import os; print(os.environ['WASMCOV_PARENT_VAR'], os.environ['WASMCOV_CHILD_VAR'])"
    out = run_tool([sys.executable, "-c", code], env={"WASMCOV_CHILD_VAR": "child"})
    assert out.split() == ["parent", "child"]


def test_run_tool_nonzero_exit_carries_stderr() -> None:
    code = "import sys; sys.stderr.write('boom'); sys.exit(3)"
    with pytest.raises(ToolError) as excinfo:
        run_tool([sys.executable, "-c", code])
    err = excinfo.value
    assert err.exit_code == 3
    assert err.stderr == "boom"
    assert "failed with status code 3: boom" in str(err)


def test_run_tool_spawn_failure(tmp_path: Path) -> None:
    with pytest.raises(ToolError) as excinfo:
        run_tool([str(tmp_path / "no-such-tool")])
    assert excinfo.value.exit_code == -1
    assert "Failed to execute command" in str(excinfo.value)
