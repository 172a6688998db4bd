from __future__ import annotations

from pathlib import Path
from typing import Mapping, Sequence

import pytest

from wasmcov.config import WasmcovConfig, config_from_mapping
from wasmcov.data.models import Toolchain
from wasmcov.errors import ToolError
from wasmcov.workspace import Workspace

MARKER = b"__llvm_profile_init"

SAMPLE_IR = """\
; ModuleID = 'foo.3a1fbbbh-cgu.0'
source_filename = "foo.3a1fbbbh-cgu.0"
target datalayout = "e-m:e-p:32:32-i64:64-n32:64-S128"
target triple = "wasm32-unknown-unknown"

@__covrec_1 = linkonce_odr hidden constant <{ i64, i32, i64, i64, [9 x i8] }> <{ i64 1, i32 9, i64 2, i64 3, [9 x i8] c"\\01\\01\\00\\01\\01\\05\\01\\02\\02" }>, section "__llvm_covfun", align 8

define void @add(i32 %a) unnamed_addr #0 {
start:
  %x = add i32 %a, 1
  call void @host_log(i32 %x)
  ret void
}

declare void @host_log(i32)

define { i32, i32 } @pair() #0 {
bb0:
  ret { i32, i32 } { i32 1, i32 2 }
}

attributes #0 = { nounwind }
"""


class FakeRunner:
    """Stand-in for the external tools that records argv and fakes their outputs.

    ``clang`` writes the ``-o`` file, ``llvm-profdata`` writes the ``-o`` file,
    ``llvm-cov`` creates ``<output-dir>/index.html``. Any tool name listed in
    ``fail`` raises `ToolError` instead.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.fail: set[str] = set()
        self.outputs: dict[str, str] = {}

    def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> str:
        cmd = [str(a) for a in argv]
        self.calls.append(cmd)
        tool = Path(cmd[0]).name
        if tool in self.fail:
            raise ToolError(cmd, 1, f"{tool}: simulated failure")
        if tool.startswith("clang") or tool.startswith("llvm-profdata"):
            out = Path(cmd[cmd.index("-o") + 1])
            out.write_bytes(b"fake " + tool.encode())
        elif tool.startswith("llvm-cov"):
            out_dir = Path(cmd[cmd.index("--output-dir") + 1])
            out_dir.mkdir(parents=True, exist_ok=True)
            (out_dir / "index.html").write_text("<html></html>", encoding="utf-8")
        return self.outputs.get(tool, "")

    def calls_for(self, prefix: str) -> list[list[str]]:
        return [c for c in self.calls if Path(c[0]).name.startswith(prefix)]


@pytest.fixture()
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def toolchain() -> Toolchain:
    return Toolchain(
        llvm_version="17",
        is_nightly=True,
        clang="clang-17",
        llvm_profdata="llvm-profdata-17",
        llvm_cov="llvm-cov-17",
    )


@pytest.fixture()
def config() -> WasmcovConfig:
    return config_from_mapping({"logging": {"file": None}})


@pytest.fixture()
def workspace(tmp_path: Path) -> Workspace:
    return Workspace.from_root(tmp_path / "wasmcov")


def write_module(deps_dir: Path, name: str, *, instrumented: bool = True, ir: str | None = SAMPLE_IR) -> Path:
    """Create ``<deps_dir>/<name>.wasm`` (and its ``.ll`` pair unless ``ir`` is None)."""

    deps_dir.mkdir(parents=True, exist_ok=True)
    wasm = deps_dir / f"{name}.wasm"
    body = b"\x00asm\x01\x00\x00\x00" + (MARKER if instrumented else b"plain") + b"\x00" * 16
    wasm.write_bytes(body)
    if ir is not None:
        (deps_dir / f"{name}.ll").write_text(ir, encoding="utf-8")
    return wasm


@pytest.fixture()
def make_module():
    return write_module


@pytest.fixture()
def sample_ir() -> str:
    return SAMPLE_IR
