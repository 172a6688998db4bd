"""Instrumented module discovery.

Scans a build-output tree for WebAssembly modules linked with coverage
counters and pairs each one with the textual LLVM IR emitted next to it.

Functions
---------
contains_marker
    Window scan of a file's bytes for the instrumentation marker.
find_ir_file
    Resolve the ``.ll`` file paired with a module.
discover_modules
    Return every instrumented module under ``<root>/**/deps/*.wasm``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from wasmcov.data.models import CompiledModule
from wasmcov.errors import PairingError, ScanError

INSTRUMENTATION_MARKER = b"__llvm_profile_init"
MODULE_GLOB = "**/deps/*.wasm"
IR_SUFFIX = ".ll"

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1 << 20


def contains_marker(path: Path, marker: bytes = INSTRUMENTATION_MARKER, *, chunk_size: int = _CHUNK_SIZE) -> bool:
    """Return True when ``marker`` occurs anywhere in the bytes of ``path``.

    The file is read in chunks; consecutive chunks overlap by
    ``len(marker) - 1`` bytes so a marker straddling a chunk boundary is
    still found.
    """

    if not marker:
        raise ValueError("marker must be non-empty")
    keep = len(marker) - 1
    tail = b""
    with open(path, "rb") as fh:
        while True:
            chunk = fh.read(max(chunk_size, len(marker)))
            if not chunk:
                return False
            window = tail + chunk
            if marker in window:
                return True
            tail = window[-keep:] if keep else b""


def logical_name(path: Path) -> str:
    """Return the logical name of an artifact (its file stem)."""

    return Path(path).stem


def find_ir_file(module_path: Path) -> Path:
    """Return the IR file paired with ``module_path``.

    The pair shares the module's directory and stem with a ``.ll`` suffix.

    Raises
    ------
    PairingError
        If the IR file does not exist.
    """

    ll = Path(module_path).with_suffix(IR_SUFFIX)
    if not ll.is_file():
        raise PairingError(f"LL file {ll} does not exist.")
    return ll


def discover_modules(root: Path, marker: bytes = INSTRUMENTATION_MARKER) -> list[CompiledModule]:
    """Return instrumented modules under ``root`` in path order.

    Parameters
    ----------
    root : pathlib.Path
        Build-output root. Only ``*.wasm`` files inside a ``deps`` directory
        (at any depth) are considered.
    marker : bytes
        Literal byte sequence identifying coverage instrumentation.

    Returns
    -------
    list of CompiledModule
        Modules whose bytes contain ``marker``. A missing IR pair is recorded
        on the module (``ir_path=None`` plus ``pairing_error``) instead of
        being raised.

    Raises
    ------
    ScanError
        If ``root`` cannot be enumerated. An unreadable candidate is logged
        and skipped.
    """

    base = Path(root)
    if not base.is_dir():
        raise ScanError(f"Build output directory {base} does not exist or is not a directory.")
    base = base.resolve()
    try:
        candidates = sorted(p for p in base.glob(MODULE_GLOB) if p.is_file())
    except OSError as exc:
        raise ScanError(f"Failed to scan {base}: {exc}") from exc

    modules: list[CompiledModule] = []
    for wasm in candidates:
        try:
            if not contains_marker(wasm, marker):
                continue
        except OSError as exc:
            logger.warning("Skipping unreadable module %s: %s", wasm, exc)
            continue
        try:
            ll = find_ir_file(wasm)
        except PairingError as exc:
            modules.append(CompiledModule(path=str(wasm), name=logical_name(wasm), pairing_error=str(exc)))
            continue
        modules.append(CompiledModule(path=str(wasm), name=logical_name(wasm), ir_path=str(ll)))
    return modules
