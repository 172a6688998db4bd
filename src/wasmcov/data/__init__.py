"""Domain models for ``wasmcov``.

This package hosts the attrs-based records exchanged between the discovery,
build and report phases, plus the shared `cattrs` converter.
"""

from __future__ import annotations

from .models import (
    ArtifactOutcome,
    CompiledModule,
    FinalizeSummary,
    MergeOutcome,
    ReportOutcome,
    ReportSummary,
    Toolchain,
    logical_key,
)

__all__ = [
    "ArtifactOutcome",
    "CompiledModule",
    "FinalizeSummary",
    "MergeOutcome",
    "ReportOutcome",
    "ReportSummary",
    "Toolchain",
    "logical_key",
]
