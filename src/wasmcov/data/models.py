"""Domain data models for the coverage pipeline.

This module defines `attrs`-based records produced by the discovery, build
and report phases. They are plain values: produced once, never mutated by
later phases. JSON views are derived with `cattrs` (see
`wasmcov.data.convert`).

Classes
-------
CompiledModule
    A discovered instrumented WebAssembly module and its IR pair.
Toolchain
    Resolved external tool paths plus the detected LLVM version.
ArtifactOutcome
    Result of finalizing one module (neutralize + compile + copy).
FinalizeSummary
    All artifact outcomes of one build finalization.
MergeOutcome
    Result of merging the raw samples of one binary.
ReportOutcome
    Terminal report-phase state of one binary.
ReportSummary
    Merge and report outcomes of one report run.
"""

from __future__ import annotations

import os
from typing import Literal

from attrs import Attribute, define, field
from attrs.validators import instance_of, optional

ArtifactStatus = Literal["processed", "ir_missing", "failed"]
MergeStatus = Literal["merged", "failed"]
ReportState = Literal["no_samples", "merged", "object_missing", "reported", "failed"]


def _validate_absolute_path(_instance: object, attribute: Attribute[str], value: str | None) -> None:
    """Ensure a path field is an absolute path (``None`` allowed)."""

    if value is not None and not os.path.isabs(value):
        raise ValueError(f"{attribute.name} must be an absolute path, got {value!r}")


def _validate_non_negative_int(_instance: object, attribute: Attribute[int], value: int) -> None:
    """Ensure an integer count is non-negative."""

    if value < 0:
        raise ValueError(f"{attribute.name} must be non-negative, got {value!r}")


def logical_key(name: str) -> str:
    """Return the dash/underscore-insensitive key for a logical name.

    Examples
    --------
    >>> logical_key('my-contract') == logical_key('my_contract')
    True
    """

    return str(name).replace("-", "_")


@define(kw_only=True, frozen=True)
class CompiledModule:
    """Instrumented module found in a build-output tree.

    Parameters
    ----------
    path : str
        Absolute path of the ``.wasm`` file.
    name : str
        Logical name (file stem).
    ir_path : str or None
        Absolute path of the paired ``.ll`` file, if it exists.
    pairing_error : str or None
        Why the IR pair could not be resolved, when ``ir_path`` is None.
    """

    path: str = field(validator=[instance_of(str), _validate_absolute_path])
    name: str = field(validator=[instance_of(str)])
    ir_path: str | None = field(default=None, validator=[optional(instance_of(str)), _validate_absolute_path])
    pairing_error: str | None = field(default=None)


@define(kw_only=True, frozen=True)
class Toolchain:
    """External tools used by the pipeline, resolved once at startup."""

    llvm_version: str = field(validator=[instance_of(str)])
    is_nightly: bool = field(default=True, validator=[instance_of(bool)])
    clang: str = field(validator=[instance_of(str)])
    llvm_profdata: str = field(validator=[instance_of(str)])
    llvm_cov: str = field(validator=[instance_of(str)])


@define(kw_only=True)
class ArtifactOutcome:
    """Finalization result for one module."""

    name: str = field(validator=[instance_of(str)])
    module_path: str = field(validator=[instance_of(str), _validate_absolute_path])
    status: ArtifactStatus = field(validator=[instance_of(str)])
    ir_path: str | None = field(default=None, validator=[_validate_absolute_path])
    object_path: str | None = field(default=None, validator=[_validate_absolute_path])
    functions_neutralized: int = field(default=0, validator=[instance_of(int), _validate_non_negative_int])
    message: str = field(default="", validator=[instance_of(str)])


@define(kw_only=True)
class FinalizeSummary:
    """Outcomes of one ``finalize-build-artifacts`` run."""

    build_root: str = field(validator=[instance_of(str), _validate_absolute_path])
    staging_dir: str = field(validator=[instance_of(str), _validate_absolute_path])
    outcomes: list[ArtifactOutcome] = field(factory=list)

    @property
    def processed(self) -> list[ArtifactOutcome]:
        return [o for o in self.outcomes if o.status == "processed"]


@define(kw_only=True)
class MergeOutcome:
    """Merge result for one binary's raw samples."""

    name: str = field(validator=[instance_of(str)])
    sample_count: int = field(validator=[instance_of(int), _validate_non_negative_int])
    profile_path: str = field(validator=[instance_of(str), _validate_absolute_path])
    status: MergeStatus = field(validator=[instance_of(str)])
    message: str = field(default="", validator=[instance_of(str)])


@define(kw_only=True)
class ReportOutcome:
    """Report-phase state of one binary.

    State machine: ``no_samples -> merged -> (object_missing | reported)``.
    ``failed`` marks a tool error at either step.
    """

    name: str = field(validator=[instance_of(str)])
    state: ReportState = field(default="no_samples", validator=[instance_of(str)])
    profile_path: str | None = field(default=None, validator=[_validate_absolute_path])
    object_path: str | None = field(default=None, validator=[_validate_absolute_path])
    report_dir: str | None = field(default=None, validator=[_validate_absolute_path])
    message: str = field(default="", validator=[instance_of(str)])


@define(kw_only=True)
class ReportSummary:
    """Outcomes of one ``generate-report`` run."""

    merges: list[MergeOutcome] = field(factory=list)
    reports: list[ReportOutcome] = field(factory=list)

    @property
    def reported(self) -> list[ReportOutcome]:
        return [r for r in self.reports if r.state == "reported"]

    @property
    def skipped(self) -> list[ReportOutcome]:
        return [r for r in self.reports if r.state == "object_missing"]
