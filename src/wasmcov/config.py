"""Configuration models and loader.

Defaults live in the Hydra config tree shipped under ``wasmcov/conf``. The
composed `DictConfig` is converted into the attrs `WasmcovConfig` with
`cattrs`, so the rest of the pipeline only ever sees a typed, validated,
explicitly passed object.

Functions
---------
load_config
    Compose the default config with Hydra overrides and return a `WasmcovConfig`.
config_from_mapping
    Build a `WasmcovConfig` from a plain mapping (tests, programmatic use).
write_config_yaml
    Persist the effective configuration as YAML for provenance.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Sequence

from attrs import define, field
from attrs.validators import deep_iterable, in_, instance_of, optional
from cattrs import Converter
from hydra import compose, initialize_config_dir
from omegaconf import DictConfig, OmegaConf

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_STR_LIST = deep_iterable(member_validator=instance_of(str), iterable_validator=instance_of(list))


def configs_dir() -> Path:
    """Return the absolute directory of the bundled Hydra config tree."""

    return (Path(__file__).resolve().parent / "conf").resolve()


@define(kw_only=True)
class WorkspaceSettings:
    """Where the coverage workspace lives (``None`` -> resolved by the caller)."""

    root: str | None = field(default=None, validator=[optional(instance_of(str))])


@define(kw_only=True)
class ToolchainSettings:
    """Explicit tool selection; any ``None`` field is probed at startup."""

    llvm_version: str | None = field(default=None, converter=lambda v: None if v is None else str(v))
    clang: str | None = field(default=None, validator=[optional(instance_of(str))])
    llvm_profdata: str | None = field(default=None, validator=[optional(instance_of(str))])
    llvm_cov: str | None = field(default=None, validator=[optional(instance_of(str))])
    check_wasm_target: bool = field(default=True, validator=[instance_of(bool)])
    wasm_target: str = field(default="wasm32-unknown-unknown", validator=[instance_of(str)])


@define(kw_only=True)
class BuildSettings:
    """Instrumented build and object compilation settings."""

    marker: str = field(default="__llvm_profile_init", validator=[instance_of(str)])
    target_triple: str = field(default="x86_64-unknown-linux-gnu", validator=[instance_of(str)])
    rustflags: list[str] = field(
        factory=lambda: [
            "--emit=llvm-ir",
            "-Cinstrument-coverage",
            "-Clto=off",
            "-Zlocation-detail=none",
            "-Zno-profiler-runtime",
        ],
        validator=[_STR_LIST],
    )

    @marker.validator
    def _check_marker(self, attribute: Any, value: str) -> None:
        if not value:
            raise ValueError("build.marker must be a non-empty string")

    @property
    def marker_bytes(self) -> bytes:
        return self.marker.encode("utf-8")


@define(kw_only=True)
class MergeSettings:
    """Extra arguments appended to every ``llvm-profdata merge`` call."""

    extra_args: list[str] = field(factory=list, validator=[_STR_LIST])


@define(kw_only=True)
class ReportSettings:
    """Extra arguments appended to every ``llvm-cov show`` call."""

    extra_args: list[str] = field(factory=list, validator=[_STR_LIST])


@define(kw_only=True)
class LoggingSettings:
    """Log level and optional log file (relative to the workspace root)."""

    level: str = field(default="INFO", converter=lambda v: str(v).upper(), validator=[in_(_LOG_LEVELS)])
    file: str | None = field(default="wasmcov.log", validator=[optional(instance_of(str))])


@define(kw_only=True)
class WasmcovConfig:
    """Top-level configuration passed explicitly into the pipeline."""

    workspace: WorkspaceSettings = field(factory=WorkspaceSettings)
    toolchain: ToolchainSettings = field(factory=ToolchainSettings)
    build: BuildSettings = field(factory=BuildSettings)
    merge: MergeSettings = field(factory=MergeSettings)
    report: ReportSettings = field(factory=ReportSettings)
    logging: LoggingSettings = field(factory=LoggingSettings)


def _build_converter() -> Converter:
    conv = Converter(forbid_extra_keys=True)
    # YAML may spell versions as integers (toolchain.llvm_version=17)
    conv.register_structure_hook(str, lambda v, _: str(v))
    return conv


def config_from_mapping(payload: Mapping[str, Any]) -> WasmcovConfig:
    """Structure a plain mapping into a validated `WasmcovConfig`.

    Missing sections and keys fall back to their defaults; unknown keys are
    rejected.
    """

    return _build_converter().structure(dict(payload), WasmcovConfig)


def load_config(overrides: Sequence[str] | None = None, *, config_name: str = "config") -> WasmcovConfig:
    """Compose the bundled config with Hydra ``overrides`` and return it typed.

    Parameters
    ----------
    overrides : sequence of str or None
        Hydra override strings (e.g., ``toolchain.llvm_version=17``).
    config_name : str, default ``"config"``
        Primary config file name under ``wasmcov/conf``.

    Examples
    --------
    >>> cfg = load_config(["report.extra_args=['--show-instantiations=false']"])
    >>> cfg.report.extra_args
    ['--show-instantiations=false']
    """

    with initialize_config_dir(config_dir=str(configs_dir()), version_base=None):
        cfg: DictConfig = compose(config_name=str(config_name), overrides=list(overrides or []))
    payload = OmegaConf.to_container(cfg, resolve=True)
    if not isinstance(payload, dict):
        raise TypeError(f"Composed config must be a mapping, got {type(payload).__name__}")
    return config_from_mapping(payload)


def write_config_yaml(path: Path, cfg: WasmcovConfig) -> None:
    """Serialize the effective configuration to YAML at ``path``."""

    payload = _build_converter().unstructure(cfg)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(OmegaConf.to_yaml(OmegaConf.create(payload)), encoding="utf-8")
