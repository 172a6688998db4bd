"""Workspace layout management.

This module provides a small manager that owns the on-disk coverage workspace
and the naming rules for everything stored in it.

Layout
------
::

    <root>/
      raw-profiles/<name>/<sample-id>.profraw
      merged-profiles/<name>.profdata
      objects/
      staging/
      reports/<name>/index.html

Classes
-------
Workspace
    Manager for the workspace tree with read-only root access and lazily
    created subdirectories.

Functions
---------
new_sample_id
    Build a collision-free raw sample identifier.
default_workspace_root
    Return ``<cwd>/wasmcov``.
sanitize_binary_name
    Return a filesystem-safe directory name for a logical binary name.
"""

from __future__ import annotations

import re
import shutil
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional, Type, TypeVar

from wasmcov.errors import WorkspaceError

T = TypeVar("T", bound="Workspace")

DEFAULT_DIR_NAME = "wasmcov"

RAW_PROFILES = "raw-profiles"
MERGED_PROFILES = "merged-profiles"
OBJECTS = "objects"
STAGING = "staging"
REPORTS = "reports"

RAW_SUFFIX = ".profraw"
MERGED_SUFFIX = ".profdata"


def new_sample_id(dt: Optional[datetime] = None) -> str:
    """Return a unique raw sample identifier.

    The identifier is ``YYYYMMDD-HHMMSS-<uuid4 hex>``; the timestamp keeps
    samples roughly ordered on disk and the random part makes concurrent
    writers safe without locking.

    Examples
    --------
    >>> sid = new_sample_id()
    >>> len(sid) == 15 + 1 + 32
    True
    """

    ts = (dt or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return f"{ts}-{uuid.uuid4().hex}"


def default_workspace_root(cwd: Path | str | None = None) -> Path:
    """Return the default workspace root, ``<cwd>/wasmcov``."""

    base = Path(cwd) if cwd is not None else Path.cwd()
    return (base / DEFAULT_DIR_NAME).resolve()


def sanitize_binary_name(name: str) -> str:
    """Return a filesystem-safe folder name for a logical binary name.

    Rules:
    - Replace path separators and whitespace with ``_``
    - Keep alphanumerics, ``.``, ``-``, and ``_``; replace others with ``_``

    Dashes and underscores are kept as-is; matching across artifact kinds
    is done on the normalized key, not on the directory name.

    Examples
    --------
    >>> sanitize_binary_name('my-contract')
    'my-contract'
    >>> sanitize_binary_name('a/b c')
    'a_b_c'
    """

    s = str(name).strip().replace("/", "_").replace("\\", "_")
    s = "_".join(s.split())
    s = re.sub(r"[^A-Za-z0-9._-]", "_", s)
    s = re.sub(r"_+", "_", s)
    s = s.strip(".")
    if not s:
        raise WorkspaceError(f"Invalid binary name: {name!r}")
    return s


class Workspace:
    """Coverage workspace manager.

    The constructor takes no arguments; use the `from_root()` factory or the
    `set_root()` mutator to bind a directory. Once bound, the root cannot be
    moved for the lifetime of the object. Member variables are prefixed with
    `m_` and read-only access is provided via properties.

    Attributes
    ----------
    root : pathlib.Path
        Read-only property for the workspace root directory.
    """

    def __init__(self) -> None:
        self.m_root: Optional[Path] = None

    @property
    def root(self) -> Path:
        """Workspace root directory (read-only)."""

        if self.m_root is None:
            raise WorkspaceError("Workspace root not set. Use from_root() or set_root().")
        return self.m_root

    def set_root(self, root: Path | str) -> None:
        """Bind and create the workspace root directory.

        Parameters
        ----------
        root : Path or str
            Destination root. Relative paths are resolved against the
            current working directory.

        Raises
        ------
        WorkspaceError
            If a different root was already bound, or the directory cannot be
            created.
        """

        rp = Path(root).resolve()
        if self.m_root is not None and self.m_root != rp:
            raise WorkspaceError(f"Workspace root already set to {self.m_root}; refusing to move it to {rp}")
        try:
            rp.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkspaceError(f"Failed to create workspace directory {rp}: {exc}") from exc
        self.m_root = rp

    @classmethod
    def from_root(cls: Type[T], root: Path | str) -> T:
        """Factory that returns an initialized manager for ``root``.

        Examples
        --------
        >>> ws = Workspace.from_root('tmp/wasmcov-demo')
        >>> ws.root.name == 'wasmcov-demo'
        True
        """

        obj = cls()
        obj.set_root(root)
        return obj

    def _subdir(self, name: str) -> Path:
        p = self.root / name
        try:
            p.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkspaceError(f"Failed to create workspace directory {p}: {exc}") from exc
        return p

    def raw_profiles_dir(self) -> Path:
        """Return the raw-profile store, created if missing."""

        return self._subdir(RAW_PROFILES)

    def merged_profiles_dir(self) -> Path:
        """Return the merged-profile store, created if missing."""

        return self._subdir(MERGED_PROFILES)

    def objects_dir(self) -> Path:
        """Return the compiled-object store, created if missing."""

        return self._subdir(OBJECTS)

    def staging_dir(self) -> Path:
        """Return the build-output staging area, created if missing."""

        return self._subdir(STAGING)

    def reports_dir(self) -> Path:
        """Return the report store, created if missing."""

        return self._subdir(REPORTS)

    # -------------------------------
    # Per-binary paths
    # -------------------------------

    def raw_profile_dir(self, name: str) -> Path:
        """Return ``raw-profiles/<name>/``, created if missing."""

        p = self.raw_profiles_dir() / sanitize_binary_name(name)
        p.mkdir(parents=True, exist_ok=True)
        return p

    def new_sample_path(self, name: str) -> Path:
        """Return a fresh, unused raw sample path for binary ``name``."""

        return self.raw_profile_dir(name) / f"{new_sample_id()}{RAW_SUFFIX}"

    def store_raw_sample(self, name: str, data: bytes) -> Path:
        """Write one raw profile sample for ``name`` and return its path.

        The file is created exclusively, so two writers can never clobber each
        other even in the (practically impossible) case of an id collision.
        """

        path = self.new_sample_path(name)
        with open(path, "xb") as fh:
            fh.write(data)
        return path

    def merged_profile_path(self, name: str) -> Path:
        """Return ``merged-profiles/<name>.profdata``."""

        return self.merged_profiles_dir() / f"{sanitize_binary_name(name)}{MERGED_SUFFIX}"

    def report_dir(self, name: str) -> Path:
        """Return ``reports/<name>/``. Not created; the report tool owns it."""

        return self.reports_dir() / sanitize_binary_name(name)

    def sample_groups(self) -> list[tuple[str, list[Path]]]:
        """Return ``(name, samples)`` for every raw-profile group with samples.

        Groups are sorted by name and samples by path so callers see a stable
        order. Directories without any ``*.profraw`` file are omitted.
        """

        groups: list[tuple[str, list[Path]]] = []
        for entry in sorted(self.raw_profiles_dir().iterdir()):
            if not entry.is_dir():
                continue
            samples = sorted(p for p in entry.glob(f"*{RAW_SUFFIX}") if p.is_file())
            if samples:
                groups.append((entry.name, samples))
        return groups

    # -------------------------------
    # Reset
    # -------------------------------

    def reset(self, full: bool = False) -> None:
        """Clear workspace content.

        Parameters
        ----------
        full : bool, default False
            When true, delete the whole workspace root and recreate it empty.
            Otherwise the raw-profile, merged-profile, object and report
            stores are emptied; the staging area (build output) is kept.
        """

        root = self.root
        try:
            if full:
                if root.exists():
                    shutil.rmtree(root)
                root.mkdir(parents=True, exist_ok=True)
                return
            for name in (RAW_PROFILES, MERGED_PROFILES, OBJECTS, REPORTS):
                d = root / name
                if d.exists():
                    shutil.rmtree(d)
                d.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkspaceError(f"Failed to reset workspace {root}: {exc}") from exc
