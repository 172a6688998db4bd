"""Error taxonomy for the coverage pipeline.

Classes
-------
WasmcovError
    Base class; the CLI turns any of these into exit code 1.
ScanError
    A build-output directory could not be enumerated.
PairingError
    A module has no IR counterpart (or a profile has no object file).
TransformError
    An IR file could not be read, parsed or written.
ToolError
    An external tool exited non-zero or could not be spawned.
ToolNotFoundError
    A required external tool is missing from PATH.
WorkspaceError
    The workspace layout could not be created or reconfigured.
PipelineError
    A whole phase failed (every artifact in the batch failed).
"""

from __future__ import annotations

import shlex
from typing import Sequence


class WasmcovError(RuntimeError):
    """Base class for all pipeline errors."""


class ScanError(WasmcovError):
    """Raised when a directory cannot be enumerated."""


class PairingError(WasmcovError):
    """Raised when an artifact has no matching counterpart."""


class TransformError(WasmcovError):
    """Raised when an IR file cannot be neutralized."""


class WorkspaceError(WasmcovError):
    """Raised on workspace misconfiguration."""


class PipelineError(WasmcovError):
    """Raised when every artifact of a phase failed."""


class ToolNotFoundError(WasmcovError):
    """Raised when a required external tool is not available on PATH."""


class ToolError(WasmcovError):
    """External process failure with captured diagnostics.

    Parameters
    ----------
    argv : sequence of str
        The command that was run.
    exit_code : int
        Process exit code, or ``-1`` when the process could not be spawned.
    stderr : str
        Captured standard error (or the spawn error message).
    """

    def __init__(self, argv: Sequence[str], exit_code: int, stderr: str) -> None:
        self.argv = [str(a) for a in argv]
        self.exit_code = int(exit_code)
        self.stderr = stderr
        super().__init__(self._format())

    def _format(self) -> str:
        cmd = shlex.join(self.argv)
        if self.exit_code < 0:
            return f"Failed to execute command `{cmd}`: {self.stderr.strip()}"
        detail = self.stderr.strip()
        msg = f"Command `{cmd}` failed with status code {self.exit_code}"
        return f"{msg}: {detail}" if detail else msg
