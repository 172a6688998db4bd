"""LLVM IR body neutralization.

Rewrites textual IR so that every function defined in the module keeps its
header but its body becomes::

    start:
      unreachable
    }

The coverage counters and mapping records live in global data, so the
rewritten module still compiles to an object the coverage tool can symbolize,
while no function can ever run (the wasm host imports the original bodies
call do not exist on the native target).

Functions
---------
neutralize_ir_text
    Transform IR text in memory.
neutralize_ir_file
    Read, transform and write an IR file.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterator

from wasmcov.errors import TransformError

STUB_BODY = "start:\n  unreachable\n"

_DEFINE_RE = re.compile(r"^define\b", re.MULTILINE)


def _structural_braces(line: str) -> Iterator[tuple[int, str]]:
    """Yield ``(column, char)`` for each brace in ``line`` outside strings and comments.

    IR string literals (``"..."``, ``c"..."``) never contain a raw quote
    (it is printed as ``\\22``) and, like ``;`` comments, never span lines,
    so a single line can be scanned on its own.
    """

    in_string = False
    for col, ch in enumerate(line):
        if in_string:
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == ";":
            return
        elif ch == "{" or ch == "}":
            yield col, ch


def _line_number(text: str, index: int) -> int:
    return text.count("\n", 0, index) + 1


def _ends_line(line: str, col: int) -> bool:
    """Return True when only whitespace or a comment follows column ``col``."""

    return not line[col + 1 :].split(";", 1)[0].strip()


def _find_body(text: str, start: int) -> tuple[int, int, str]:
    """Locate the body of the function whose ``define`` begins at ``start``.

    The header ends with the first line after which the brace depth is
    positive; braces balanced within the header (struct return types) do
    not open the body. A body opened and closed on the header line itself
    (``define void @f() { ret void }``) is recognized by its ``}`` ending
    the line.

    Returns
    -------
    tuple of (int, int, str)
        ``(body_start, close_index, stub)``: offset where the body starts,
        offset of the matching ``}`` and the stub text to put in between.

    Raises
    ------
    TransformError
        If the body never opens or never closes.
    """

    depth = 0
    body_start = -1
    pos = start
    n = len(text)
    while pos < n:
        nl = text.find("\n", pos)
        end = n if nl < 0 else nl + 1
        line = text[pos:end]
        opened = -1
        for col, ch in _structural_braces(line):
            if ch == "{":
                if depth == 0:
                    opened = col
                depth += 1
                continue
            depth -= 1
            if depth < 0:
                raise TransformError(f"Unbalanced '}}' at line {_line_number(text, pos)}")
            if depth > 0:
                continue
            if body_start >= 0:
                return body_start, pos + col, STUB_BODY
            if opened >= 0 and _ends_line(line, col):
                return pos + opened + 1, pos + col, "\n" + STUB_BODY
        if body_start < 0 and depth > 0:
            body_start = end
        pos = end
    raise TransformError(f"Unbalanced braces in function defined at line {_line_number(text, start)}")


def neutralize_ir_text(text: str) -> tuple[str, int]:
    """Replace every function body in ``text`` with an unreachable stub.

    Parameters
    ----------
    text : str
        Full textual IR module.

    Returns
    -------
    tuple of (str, int)
        The rewritten text and the number of functions neutralized. Text
        without any ``define`` is returned unchanged.

    Raises
    ------
    TransformError
        If a function's braces never balance.
    """

    out: list[str] = []
    pos = 0
    count = 0
    while True:
        m = _DEFINE_RE.search(text, pos)
        if m is None:
            break
        body_start, close, stub = _find_body(text, m.start())
        out.append(text[pos:body_start])
        out.append(stub)
        # Keep the closing brace and whatever follows it.
        pos = close
        count += 1
    out.append(text[pos:])
    return "".join(out), count


def neutralize_ir_file(src: Path, dst: Path) -> int:
    """Neutralize ``src`` into ``dst`` and return the number of functions rewritten.

    Bytes outside function bodies are preserved exactly (including line
    endings and any non-UTF-8 bytes). ``dst`` is created or overwritten and
    its parent directories are created as needed.

    Raises
    ------
    TransformError
        If ``src`` cannot be read, its structure is malformed, or ``dst``
        cannot be written.
    """

    src = Path(src)
    dst = Path(dst)
    try:
        raw = src.read_bytes()
    except OSError as exc:
        raise TransformError(f"Failed to open LL file {src}: {exc}") from exc
    text = raw.decode("utf-8", errors="surrogateescape")
    try:
        new_text, count = neutralize_ir_text(text)
    except TransformError as exc:
        raise TransformError(f"{src}: {exc}") from exc
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        dst.write_bytes(new_text.encode("utf-8", errors="surrogateescape"))
    except OSError as exc:
        raise TransformError(f"Failed to write LL file {dst}: {exc}") from exc
    return count
