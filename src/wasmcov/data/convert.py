"""Domain <-> JSON conversion utilities using `cattrs`.

Provides a shared converter for turning run summaries into JSON payloads and
for loading them back.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Type, TypeVar

from cattrs import Converter

T = TypeVar("T")

# Public converter instance; register hooks as needed.
converter = Converter()
converter.register_unstructure_hook(Path, str)
converter.register_structure_hook(Path, lambda v, _: Path(v))


def write_summary_json(path: Path, summary: object) -> None:
    """Write an attrs summary object as indented JSON at ``path``."""

    payload = converter.unstructure(summary)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def load_summary_json(path: Path, cls: Type[T]) -> T:
    """Load a JSON summary written by :func:`write_summary_json` into ``cls``."""

    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return converter.structure(payload, cls)
