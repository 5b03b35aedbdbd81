"""CSV export of list rows."""

from __future__ import annotations

import csv
import io
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any


def _cell(value: Any) -> Any:
    return "" if value is None else value


def _write_rows(handle: io.TextIOBase, rows: Sequence[Mapping[str, Any]]) -> None:
    headers = list(rows[0].keys())
    writer = csv.writer(handle, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_cell(row.get(name)) for name in headers])


def rows_to_csv(rows: Sequence[Mapping[str, Any]]) -> str:
    """Render rows as CSV; the first row's keys are the header."""
    if not rows:
        return ""
    buffer = io.StringIO()
    _write_rows(buffer, rows)
    return buffer.getvalue()


def export_rows_csv(rows: Sequence[Mapping[str, Any]], path: Path | str) -> bool:
    """Write rows to ``path``. Returns False and writes nothing for empty input."""
    if not rows:
        return False
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8", newline="") as handle:
        _write_rows(handle, rows)
    return True
