from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

# Columns with a fixed meaning; anything else lands in metadata.
_KNOWN_COLUMNS = ("row_id", "title", "url")


@dataclass
class CandidateInput:
    row_id: str
    title: str
    url: str
    metadata: Dict[str, str]


def _read_rows(
    path: Path,
    *,
    required_fields: Sequence[str],
    encoding: str,
    limit: Optional[int],
) -> Iterable[CandidateInput]:
    """Rows of one export; a blank row_id becomes `<file stem>:<line>`."""
    taken = 0
    with path.open("r", encoding=encoding, newline="") as f:
        for line_no, row in enumerate(csv.DictReader(f), start=2):
            if limit is not None and taken >= limit:
                return
            if any(not (row.get(col) or "").strip() for col in required_fields):
                continue
            yield CandidateInput(
                row_id=(row.get("row_id") or "").strip() or f"{path.stem}:{line_no}",
                title=(row.get("title") or "").strip(),
                url=row["url"].strip(),
                metadata={k: v for k, v in row.items() if k not in _KNOWN_COLUMNS},
            )
            taken += 1


def _export_files(root: Path) -> List[Path]:
    # A directory holds one export per indexer, possibly in subfolders.
    if root.is_file():
        return [root]
    if not root.is_dir():
        return []
    return sorted(p for p in root.rglob("*.csv") if p.is_file())


def load_candidates(
    path_or_dir: Path,
    *,
    required_fields: Sequence[str] = ("url",),
    encoding: str = "utf-8",
    limit_per_file: Optional[int] = None,
    dedupe: bool = True,
) -> List[CandidateInput]:
    """
    Candidate pages from a results export (one CSV, or a directory of them).

    Rows missing any of `required_fields` are skipped. With `dedupe`, a row
    seen again under the same row_id and url (case-insensitive) is dropped;
    the same url under a different row_id is kept because every row gets
    its own status.
    """
    records: List[CandidateInput] = []
    seen: set[tuple[str, str]] = set()
    for path in _export_files(Path(path_or_dir)):
        for rec in _read_rows(path, required_fields=required_fields, encoding=encoding, limit=limit_per_file):
            key = (rec.row_id.lower(), rec.url.lower())
            if dedupe and key in seen:
                continue
            seen.add(key)
            records.append(rec)
    return records
