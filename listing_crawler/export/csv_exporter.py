from __future__ import annotations

import csv
from dataclasses import fields
from pathlib import Path

from ..adapters.base import CanonicalProductRecord
from ..utils.parsing import record_row


class CSVExporter:
    """
    Writes one row per accepted product as soon as it is pushed.
    """

    _headers = [f.name for f in fields(CanonicalProductRecord)]

    def __init__(self, path: str) -> None:
        self.path = path
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._file = open(path, "w", encoding="utf-8", newline="")
        self._writer = csv.DictWriter(self._file, fieldnames=self._headers)
        self._writer.writeheader()

    def push(self, record: CanonicalProductRecord) -> None:
        self._writer.writerow(record_row(record))
        self._file.flush()

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()
