"""Epoch metric sinks usable as optimizer callbacks."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Dict, Mapping


def _numeric(metrics: Mapping[str, object]) -> Dict[str, float]:
    return {k: float(v) for k, v in metrics.items() if isinstance(v, (int, float))}


class JsonlSink:
    """Append one JSON record per epoch, truncating the file on creation."""

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        run_id: str | None = None,
        seed: int | None = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split
        self.run_id = run_id
        self.seed = seed
        self.records = 0

    def on_epoch(self, epoch: int, metrics: Mapping[str, object]) -> None:
        record: Dict[str, object] = {
            "epoch": int(epoch),
            "split": self.split,
            "run_id": self.run_id,
            "seed": self.seed,
        }
        record.update(_numeric(metrics))
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")
        self.records += 1

    __call__ = on_epoch


class CsvSink:
    """Write epoch metrics as CSV rows; the header follows the first record."""

    def __init__(self, path: str | Path, *, split: str = "train") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split
        self._fieldnames: list[str] | None = None

    def on_epoch(self, epoch: int, metrics: Mapping[str, object]) -> None:
        row: Dict[str, object] = {"epoch": int(epoch), "split": self.split}
        row.update(_numeric(metrics))
        if self._fieldnames is None:
            self._fieldnames = sorted(row)
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=self._fieldnames, extrasaction="ignore")
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)

    __call__ = on_epoch


__all__ = ["CsvSink", "JsonlSink"]
