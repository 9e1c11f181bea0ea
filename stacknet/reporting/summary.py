"""Deterministic summaries of epoch metric logs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, List, Mapping

import numpy as np

_SKIP = {"epoch", "seed"}


def _read_records(path: Path) -> List[Mapping[str, object]]:
    if not path.exists():
        return []
    records = []
    for line in path.read_text().splitlines():
        line = line.strip()
        if line:
            records.append(json.loads(line))
    return records


def _series(records: Iterable[Mapping[str, object]]) -> Dict[str, List[float]]:
    series: Dict[str, List[float]] = {}
    for record in records:
        for key, value in record.items():
            if key in _SKIP or isinstance(value, bool):
                continue
            if isinstance(value, (int, float)):
                series.setdefault(key, []).append(float(value))
    return series


def summarize(records: List[Mapping[str, object]], *, tail: int = 10) -> Dict[str, object]:
    """Per-metric min/max/last and the mean over the last ``tail`` epochs."""

    window = min(tail, len(records))
    metrics: Dict[str, Dict[str, float]] = {}
    for name, values in _series(records).items():
        arr = np.asarray(values, dtype=np.float64)
        metrics[name] = {
            "min": float(np.min(arr)),
            "max": float(np.max(arr)),
            "first": float(arr[0]),
            "last": float(arr[-1]),
            "tail_mean": float(np.mean(arr[-window:])) if window else float(arr[-1]),
        }
    return {"version": 1, "epochs": len(records), "tail_window": window, "metrics": metrics}


def write_summary(
    metrics_jsonl: str | Path,
    out_summary_json: str | Path,
    *,
    tail: int = 10,
    extra: Mapping[str, object] | None = None,
) -> str:
    """Summarise ``metrics_jsonl`` into ``out_summary_json``.

    ``extra`` is stored verbatim under ``"evaluation"``, typically test-split metrics.
    """

    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    summary = summarize(_read_records(Path(metrics_jsonl)), tail=tail)
    if extra:
        summary["evaluation"] = dict(extra)
    out_path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["summarize", "write_summary"]
