"""Metrics computed on network predictions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping

import numpy as np

from ..core.types import Array


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def default_metrics(task_type: str) -> List[str]:
    if task_type == "regression":
        return ["mae", "rmse", "r2"]
    if task_type in {"multiclass", "binary"}:
        return ["accuracy", "classification_error"]
    raise ValueError(f"Unknown task type: {task_type}")


def _labels(array: Array, task_type: str) -> Array:
    if task_type == "multiclass" and array.ndim == 2 and array.shape[1] > 1:
        return np.argmax(array, axis=1)
    return np.rint(array).astype(int).reshape(array.shape[0], -1)


def _accuracy(predictions: Array, targets: Array, task_type: str) -> float:
    hits = _labels(predictions, task_type) == _labels(targets, task_type)
    if hits.ndim > 1:
        hits = np.all(hits, axis=1)
    return float(np.mean(hits))


def compute_metric(name: str, predictions: Array, targets: Array, *, task_type: str) -> MetricResult:
    key = name.lower()
    preds = np.asarray(predictions, dtype=np.float64)
    targs = np.asarray(targets, dtype=np.float64)
    if preds.shape[0] != targs.shape[0]:
        raise ValueError(f"Got {preds.shape[0]} predictions for {targs.shape[0]} targets")
    if key == "mae":
        value = float(np.mean(np.abs(preds - targs)))
    elif key == "rmse":
        value = float(np.sqrt(np.mean((preds - targs) ** 2)))
    elif key == "r2":
        mean = np.mean(targs, axis=0, keepdims=True)
        ss_res = float(np.sum((targs - preds) ** 2))
        ss_tot = float(np.sum((targs - mean) ** 2))
        value = 1.0 if ss_tot == 0 else float(1 - ss_res / ss_tot)
    elif key == "accuracy":
        value = _accuracy(preds, targs, task_type)
    elif key == "classification_error":
        value = 1.0 - _accuracy(preds, targs, task_type)
    else:
        raise KeyError(f"Unknown metric: {name}")
    return MetricResult(name=key, value=value)


def compute_metrics(
    names: Iterable[str],
    predictions: Array,
    targets: Array,
    *,
    task_type: str,
) -> Mapping[str, float]:
    results: Dict[str, float] = {}
    for name in names:
        metric = compute_metric(name, predictions, targets, task_type=task_type)
        results[metric.name] = metric.value
    return results


__all__ = ["MetricResult", "compute_metric", "compute_metrics", "default_metrics"]
