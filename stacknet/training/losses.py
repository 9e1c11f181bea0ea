"""Performance functions scoring one example's prediction against its target."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from ..core.types import Array

LossFn = Callable[[Array, Array], tuple[float, Array]]

_EPS = 1e-12


@dataclass(frozen=True)
class Loss:
    """Loss wrapper returning both the scalar loss and dL/dprediction."""

    name: str
    fn: LossFn

    def __call__(self, prediction: Array, target: Array) -> tuple[float, Array]:
        return self.fn(prediction, target)


class LossRegistry:
    """Central registry for performance functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Loss] = {}

    def register(self, name: str, fn: LossFn) -> None:
        self._registry[name] = Loss(name, fn)

    def get(self, name: str) -> Loss:
        try:
            return self._registry[name]
        except KeyError as exc:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown loss {name!r}. Available losses: {available}") from exc

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, name: str, *, task_type: str) -> Loss:
        if name == "auto":
            if task_type == "regression":
                name = "mse"
            elif task_type == "multiclass":
                name = "cross_entropy"
            elif task_type == "binary":
                name = "bce"
            else:
                raise ValueError(f"Unknown task type: {task_type}")
        return self.get(name)


REGISTRY = LossRegistry()


def _mse(pred: Array, target: Array) -> tuple[float, Array]:
    diff = pred - target
    return float(np.mean(np.square(diff))), 2.0 * diff / diff.size


def _sse(pred: Array, target: Array) -> tuple[float, Array]:
    diff = pred - target
    return float(0.5 * np.sum(np.square(diff))), diff


def _mae(pred: Array, target: Array) -> tuple[float, Array]:
    diff = pred - target
    return float(np.mean(np.abs(diff))), np.sign(diff) / diff.size


def _huber(pred: Array, target: Array, delta: float = 1.0) -> tuple[float, Array]:
    diff = pred - target
    abs_diff = np.abs(diff)
    quadratic = np.minimum(abs_diff, delta)
    linear = abs_diff - quadratic
    loss = float(np.mean(0.5 * quadratic**2 + delta * linear))
    grad = np.where(abs_diff <= delta, diff, delta * np.sign(diff)) / diff.size
    return loss, grad


def _cross_entropy(prob: Array, target: Array) -> tuple[float, Array]:
    # ``prob`` is expected to come out of a softmax layer.
    clipped = np.maximum(prob, _EPS)
    loss = float(-np.sum(target * np.log(clipped)))
    return loss, -target / clipped


def _bce(prob: Array, target: Array) -> tuple[float, Array]:
    clipped = np.clip(prob, _EPS, 1.0 - _EPS)
    loss = float(-np.sum(target * np.log(clipped) + (1 - target) * np.log(1 - clipped)))
    grad = (clipped - target) / (clipped * (1 - clipped))
    return loss, grad


REGISTRY.register("mse", _mse)
REGISTRY.register("sse", _sse)
REGISTRY.register("mae", _mae)
REGISTRY.register("huber", _huber)
REGISTRY.register("cross_entropy", _cross_entropy)
REGISTRY.register("bce", _bce)
# Short alias kept for configs written against the registry's auto names.
REGISTRY.register("ce", _cross_entropy)

__all__ = ["Loss", "LossRegistry", "REGISTRY"]
