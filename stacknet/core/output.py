"""Output layers: turn the last activation into a loss, an error and a prediction."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Protocol, Type

import numpy as np

from ..training.losses import REGISTRY as LOSS_REGISTRY
from ..training.losses import Loss
from .types import Array


class OutputLayer(Protocol):
    """Capability surface the network containers rely on."""

    def output_error(self, target: Array, activation: Array) -> tuple[float, Array]:
        """Return the scalar loss and the error seeding the backward pass."""

    def output_class(self, activation: Array) -> Array:
        """Map the last activation onto a prediction."""


def is_output_layer(obj: object) -> bool:
    return callable(getattr(obj, "output_error", None)) and callable(
        getattr(obj, "output_class", None)
    )


@dataclass
class _LossHead:
    loss: str = "mse"
    _loss_fn: Loss = field(init=False, repr=False)

    kind = "output"

    def __post_init__(self) -> None:
        self._loss_fn = LOSS_REGISTRY.get(self.loss)

    def output_error(self, target: Array, activation: Array) -> tuple[float, Array]:
        prediction = np.ravel(activation)
        expected = np.ravel(np.asarray(target, dtype=np.float64))
        if prediction.shape != expected.shape:
            raise ValueError(
                f"Network produced {prediction.size} outputs but the response has {expected.size}"
            )
        value, grad = self._loss_fn(prediction, expected)
        return value, np.reshape(grad, np.shape(activation))

    def output_class(self, activation: Array) -> Array:
        raise NotImplementedError

    def describe(self) -> Dict[str, Any]:
        return {"kind": self.kind, "loss": self.loss}


@dataclass
class RegressionLayer(_LossHead):
    """Predictions are the raw activations."""

    kind = "regression"

    def output_class(self, activation: Array) -> Array:
        return np.ravel(activation).copy()


@dataclass
class OneHotLayer(_LossHead):
    """Predicts a one-hot vector marking the largest activation."""

    kind = "one_hot"

    def output_class(self, activation: Array) -> Array:
        flat = np.ravel(activation)
        out = np.zeros_like(flat)
        out[int(np.argmax(flat))] = 1.0
        return out


@dataclass
class BinaryClassificationLayer(_LossHead):
    """Thresholds every activation at ``confidence``."""

    confidence: float = 0.5

    kind = "binary"

    def output_class(self, activation: Array) -> Array:
        return (np.ravel(activation) > self.confidence).astype(np.float64)

    def describe(self) -> Dict[str, Any]:
        return {**super().describe(), "confidence": self.confidence}


OUTPUT_KINDS: Dict[str, Type[_LossHead]] = {
    cls.kind: cls for cls in (RegressionLayer, OneHotLayer, BinaryClassificationLayer)
}


def build_output_layer(config: Mapping[str, Any]) -> OutputLayer:
    options = dict(config)
    kind = options.pop("kind", "regression")
    if kind not in OUTPUT_KINDS:
        available = ", ".join(sorted(OUTPUT_KINDS))
        raise KeyError(f"Unknown output layer {kind!r}. Available: {available}")
    return OUTPUT_KINDS[kind](**options)


__all__ = [
    "BinaryClassificationLayer",
    "OUTPUT_KINDS",
    "OneHotLayer",
    "OutputLayer",
    "RegressionLayer",
    "build_output_layer",
    "is_output_layer",
]
