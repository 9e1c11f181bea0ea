"""Core typing contracts for StackNet."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Protocol

import numpy as np

Array = np.ndarray


@dataclass(frozen=True)
class Batch:
    """Predictors paired with responses; the leading axis indexes examples."""

    inputs: Array
    targets: Array


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`stacknet.training.pipelines.run_pipeline`."""

    objective: float
    metrics_path: str
    manifest_path: str
    checkpoint_path: str = ""
    summary_path: str = ""


@dataclass
class LayerScratch:
    """Buffers written by one layer during a single forward/backward pass."""

    input: Array | None = None
    output: Array | None = None
    error: Array | None = None
    delta: Array | None = None
    cache: Dict[str, Array] = field(default_factory=dict)


@dataclass
class PassContext:
    """Per-call state threaded through a layer stack.

    ``deterministic`` disables training-only stochastic behaviour (dropout).
    ``scratch`` holds one :class:`LayerScratch` per layer, in stack order.
    """

    deterministic: bool
    rng: np.random.Generator
    scratch: List[LayerScratch] = field(default_factory=list)
    error: Array | None = None
    index: int | None = None

    def reset(self, size: int) -> None:
        self.scratch = [LayerScratch() for _ in range(size)]
        self.error = None
        self.index = None


class ObjectiveFunction(Protocol):
    """Separable objective consumed by the stochastic optimizers."""

    @property
    def num_functions(self) -> int:
        """Number of examples the objective is a sum over."""

    def evaluate(self, parameters: Array, i: int, deterministic: bool = True) -> float:
        """Return the loss of example ``i`` at ``parameters``."""

    def gradient(self, parameters: Array, i: int, gradient: Array) -> None:
        """Write the gradient of example ``i`` into ``gradient``."""


class Optimizer(Protocol):
    """Anything able to minimise an :class:`ObjectiveFunction` in place."""

    def optimize(self, function: ObjectiveFunction, parameters: Array) -> float:
        """Update ``parameters`` in place and return the final objective."""
