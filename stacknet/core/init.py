"""Initialization rules used to fill a fresh parameter vector."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Protocol, Type

import numpy as np

from .types import Array


class InitializationRule(Protocol):
    def initialize(self, rows: int, cols: int) -> Array:
        """Return a ``(rows, cols)`` matrix of initial weights."""


@dataclass
class RandomInitialization:
    """Uniform weights in ``[lower, upper)``."""

    lower: float = -1.0
    upper: float = 1.0
    seed: int | None = None

    def initialize(self, rows: int, cols: int) -> Array:
        if self.upper < self.lower:
            raise ValueError("upper bound must not be below lower bound")
        rng = np.random.default_rng(self.seed)
        return rng.uniform(self.lower, self.upper, size=(rows, cols))


@dataclass
class GaussianInitialization:
    mean: float = 0.0
    std: float = 1.0
    seed: int | None = None

    def initialize(self, rows: int, cols: int) -> Array:
        rng = np.random.default_rng(self.seed)
        return rng.normal(self.mean, self.std, size=(rows, cols))


@dataclass
class ZeroInitialization:
    def initialize(self, rows: int, cols: int) -> Array:
        return np.zeros((rows, cols), dtype=np.float64)


INIT_RULES: Dict[str, Type[Any]] = {
    "random": RandomInitialization,
    "gaussian": GaussianInitialization,
    "zero": ZeroInitialization,
}


def build_initialization(config: Mapping[str, Any] | None) -> InitializationRule:
    options = dict(config or {})
    rule = options.pop("rule", "random")
    if rule not in INIT_RULES:
        available = ", ".join(sorted(INIT_RULES))
        raise KeyError(f"Unknown initialization rule {rule!r}. Available: {available}")
    return INIT_RULES[rule](**options)


__all__ = [
    "GaussianInitialization",
    "INIT_RULES",
    "InitializationRule",
    "RandomInitialization",
    "ZeroInitialization",
    "build_initialization",
]
