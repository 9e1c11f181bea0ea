"""Stochastic single-example optimizers over an :class:`ObjectiveFunction`.

One iteration evaluates example ``i`` (non-deterministically), asks for its
gradient and updates the parameters in place. ``num_functions`` iterations
make an epoch; optimization stops once the epoch objective changes by less
than ``tolerance`` or after ``max_iterations`` iterations (0 means no limit).
Either way the returned objective is a deterministic pass over every example.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Sequence, Type

import numpy as np

from .types import Array, ObjectiveFunction

logger = logging.getLogger(__name__)


@dataclass
class _StochasticOptimizer:
    step_size: float = 0.01
    max_iterations: int = 100000
    tolerance: float = 1e-5
    shuffle: bool = True
    seed: int = 0
    callbacks: Sequence[object] = field(default_factory=list)

    def optimize(self, function: ObjectiveFunction, parameters: Array) -> float:
        num_functions = int(function.num_functions)
        if num_functions <= 0:
            raise ValueError("Cannot optimize an objective with no examples")
        rng = np.random.default_rng(self.seed)
        order = np.arange(num_functions)
        gradient = np.zeros_like(parameters)
        state = self._init_state(parameters)

        last_objective = np.inf
        overall = 0.0
        epoch = 0
        iteration = 0
        while not self.max_iterations or iteration < self.max_iterations:
            position = iteration % num_functions
            if position == 0 and self.shuffle:
                order = rng.permutation(num_functions)
            idx = int(order[position])
            overall += function.evaluate(parameters, idx, deterministic=False)
            function.gradient(parameters, idx, gradient)
            self._update(parameters, gradient, state)
            iteration += 1

            if iteration % num_functions == 0:
                epoch += 1
                self._emit(epoch, overall, num_functions)
                if abs(last_objective - overall) < self.tolerance:
                    logger.info(
                        "%s: minimized within tolerance %g after %d epochs",
                        type(self).__name__,
                        self.tolerance,
                        epoch,
                    )
                    return self._final_objective(function, parameters, num_functions)
                last_objective = overall
                overall = 0.0

        logger.info(
            "%s: maximum iterations (%d) reached; terminating optimization",
            type(self).__name__,
            self.max_iterations,
        )
        return self._final_objective(function, parameters, num_functions)

    @staticmethod
    def _final_objective(function: ObjectiveFunction, parameters: Array, num_functions: int) -> float:
        # Leaves the function synchronized with the final parameters.
        return float(sum(function.evaluate(parameters, i) for i in range(num_functions)))

    def _emit(self, epoch: int, objective: float, num_functions: int) -> None:
        metrics = {"objective": float(objective), "loss": float(objective) / num_functions}
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)

    def _init_state(self, parameters: Array) -> Dict[str, Array]:
        return {}

    def _update(self, parameters: Array, gradient: Array, state: Dict[str, Array]) -> None:
        raise NotImplementedError


@dataclass
class SGD(_StochasticOptimizer):
    """Plain stochastic gradient descent."""

    def _update(self, parameters: Array, gradient: Array, state: Dict[str, Array]) -> None:
        parameters -= self.step_size * gradient


@dataclass
class RMSProp(_StochasticOptimizer):
    """Scale each step by a running average of squared gradients."""

    alpha: float = 0.99
    eps: float = 1e-8

    def _init_state(self, parameters: Array) -> Dict[str, Array]:
        return {"mean_squared": np.zeros_like(parameters)}

    def _update(self, parameters: Array, gradient: Array, state: Dict[str, Array]) -> None:
        mean_squared = state["mean_squared"]
        mean_squared *= self.alpha
        mean_squared += (1.0 - self.alpha) * gradient * gradient
        parameters -= self.step_size * gradient / (np.sqrt(mean_squared) + self.eps)


OPTIMIZERS: Dict[str, Type[_StochasticOptimizer]] = {"sgd": SGD, "rmsprop": RMSProp}


def build_optimizer(
    config: Mapping[str, Any] | None, callbacks: Sequence[object] = ()
) -> _StochasticOptimizer:
    options = dict(config or {})
    name = str(options.pop("name", "rmsprop")).lower()
    if name not in OPTIMIZERS:
        available = ", ".join(sorted(OPTIMIZERS))
        raise KeyError(f"Unknown optimizer {name!r}. Available: {available}")
    return OPTIMIZERS[name](callbacks=list(callbacks), **options)


__all__ = ["OPTIMIZERS", "RMSProp", "SGD", "build_optimizer"]
