"""Feed-forward and convolutional network containers.

A network owns a :class:`LayerStack`, an output layer and the flattened
parameter vector every layer's weights are views into. It is the objective
function handed to optimizers: ``evaluate`` runs one example forward and
caches its error, ``gradient`` propagates that error backwards and collects
the per-layer gradients into one vector.
"""

from __future__ import annotations

import copy
import logging
import time
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence, Tuple, Type

import numpy as np

from . import serialization
from .init import InitializationRule, RandomInitialization
from .layers import Layer
from .optimizers import RMSProp
from .output import OutputLayer, is_output_layer
from .stack import LayerStack
from .types import Array, Optimizer, PassContext

logger = logging.getLogger(__name__)


class NetworkState(str, Enum):
    UNINITIALIZED = "uninitialized"
    BUILT = "built"
    TRAINED = "trained"


class Network:
    """Behaviour shared by :class:`FFN` and :class:`CNN`."""

    kind = "network"
    predictor_ndims: Tuple[int, ...] = ()

    def __init__(
        self,
        layers: Sequence[Layer] | LayerStack,
        output_layer: OutputLayer,
        *,
        initialization: InitializationRule | None = None,
        ownership: str = "own",
        layer_types: Sequence[Type[Layer]] | None = None,
        seed: int = 0,
        predictors: Array | None = None,
        responses: Array | None = None,
        optimizer: Optimizer | None = None,
    ) -> None:
        self.state = NetworkState.UNINITIALIZED
        if ownership not in {"own", "borrow"}:
            raise ValueError(f"ownership must be 'own' or 'borrow', got {ownership!r}")
        if not is_output_layer(output_layer):
            raise TypeError(
                f"{type(output_layer).__name__} does not provide output_error/output_class"
            )
        members = list(layers.layers if isinstance(layers, LayerStack) else layers)
        if ownership == "own":
            members = copy.deepcopy(members)
            output_layer = copy.deepcopy(output_layer)
        self.stack = LayerStack(members, signature=layer_types)
        self.output_layer = output_layer
        self.ownership = ownership
        self.seed = seed
        self.deterministic = True
        self._rng = np.random.default_rng(seed)
        self._ctx: PassContext | None = None
        self._predictors: Array | None = None
        self._responses: Array | None = None

        rule = initialization if initialization is not None else RandomInitialization(seed=seed)
        initial = np.asarray(rule.initialize(self.stack.network_size, 1), dtype=np.float64)
        if initial.size != self.stack.network_size:
            raise ValueError(
                f"Initialization produced {initial.size} weights, expected {self.stack.network_size}"
            )
        self._parameter = np.ascontiguousarray(initial.reshape(-1)).copy()
        self.stack.network_weights(self._parameter)
        self.state = NetworkState.BUILT

        if predictors is not None or responses is not None:
            self.train(predictors, responses, optimizer)

    # ------------------------------------------------------------------
    # Properties

    @property
    def parameter(self) -> Array:
        return self._parameter

    @property
    def num_functions(self) -> int:
        return 0 if self._predictors is None else int(self._predictors.shape[0])

    # ------------------------------------------------------------------
    # Training and inference

    def set_batch(self, predictors: Array, responses: Array) -> None:
        """Bind the examples ``evaluate``/``gradient`` index into."""

        self._predictors, self._responses = self._check_batch(predictors, responses)
        self._ctx = None

    def default_optimizer(self) -> Optimizer:
        return RMSProp()

    def train(
        self,
        predictors: Array | None = None,
        responses: Array | None = None,
        optimizer: Optimizer | None = None,
    ) -> float:
        """Optimize the parameters on a batch and return the final objective.

        Without predictors/responses the previously bound batch is reused.
        Training always resumes from the current parameters.
        """

        if predictors is not None or responses is not None:
            if predictors is None or responses is None:
                raise ValueError("predictors and responses must be given together")
            self.set_batch(predictors, responses)
        elif self._predictors is None:
            raise RuntimeError("No training batch bound; pass predictors and responses")

        optimizer = optimizer if optimizer is not None else self.default_optimizer()
        start = time.perf_counter()
        objective = float(optimizer.optimize(self, self._parameter))
        elapsed = time.perf_counter() - start
        logger.info(
            "%s.train(): final objective of trained model is %s (%.3fs)",
            type(self).__name__,
            objective,
            elapsed,
        )
        self.state = NetworkState.TRAINED
        return objective

    def predict(self, predictors: Array) -> Array:
        """Run every example through the stack in deterministic mode.

        Returns one row per example, in input order.
        """

        predictors = np.asarray(predictors, dtype=np.float64)
        self._check_predictors(predictors)
        if predictors.shape[0] == 0:
            raise ValueError("predict() needs at least one example")
        self.deterministic = True
        rows = []
        for example in predictors:
            ctx = self.stack.new_context(True, self._rng)
            activation = self.stack.forward(example, ctx)
            rows.append(np.ravel(self.output_layer.output_class(activation)))
        return np.vstack(rows)

    # ------------------------------------------------------------------
    # Objective function contract

    def evaluate(self, parameters: Array, i: int, deterministic: bool = True) -> float:
        self._ctx = None
        self._sync(parameters)
        predictors, responses = self._require_batch()
        if not 0 <= i < predictors.shape[0]:
            raise IndexError(f"Example {i} out of range for {predictors.shape[0]} examples")
        self.deterministic = bool(deterministic)
        ctx = self.stack.new_context(self.deterministic, self._rng)
        activation = self.stack.forward(predictors[i], ctx)
        loss, error = self.output_layer.output_error(responses[i], activation)
        ctx.error = error
        ctx.index = i
        self._ctx = ctx
        return float(loss)

    def gradient(self, parameters: Array, i: int, gradient: Array) -> None:
        ctx = self._ctx
        if ctx is None or ctx.index != i:
            raise RuntimeError(
                f"gradient() for example {i} requires a preceding evaluate() on the same example"
            )
        self._sync(parameters)
        self.stack.network_gradients(gradient)
        self.stack.backward(ctx.error, ctx)
        self.stack.update_gradients(ctx, gradient)

    # ------------------------------------------------------------------
    # Persistence and copies

    def set_parameters(self, vector: Array) -> None:
        """Copy ``vector`` into the parameter vector and redistribute it."""

        vector = np.asarray(vector, dtype=np.float64)
        if vector.size != self.stack.network_size:
            raise ValueError(
                f"Got {vector.size} parameters, network holds {self.stack.network_size}"
            )
        np.copyto(self._parameter, vector.reshape(-1))
        self.stack.network_weights(self._parameter)
        self._ctx = None

    def state_dict(self) -> Mapping[str, Array]:
        return serialization.serialize(self)

    def load_state_dict(self, state: Mapping[str, Array]) -> None:
        serialization.deserialize(self, state)

    def save(self, path: str | Path) -> str:
        return serialization.save(self, path)

    def load(self, path: str | Path) -> None:
        serialization.load(self, path)

    def copy(self) -> "Network":
        """Independent network with its own layers and parameter vector."""

        clone = copy.deepcopy(self)
        clone.ownership = "own"
        clone._ctx = None
        clone.stack.network_weights(clone._parameter)
        return clone

    def describe(self) -> Dict[str, Any]:
        describe_output = getattr(self.output_layer, "describe", None)
        return {
            "type": self.kind,
            "layers": self.stack.describe(),
            "output": describe_output() if callable(describe_output) else repr(self.output_layer),
            "parameters": self.stack.network_size,
        }

    # ------------------------------------------------------------------
    # Internal helpers

    def _sync(self, parameters: Array) -> None:
        if parameters is self._parameter:
            return
        values = np.asarray(parameters, dtype=np.float64)
        if values.size != self.stack.network_size:
            raise ValueError(
                f"Optimizer supplied {values.size} parameters, network holds "
                f"{self.stack.network_size}"
            )
        np.copyto(self._parameter, values.reshape(-1))

    def _require_batch(self) -> Tuple[Array, Array]:
        if self._predictors is None or self._responses is None:
            raise RuntimeError("No training batch bound; call train() with data first")
        return self._predictors, self._responses

    def _check_predictors(self, predictors: Array) -> None:
        if predictors.ndim not in self.predictor_ndims:
            expected = " or ".join(str(n) for n in self.predictor_ndims)
            raise ValueError(
                f"{type(self).__name__} expects {expected}-D predictors, got shape {predictors.shape}"
            )

    def _check_batch(self, predictors: Array, responses: Array) -> Tuple[Array, Array]:
        predictors = np.asarray(predictors, dtype=np.float64)
        responses = np.asarray(responses, dtype=np.float64)
        self._check_predictors(predictors)
        if responses.ndim == 1:
            responses = responses.reshape(-1, 1)
        if responses.ndim != 2:
            raise ValueError(f"Responses must be 2-D, got shape {responses.shape}")
        if predictors.shape[0] != responses.shape[0]:
            raise ValueError(
                f"Got {predictors.shape[0]} predictor examples but {responses.shape[0]} responses"
            )
        if predictors.shape[0] == 0:
            raise ValueError("Cannot train on an empty batch")
        return predictors, responses

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(layers={len(self.stack)}, "
            f"parameters={self.stack.network_size}, state={self.state.value})"
        )


class FFN(Network):
    """Feed-forward network; predictors are ``(n, features)``."""

    kind = "ffn"
    predictor_ndims = (2,)


class CNN(Network):
    """Convolutional network; predictors are ``(n, rows, cols)`` or ``(n, maps, rows, cols)``."""

    kind = "cnn"
    predictor_ndims = (3, 4)


NETWORK_TYPES: Dict[str, Type[Network]] = {"ffn": FFN, "cnn": CNN}


__all__ = ["CNN", "FFN", "NETWORK_TYPES", "Network", "NetworkState"]
