"""Ordered, fixed-shape composition of layers.

The stack owns the bookkeeping that maps every layer onto a contiguous range
of the flattened parameter vector. Offsets are computed once at construction
and shared by weight binding and gradient collection so the two can never
disagree.
"""

from __future__ import annotations

import copy
from itertools import accumulate
from typing import Any, Dict, Iterator, List, Sequence, Tuple, Type

import numpy as np

from .layers import Layer
from .types import Array, PassContext


class LayerStack:
    """Immutable sequence of layers driven forward and backward in order."""

    def __init__(
        self,
        layers: Sequence[Layer],
        signature: Sequence[Type[Layer]] | None = None,
    ) -> None:
        layers = tuple(layers)
        if not layers:
            raise ValueError("A layer stack needs at least one layer")
        for idx, layer in enumerate(layers):
            if not isinstance(layer, Layer):
                raise TypeError(
                    f"Stack member {idx} is {type(layer).__name__}, not a Layer"
                )
        if signature is not None:
            signature = tuple(signature)
            actual = tuple(type(layer) for layer in layers)
            if actual != signature:
                expected_names = [cls.__name__ for cls in signature]
                actual_names = [cls.__name__ for cls in actual]
                raise TypeError(
                    f"Layer stack {actual_names} does not match declared types {expected_names}"
                )
        self._layers: Tuple[Layer, ...] = layers
        sizes = [layer.weight_size for layer in layers]
        starts = [0, *accumulate(sizes)]
        self._ranges: Tuple[Tuple[int, int], ...] = tuple(
            (start, size) for start, size in zip(starts[:-1], sizes)
        )
        self._size = starts[-1]

    # ------------------------------------------------------------------
    # Sequence protocol

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[Layer]:
        return iter(self._layers)

    def __getitem__(self, idx: int) -> Layer:
        return self._layers[idx]

    @property
    def layers(self) -> Tuple[Layer, ...]:
        return self._layers

    @property
    def offsets(self) -> Tuple[Tuple[int, int], ...]:
        """``(offset, size)`` of every layer inside the parameter vector."""

        return self._ranges

    @property
    def network_size(self) -> int:
        return self._size

    # ------------------------------------------------------------------
    # Parameter vector bookkeeping

    def _check_vector(self, vector: Array, name: str) -> None:
        if not isinstance(vector, np.ndarray) or vector.ndim != 1:
            raise ValueError(f"{name} must be a 1-D numpy array")
        if vector.size != self._size:
            raise ValueError(
                f"{name} has {vector.size} elements but the stack holds {self._size} weights"
            )

    def network_weights(self, parameter: Array) -> None:
        """Bind each layer's weights to its slice of ``parameter``."""

        self._check_vector(parameter, "parameter")
        if not parameter.flags.c_contiguous:
            raise ValueError("parameter must be contiguous so layers can share its memory")
        for layer, (offset, size) in zip(self._layers, self._ranges):
            if size == 0:
                continue
            layer.bind(parameter[offset : offset + size])

    def gather_weights(self) -> Array:
        """Concatenate the current layer weights in stack order."""

        parts = [np.ravel(layer.weights) for layer in self._layers if layer.weight_size]
        if not parts:
            return np.zeros(0, dtype=np.float64)
        return np.concatenate(parts).astype(np.float64)

    def network_gradients(self, gradient: Array) -> None:
        """Validate and clear the caller-supplied gradient vector."""

        self._check_vector(gradient, "gradient")
        gradient.fill(0.0)

    def update_gradients(self, ctx: PassContext, gradient: Array) -> None:
        """Write every layer's gradient into its range of ``gradient``."""

        for layer, scratch, (offset, size) in zip(self._layers, ctx.scratch, self._ranges):
            if size == 0:
                continue
            gradient[offset : offset + size] = np.ravel(layer.gradient(scratch))

    # ------------------------------------------------------------------
    # Traversal

    def new_context(self, deterministic: bool, rng: np.random.Generator) -> PassContext:
        ctx = PassContext(deterministic=deterministic, rng=rng)
        self.reset_parameter(ctx)
        return ctx

    def reset_parameter(self, ctx: PassContext) -> None:
        """Drop every buffer left over from a previous example."""

        ctx.reset(len(self._layers))

    def forward(self, x: Array, ctx: PassContext) -> Array:
        current = np.asarray(x, dtype=np.float64)
        for layer, scratch in zip(self._layers, ctx.scratch):
            scratch.input = current
            current = layer.forward(current, scratch, ctx)
            scratch.output = current
        return current

    def output_parameter(self, ctx: PassContext) -> Array:
        """Activation of the last layer from the latest forward pass."""

        output = ctx.scratch[-1].output
        if output is None:
            raise RuntimeError("forward() has not been run for this context")
        return output

    def backward(self, error: Array, ctx: PassContext) -> Array:
        """Propagate ``error`` from the last layer to the first."""

        current = error
        for layer, scratch in zip(reversed(self._layers), reversed(ctx.scratch)):
            if scratch.input is None:
                raise RuntimeError("backward() called before forward() on this context")
            scratch.error = current
            current = layer.backward(current, scratch, ctx)
            scratch.delta = current
        return current

    # ------------------------------------------------------------------

    def copy(self) -> "LayerStack":
        """Independent deep copy; weights no longer alias any parameter vector."""

        return LayerStack(copy.deepcopy(list(self._layers)))

    def describe(self) -> List[Dict[str, Any]]:
        return [
            {**layer.describe(), "offset": offset, "weight_size": size}
            for layer, (offset, size) in zip(self._layers, self._ranges)
        ]

    def __repr__(self) -> str:
        inner = ", ".join(repr(layer) for layer in self._layers)
        return f"LayerStack([{inner}])"


__all__ = ["LayerStack"]
