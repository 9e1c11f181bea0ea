"""Activation functions and their derivatives for StackNet layers."""

from __future__ import annotations

from typing import Callable, Dict, Tuple

import numpy as np

from .types import Array


def logistic(x: Array) -> Array:
    """Return the logistic sigmoid of ``x``."""

    return 1.0 / (1.0 + np.exp(-x))


def logistic_deriv(y: Array) -> Array:
    return y * (1.0 - y)


def tanh(x: Array) -> Array:
    return np.tanh(x)


def tanh_deriv(y: Array) -> Array:
    return 1.0 - y**2


def relu(x: Array) -> Array:
    """Return the ReLU activation."""

    return np.maximum(x, 0.0)


def relu_deriv(y: Array) -> Array:
    return (y > 0).astype(np.float64)


def identity(x: Array) -> Array:
    return x


def identity_deriv(y: Array) -> Array:
    return np.ones_like(y)


def softmax(x: Array) -> Array:
    """Numerically stable softmax over every element of ``x``."""

    shifted = np.exp(x - np.max(x))
    return shifted / np.sum(shifted)


# Derivatives are expressed in terms of the activation output.
ACTIVATIONS: Dict[str, Tuple[Callable[[Array], Array], Callable[[Array], Array]]] = {
    "logistic": (logistic, logistic_deriv),
    "tanh": (tanh, tanh_deriv),
    "relu": (relu, relu_deriv),
    "identity": (identity, identity_deriv),
}


def get_activation(name: str) -> Tuple[Callable[[Array], Array], Callable[[Array], Array]]:
    try:
        return ACTIVATIONS[name]
    except KeyError as exc:
        available = ", ".join(sorted(ACTIVATIONS))
        raise KeyError(f"Unknown activation {name!r}. Available: {available}") from exc


__all__ = ["ACTIVATIONS", "get_activation", "identity", "logistic", "relu", "softmax", "tanh"]
