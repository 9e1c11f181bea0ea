"""Core numerical engine for StackNet."""

from . import activations, init, layers, network, optimizers, output, serialization, stack, types

__all__ = [
    "activations",
    "init",
    "layers",
    "network",
    "optimizers",
    "output",
    "serialization",
    "stack",
    "types",
]
