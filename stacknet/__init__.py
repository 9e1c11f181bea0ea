"""StackNet public API."""

from .core import activations  # noqa: F401
from .core import types  # noqa: F401
from .core.init import GaussianInitialization, RandomInitialization, ZeroInitialization
from .core.layers import Activation, Bias, Bias2D, Conv, Dropout, Layer, Linear, Pooling, Softmax
from .core.network import CNN, FFN, Network
from .core.optimizers import SGD, RMSProp
from .core.output import BinaryClassificationLayer, OneHotLayer, RegressionLayer
from .core.stack import LayerStack
from .training.pipelines import build_network, load_preset, presets, run_pipeline

__all__ = [
    "Activation",
    "Bias",
    "Bias2D",
    "BinaryClassificationLayer",
    "CNN",
    "Conv",
    "Dropout",
    "FFN",
    "GaussianInitialization",
    "Layer",
    "LayerStack",
    "Linear",
    "Network",
    "OneHotLayer",
    "Pooling",
    "RMSProp",
    "RandomInitialization",
    "RegressionLayer",
    "SGD",
    "Softmax",
    "ZeroInitialization",
    "activations",
    "build_network",
    "load_preset",
    "presets",
    "run_pipeline",
    "types",
]
