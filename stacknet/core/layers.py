"""Layer families composable into a :class:`stacknet.core.stack.LayerStack`.

Every layer works on a single example. Learned weights live in
``layer.weights``; once a network binds its parameter vector the array is a
view into that vector, so optimizer updates are visible without copying.
Per-call buffers are never stored on the layer: ``forward``/``backward``
write into the :class:`~stacknet.core.types.LayerScratch` they are handed.
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, Mapping, Tuple, Type

import numpy as np
from numpy.lib.stride_tricks import as_strided

from .activations import get_activation, softmax
from .types import Array, LayerScratch, PassContext


def _as_volume(x: Array) -> Array:
    """View a single example as ``(maps, rows, cols)``."""

    if x.ndim == 2:
        return x[np.newaxis]
    if x.ndim == 3:
        return x
    raise ValueError(f"Expected a 2-D or 3-D example, got shape {x.shape}")


class Layer:
    """Common interface shared by every layer kind."""

    kind: ClassVar[str] = "layer"

    def __init__(self, weight_shape: Tuple[int, ...] = (0,)) -> None:
        self.weight_shape = tuple(int(dim) for dim in weight_shape)
        self.weights = np.zeros(self.weight_shape, dtype=np.float64)

    @property
    def weight_size(self) -> int:
        return int(np.prod(self.weight_shape, dtype=np.int64))

    def bind(self, view: Array) -> None:
        """Point ``weights`` at ``view``, a slice of the parameter vector."""

        if view.size != self.weight_size:
            raise ValueError(
                f"{self.kind} layer expects {self.weight_size} weights, got {view.size}"
            )
        self.weights = view.reshape(self.weight_shape)

    def forward(self, x: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        raise NotImplementedError

    def backward(self, gy: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        raise NotImplementedError

    def gradient(self, scratch: LayerScratch) -> Array | None:
        """Gradient w.r.t. ``weights`` from the stored input and error."""

        return None

    def config(self) -> Dict[str, Any]:
        return {}

    def describe(self) -> Dict[str, Any]:
        return {"kind": self.kind, **self.config()}

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self.config().items())
        return f"{type(self).__name__}({args})"


class Linear(Layer):
    """Fully connected mapping ``W @ x``; volumes are flattened first."""

    kind = "linear"

    def __init__(self, in_size: int, out_size: int) -> None:
        self.in_size = int(in_size)
        self.out_size = int(out_size)
        super().__init__((self.out_size, self.in_size))

    def forward(self, x: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        flat = np.ravel(x)
        if flat.size != self.in_size:
            raise ValueError(f"Linear layer expects {self.in_size} inputs, got {flat.size}")
        return self.weights @ flat

    def backward(self, gy: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        return (self.weights.T @ np.ravel(gy)).reshape(np.shape(scratch.input))

    def gradient(self, scratch: LayerScratch) -> Array:
        return np.outer(np.ravel(scratch.error), np.ravel(scratch.input))

    def config(self) -> Dict[str, Any]:
        return {"in_size": self.in_size, "out_size": self.out_size}


class Bias(Layer):
    """Adds ``bias * w`` element-wise to a vector."""

    kind = "bias"

    def __init__(self, out_size: int, bias: float = 1.0) -> None:
        self.out_size = int(out_size)
        self.bias = float(bias)
        super().__init__((self.out_size,))

    def forward(self, x: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        flat = np.ravel(x)
        if flat.size != self.out_size:
            raise ValueError(f"Bias layer expects {self.out_size} inputs, got {flat.size}")
        return flat + self.bias * self.weights

    def backward(self, gy: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        return np.reshape(gy, np.shape(scratch.input))

    def gradient(self, scratch: LayerScratch) -> Array:
        return self.bias * np.ravel(scratch.error)

    def config(self) -> Dict[str, Any]:
        return {"out_size": self.out_size, "bias": self.bias}


class Bias2D(Layer):
    """One learned offset per feature map of a volume."""

    kind = "bias2d"

    def __init__(self, out_maps: int, bias: float = 1.0) -> None:
        self.out_maps = int(out_maps)
        self.bias = float(bias)
        super().__init__((self.out_maps,))

    def forward(self, x: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        vol = _as_volume(x)
        if vol.shape[0] != self.out_maps:
            raise ValueError(f"Bias2D layer expects {self.out_maps} maps, got {vol.shape[0]}")
        out = vol + self.bias * self.weights[:, np.newaxis, np.newaxis]
        return out.reshape(x.shape)

    def backward(self, gy: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        return np.reshape(gy, np.shape(scratch.input))

    def gradient(self, scratch: LayerScratch) -> Array:
        return self.bias * _as_volume(scratch.error).sum(axis=(1, 2))

    def config(self) -> Dict[str, Any]:
        return {"out_maps": self.out_maps, "bias": self.bias}


class Conv(Layer):
    """Valid 2-D cross-correlation of ``in_maps`` maps into ``out_maps`` maps."""

    kind = "conv"

    def __init__(
        self,
        in_maps: int,
        out_maps: int,
        kernel_rows: int,
        kernel_cols: int | None = None,
        stride: int = 1,
        padding: int = 0,
    ) -> None:
        self.in_maps = int(in_maps)
        self.out_maps = int(out_maps)
        self.kernel_rows = int(kernel_rows)
        self.kernel_cols = int(kernel_cols if kernel_cols is not None else kernel_rows)
        self.stride = int(stride)
        self.padding = int(padding)
        if self.stride < 1:
            raise ValueError("stride must be >= 1")
        if self.padding < 0:
            raise ValueError("padding must be >= 0")
        super().__init__((self.out_maps, self.in_maps, self.kernel_rows, self.kernel_cols))

    def _padded(self, x: Array) -> Array:
        vol = _as_volume(x)
        if vol.shape[0] != self.in_maps:
            raise ValueError(f"Conv layer expects {self.in_maps} maps, got {vol.shape[0]}")
        p = self.padding
        if p:
            vol = np.pad(vol, ((0, 0), (p, p), (p, p)), mode="constant")
        return np.ascontiguousarray(vol, dtype=np.float64)

    def _patches(self, vol: Array) -> Array:
        maps, rows, cols = vol.shape
        s = self.stride
        out_rows = (rows - self.kernel_rows) // s + 1
        out_cols = (cols - self.kernel_cols) // s + 1
        if out_rows < 1 or out_cols < 1:
            raise ValueError(
                f"Kernel {self.kernel_rows}x{self.kernel_cols} does not fit input {rows}x{cols}"
            )
        sm, sr, sc = vol.strides
        return as_strided(
            vol,
            shape=(maps, self.kernel_rows, self.kernel_cols, out_rows, out_cols),
            strides=(sm, sr, sc, sr * s, sc * s),
            writeable=False,
        )

    def forward(self, x: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        vol = self._padded(x)
        scratch.cache["padded"] = vol
        return np.einsum("ocij,cijyx->oyx", self.weights, self._patches(vol))

    def backward(self, gy: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        vol = scratch.cache["padded"]
        grad = np.zeros_like(vol)
        out_rows, out_cols = gy.shape[1:]
        s = self.stride
        for i in range(self.kernel_rows):
            for j in range(self.kernel_cols):
                contribution = np.einsum("oc,oyx->cyx", self.weights[:, :, i, j], gy)
                grad[:, i : i + s * out_rows : s, j : j + s * out_cols : s] += contribution
        p = self.padding
        if p:
            grad = grad[:, p:-p, p:-p]
        return grad.reshape(np.shape(scratch.input))

    def gradient(self, scratch: LayerScratch) -> Array:
        patches = self._patches(scratch.cache["padded"])
        return np.einsum("oyx,cijyx->ocij", scratch.error, patches)

    def config(self) -> Dict[str, Any]:
        return {
            "in_maps": self.in_maps,
            "out_maps": self.out_maps,
            "kernel_rows": self.kernel_rows,
            "kernel_cols": self.kernel_cols,
            "stride": self.stride,
            "padding": self.padding,
        }


class Pooling(Layer):
    """Non-overlapping ``kernel_size`` x ``kernel_size`` mean or max pooling."""

    kind = "pooling"

    def __init__(self, kernel_size: int = 2, rule: str = "mean") -> None:
        if rule not in {"mean", "max"}:
            raise ValueError(f"Unknown pooling rule: {rule}")
        self.kernel_size = int(kernel_size)
        self.rule = rule
        super().__init__()

    def _windows(self, vol: Array) -> Array:
        k = self.kernel_size
        maps, rows, cols = vol.shape
        out_rows, out_cols = rows // k, cols // k
        if out_rows == 0 or out_cols == 0:
            raise ValueError(f"Pooling kernel {k} larger than input {rows}x{cols}")
        cropped = vol[:, : out_rows * k, : out_cols * k]
        return cropped.reshape(maps, out_rows, k, out_cols, k)

    def forward(self, x: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        windows = self._windows(_as_volume(x))
        if self.rule == "mean":
            return windows.mean(axis=(2, 4))
        out = windows.max(axis=(2, 4))
        mask = (windows == out[:, :, np.newaxis, :, np.newaxis]).astype(np.float64)
        # Ties share the upstream gradient.
        scratch.cache["mask"] = mask / mask.sum(axis=(2, 4), keepdims=True)
        return out

    def backward(self, gy: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        k = self.kernel_size
        shape = _as_volume(scratch.input).shape
        maps, out_rows, out_cols = gy.shape
        upstream = gy[:, :, np.newaxis, :, np.newaxis]
        if self.rule == "mean":
            spread = np.broadcast_to(upstream / (k * k), (maps, out_rows, k, out_cols, k))
        else:
            spread = scratch.cache["mask"] * upstream
        grad = np.zeros(shape, dtype=np.float64)
        grad[:, : out_rows * k, : out_cols * k] = spread.reshape(maps, out_rows * k, out_cols * k)
        return grad.reshape(np.shape(scratch.input))

    def config(self) -> Dict[str, Any]:
        return {"kernel_size": self.kernel_size, "rule": self.rule}


class Activation(Layer):
    """Element-wise non-linearity; works on vectors and volumes alike."""

    kind = "activation"

    def __init__(self, function: str = "logistic") -> None:
        self.function = function
        self._fn, self._deriv = get_activation(function)
        super().__init__()

    def forward(self, x: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        return self._fn(x)

    def backward(self, gy: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        return gy * self._deriv(scratch.output)

    def config(self) -> Dict[str, Any]:
        return {"function": self.function}


class Softmax(Layer):
    """Normalised exponential over the whole example."""

    kind = "softmax"

    def forward(self, x: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        return softmax(x)

    def backward(self, gy: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        s = scratch.output
        return s * (gy - np.sum(gy * s))


class Dropout(Layer):
    """Randomly zero a ``ratio`` of the activations while training."""

    kind = "dropout"

    def __init__(self, ratio: float = 0.5, rescale: bool = True) -> None:
        if not 0.0 <= ratio < 1.0:
            raise ValueError("ratio must be in [0, 1)")
        self.ratio = float(ratio)
        self.rescale = bool(rescale)
        super().__init__()

    def forward(self, x: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        if ctx.deterministic:
            scale = 1.0 if self.rescale else 1.0 - self.ratio
            mask = np.full(x.shape, scale)
        else:
            scale = 1.0 / (1.0 - self.ratio) if self.rescale else 1.0
            mask = (ctx.rng.random(x.shape) >= self.ratio) * scale
        scratch.cache["mask"] = mask
        return x * mask

    def backward(self, gy: Array, scratch: LayerScratch, ctx: PassContext) -> Array:
        return gy * scratch.cache["mask"]

    def config(self) -> Dict[str, Any]:
        return {"ratio": self.ratio, "rescale": self.rescale}


LAYER_KINDS: Dict[str, Type[Layer]] = {
    cls.kind: cls
    for cls in (Linear, Bias, Bias2D, Conv, Pooling, Activation, Softmax, Dropout)
}


def build_layer(config: Mapping[str, Any]) -> Layer:
    """Instantiate a layer from ``{"kind": ..., **kwargs}``."""

    options = dict(config)
    kind = options.pop("kind", None)
    if kind not in LAYER_KINDS:
        available = ", ".join(sorted(LAYER_KINDS))
        raise KeyError(f"Unknown layer kind {kind!r}. Available kinds: {available}")
    return LAYER_KINDS[kind](**options)


__all__ = [
    "Activation",
    "Bias",
    "Bias2D",
    "Conv",
    "Dropout",
    "LAYER_KINDS",
    "Layer",
    "Linear",
    "Pooling",
    "Softmax",
    "build_layer",
]
