"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, MutableMapping, Tuple

from ..core.types import Batch

TASK_TYPES = {"regression", "multiclass", "binary"}


@dataclass(frozen=True)
class DataSpec:
    """Structural information about a dataset.

    Attributes
    ----------
    input_shape:
        Shape of a single predictor example (``(features,)`` for tabular
        data, ``(rows, cols)`` or ``(maps, rows, cols)`` for images).
    d_out:
        Width of a response row.
    task_type:
        One of ``{"regression", "multiclass", "binary"}``.
    num_classes:
        Number of classes when ``task_type`` is ``"multiclass"``.
    normalization:
        Metadata describing scaling applied to inputs or targets.
    """

    input_shape: Tuple[int, ...]
    d_out: int
    task_type: str
    num_classes: int | None = None
    normalization: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DatasetSpec:
    """A fully materialised dataset split into named batches."""

    name: str
    splits: Dict[str, Batch]
    data_spec: DataSpec
    provenance: Dict[str, Any]

    def split(self, name: str) -> Batch:
        if name not in self.splits:
            raise KeyError(f"Dataset {self.name!r} has no split {name!r}")
        return self.splits[name]

    @property
    def sizes(self) -> Dict[str, int]:
        return {name: int(batch.inputs.shape[0]) for name, batch in self.splits.items()}


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | None:
    """Register a dataset factory, directly or as a decorator::

        @register_dataset("blobs")
        def make_blobs(**kwargs):
            ...
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(dataset: str, /, **options: Any) -> DatasetSpec:
    """Return the :class:`DatasetSpec` built by the factory named ``dataset``."""

    if dataset not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown dataset {dataset!r}. Available datasets: {available}")
    spec = _REGISTRY[dataset](**options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    if spec.data_spec.task_type not in TASK_TYPES:
        raise ValueError(f"Invalid task type: {spec.data_spec.task_type}")
    if spec.data_spec.task_type == "multiclass" and spec.data_spec.num_classes is None:
        raise ValueError("Multiclass datasets must define num_classes")
    if "train" not in spec.splits:
        raise ValueError(f"Dataset {spec.name!r} has no train split")
    for split, batch in spec.splits.items():
        if batch.inputs.shape[0] != batch.targets.shape[0]:
            raise ValueError(
                f"Split {split!r} pairs {batch.inputs.shape[0]} inputs with "
                f"{batch.targets.shape[0]} targets"
            )
        if tuple(batch.inputs.shape[1:]) != tuple(spec.data_spec.input_shape):
            raise ValueError(f"Split {split!r} inputs do not match the declared input shape")


__all__ = [
    "DataSpec",
    "DatasetSpec",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]
