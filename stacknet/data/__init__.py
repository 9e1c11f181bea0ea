"""Dataset registry and built-in datasets."""

# Built-in datasets register themselves on import.
from . import csv_generic as _csv_generic  # noqa: F401
from . import synthetic as _synthetic  # noqa: F401
from .registry import DatasetSpec, DataSpec, available_datasets, get_dataset, register_dataset

__all__ = [
    "DataSpec",
    "DatasetSpec",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]
