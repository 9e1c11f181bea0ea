"""Generic CSV datasets for regression and classification tasks."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
from sklearn.preprocessing import LabelEncoder

from .registry import DatasetSpec, DataSpec, register_dataset
from .utils import deterministic_split, one_hot, split_batches, standardize


def _load_csv(path: Path, target_col: str) -> tuple[np.ndarray, np.ndarray]:
    df = pd.read_csv(path)
    if target_col not in df.columns:
        raise KeyError(f"Target column {target_col!r} not found in {path}")
    y = df.pop(target_col).to_numpy()
    X = df.to_numpy(dtype=np.float64)
    return X, y


@register_dataset("csv_regression")
def load_csv_regression(
    *,
    csv_path: str | Path,
    target_col: str = "target",
    val_split: float = 0.0,
    test_split: float = 0.2,
    seed: int = 0,
    standardize_inputs: bool = True,
    standardize_targets: bool = True,
) -> DatasetSpec:
    """Load a regression dataset from a CSV file."""

    path = Path(csv_path)
    X, y_raw = _load_csv(path, target_col)
    y = np.asarray(y_raw, dtype=np.float64).reshape(-1, 1)

    normalization: dict[str, dict[str, list[float]]] = {}
    if standardize_inputs:
        X, mean, std = standardize(X)
        normalization["inputs"] = {"mean": mean.ravel().tolist(), "std": std.ravel().tolist()}
    if standardize_targets:
        y, t_mean, t_std = standardize(y)
        normalization["targets"] = {
            "mean": t_mean.ravel().tolist(),
            "std": t_std.ravel().tolist(),
        }

    splits = deterministic_split(X.shape[0], val_split=val_split, test_split=test_split, seed=seed)
    return DatasetSpec(
        name="csv_regression",
        splits=split_batches(X, y, splits),
        data_spec=DataSpec(
            input_shape=(int(X.shape[1]),),
            d_out=1,
            task_type="regression",
            normalization=normalization,
        ),
        provenance={
            "path": str(path),
            "target_col": target_col,
            "seed": seed,
            "test_split": test_split,
            "standardize_inputs": standardize_inputs,
            "standardize_targets": standardize_targets,
        },
    )


@register_dataset("csv_classification")
def load_csv_classification(
    *,
    csv_path: str | Path,
    target_col: str = "target",
    val_split: float = 0.0,
    test_split: float = 0.2,
    seed: int = 0,
    standardize_inputs: bool = True,
) -> DatasetSpec:
    """Load a classification dataset with one-hot encoded labels."""

    path = Path(csv_path)
    X, y_raw = _load_csv(path, target_col)
    normalization: dict[str, dict[str, list[float]]] = {}
    if standardize_inputs:
        X, mean, std = standardize(X)
        normalization["inputs"] = {"mean": mean.ravel().tolist(), "std": std.ravel().tolist()}
    encoder = LabelEncoder()
    labels = encoder.fit_transform(y_raw)
    num_classes = len(encoder.classes_)
    y = one_hot(labels, num_classes)

    splits = deterministic_split(X.shape[0], val_split=val_split, test_split=test_split, seed=seed)
    return DatasetSpec(
        name="csv_classification",
        splits=split_batches(X, y, splits),
        data_spec=DataSpec(
            input_shape=(int(X.shape[1]),),
            d_out=num_classes,
            task_type="multiclass",
            num_classes=num_classes,
            normalization=normalization,
        ),
        provenance={
            "path": str(path),
            "target_col": target_col,
            "seed": seed,
            "test_split": test_split,
            "classes": [str(c) for c in encoder.classes_],
        },
    )


__all__ = ["load_csv_classification", "load_csv_regression"]
