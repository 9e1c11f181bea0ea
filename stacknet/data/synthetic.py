"""Pure in-memory synthetic datasets."""

from __future__ import annotations

import numpy as np

from .registry import DatasetSpec, DataSpec, register_dataset
from .utils import deterministic_split, one_hot, split_batches


@register_dataset("sine")
def make_sine(
    freq: int = 1,
    n_points: int = 128,
    seed: int = 0,
    noise: float = 0.05,
    val_split: float = 0.0,
    test_split: float = 0.2,
) -> DatasetSpec:
    """Noisy ``sin(freq * pi * x)`` on ``[-1, 1]``."""

    rng = np.random.default_rng(seed)
    x = np.linspace(-1.0, 1.0, n_points).reshape(-1, 1)
    y = np.sin(freq * np.pi * x) + noise * rng.standard_normal(size=x.shape)
    splits = deterministic_split(n_points, val_split=val_split, test_split=test_split, seed=seed)
    return DatasetSpec(
        name="sine",
        splits=split_batches(x, y, splits),
        data_spec=DataSpec(input_shape=(1,), d_out=1, task_type="regression"),
        provenance={
            "type": "synthetic",
            "freq": freq,
            "n_points": n_points,
            "seed": seed,
            "noise": noise,
        },
    )


@register_dataset("blobs")
def make_blobs(
    n_classes: int = 3,
    n_features: int = 2,
    samples_per_class: int = 40,
    spread: float = 0.4,
    seed: int = 0,
    val_split: float = 0.0,
    test_split: float = 0.2,
) -> DatasetSpec:
    """Gaussian clusters with one-hot targets."""

    rng = np.random.default_rng(seed)
    centers = rng.uniform(-2.0, 2.0, size=(n_classes, n_features))
    inputs = []
    labels = []
    for cls, center in enumerate(centers):
        inputs.append(center + spread * rng.standard_normal((samples_per_class, n_features)))
        labels.append(np.full(samples_per_class, cls))
    x = np.vstack(inputs)
    y = one_hot(np.concatenate(labels), n_classes)
    splits = deterministic_split(x.shape[0], val_split=val_split, test_split=test_split, seed=seed)
    return DatasetSpec(
        name="blobs",
        splits=split_batches(x, y, splits),
        data_spec=DataSpec(
            input_shape=(n_features,),
            d_out=n_classes,
            task_type="multiclass",
            num_classes=n_classes,
        ),
        provenance={
            "type": "synthetic",
            "n_classes": n_classes,
            "n_features": n_features,
            "samples_per_class": samples_per_class,
            "spread": spread,
            "seed": seed,
        },
    )


@register_dataset("bars")
def make_bars(
    size: int = 8,
    n_samples: int = 64,
    noise: float = 0.1,
    seed: int = 0,
    val_split: float = 0.0,
    test_split: float = 0.25,
) -> DatasetSpec:
    """``size`` x ``size`` images holding either a horizontal or a vertical bar."""

    rng = np.random.default_rng(seed)
    images = noise * rng.standard_normal((n_samples, size, size))
    labels = rng.integers(0, 2, size=n_samples)
    positions = rng.integers(0, size, size=n_samples)
    for idx, (label, pos) in enumerate(zip(labels, positions)):
        if label == 0:
            images[idx, pos, :] += 1.0
        else:
            images[idx, :, pos] += 1.0
    targets = one_hot(labels, 2)
    splits = deterministic_split(n_samples, val_split=val_split, test_split=test_split, seed=seed)
    return DatasetSpec(
        name="bars",
        splits=split_batches(images, targets, splits),
        data_spec=DataSpec(
            input_shape=(size, size), d_out=2, task_type="multiclass", num_classes=2
        ),
        provenance={
            "type": "synthetic",
            "size": size,
            "n_samples": n_samples,
            "noise": noise,
            "seed": seed,
        },
    )


__all__ = ["make_bars", "make_blobs", "make_sine"]
