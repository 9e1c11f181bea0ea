"""Parameter persistence.

Only the flattened parameter vector is stored, under the ``"parameter"``
key. The layer stack must be rebuilt identically before loading.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Mapping

import numpy as np

from .types import Array

if TYPE_CHECKING:  # pragma: no cover
    from .network import Network

PARAMETER_KEY = "parameter"


def serialize(network: "Network") -> Dict[str, Array]:
    return {PARAMETER_KEY: network.parameter.copy()}


def deserialize(network: "Network", archive: Mapping[str, Array]) -> None:
    if PARAMETER_KEY not in archive:
        raise KeyError(f"Archive has no {PARAMETER_KEY!r} entry")
    network.set_parameters(np.asarray(archive[PARAMETER_KEY], dtype=np.float64))


def save(network: "Network", path: str | Path) -> str:
    """Write the parameter vector to ``.npz`` or ``.json``."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()
    if suffix == ".npz":
        with path.open("wb") as handle:
            np.savez_compressed(handle, **serialize(network))
    elif suffix == ".json":
        payload = {PARAMETER_KEY: network.parameter.tolist()}
        path.write_text(json.dumps(payload))
    else:
        raise ValueError(f"Unsupported archive type: {path.suffix}")
    return str(path)


def load(network: "Network", path: str | Path) -> None:
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".npz":
        with np.load(path) as archive:
            deserialize(network, archive)
    elif suffix == ".json":
        payload = json.loads(path.read_text())
        deserialize(network, {k: np.asarray(v, dtype=np.float64) for k, v in payload.items()})
    else:
        raise ValueError(f"Unsupported archive type: {path.suffix}")


__all__ = ["PARAMETER_KEY", "deserialize", "load", "save", "serialize"]
