"""Config-driven training runs for StackNet networks."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

from ..core.init import build_initialization
from ..core.layers import build_layer
from ..core.network import NETWORK_TYPES, Network
from ..core.optimizers import build_optimizer
from ..core.output import build_output_layer
from ..core.types import RunResult
from ..data import registry
from ..reporting.artifacts import write_manifest
from ..reporting.plots import PlotAdapter
from ..reporting.sinks import CsvSink, JsonlSink
from ..reporting.summary import write_summary
from .losses import REGISTRY as LOSS_REGISTRY
from .metrics import compute_metrics, default_metrics

logger = logging.getLogger(__name__)

_PRESETS: Dict[str, Mapping[str, object]] = {
    "sine-ffn": {
        "data": {"name": "sine", "options": {"freq": 1, "n_points": 64, "seed": 0}},
        "model": {
            "type": "ffn",
            "layers": [
                {"kind": "linear", "in_size": 1, "out_size": 8},
                {"kind": "bias", "out_size": 8},
                {"kind": "activation", "function": "tanh"},
                {"kind": "linear", "in_size": 8, "out_size": 1},
                {"kind": "bias", "out_size": 1},
            ],
            "output": {"kind": "regression", "loss": "mse"},
            "init": {"rule": "random", "lower": -0.5, "upper": 0.5},
        },
        "train": {
            "seed": 0,
            "optimizer": {
                "name": "rmsprop",
                "step_size": 0.01,
                "max_iterations": 5000,
                "tolerance": 1e-6,
            },
            "run_dir": "runs/sine-ffn",
            "enable_plots": False,
        },
    },
    "blobs-ffn": {
        "data": {
            "name": "blobs",
            "options": {"n_classes": 3, "samples_per_class": 30, "seed": 0},
        },
        "model": {
            "type": "ffn",
            "layers": [
                {"kind": "linear", "in_size": 2, "out_size": 8},
                {"kind": "bias", "out_size": 8},
                {"kind": "activation", "function": "tanh"},
                {"kind": "linear", "in_size": 8, "out_size": 3},
                {"kind": "bias", "out_size": 3},
                {"kind": "softmax"},
            ],
            "output": {"kind": "one_hot", "loss": "cross_entropy"},
            "init": {"rule": "random", "lower": -0.5, "upper": 0.5},
        },
        "train": {
            "seed": 1,
            "optimizer": {
                "name": "rmsprop",
                "step_size": 0.01,
                "max_iterations": 3600,
                "tolerance": 1e-6,
            },
            "run_dir": "runs/blobs-ffn",
            "enable_plots": False,
        },
    },
    "bars-cnn": {
        "data": {"name": "bars", "options": {"size": 6, "n_samples": 48, "seed": 0}},
        "model": {
            "type": "cnn",
            "layers": [
                {"kind": "conv", "in_maps": 1, "out_maps": 2, "kernel_rows": 3},
                {"kind": "bias2d", "out_maps": 2},
                {"kind": "activation", "function": "tanh"},
                {"kind": "pooling", "kernel_size": 2, "rule": "max"},
                {"kind": "linear", "in_size": 8, "out_size": 2},
                {"kind": "softmax"},
            ],
            "output": {"kind": "one_hot", "loss": "cross_entropy"},
            "init": {"rule": "gaussian", "std": 0.3},
        },
        "train": {
            "seed": 2,
            "optimizer": {
                "name": "sgd",
                "step_size": 0.05,
                "max_iterations": 1800,
                "tolerance": 1e-6,
            },
            "run_dir": "runs/bars-cnn",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_REQUIRED_SECTIONS = {"data", "model", "train"}


def _read_config_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        import yaml

        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")
    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def load_config(path: str | Path) -> Dict[str, object]:
    """Read a JSON or YAML config file into a plain dict."""

    return json.loads(json.dumps(_read_config_file(Path(path))))


def _file_presets() -> Dict[str, Mapping[str, object]]:
    found: Dict[str, Mapping[str, object]] = {}
    if not _PRESET_DIR.exists():
        return found
    for file in sorted(_PRESET_DIR.iterdir()):
        if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
            continue
        data = load_config(file)
        missing = _REQUIRED_SECTIONS - set(data)
        if missing:
            raise KeyError(f"Preset {file.name} is missing sections: {', '.join(sorted(missing))}")
        found[file.stem] = data
    return found


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {
        name: deepcopy(cfg) for name, cfg in _PRESETS.items()
    }
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Dict[str, Any]:
    available = presets()
    if name not in available:
        raise KeyError(f"Unknown preset {name!r}. Available presets: {', '.join(sorted(available))}")
    return dict(available[name])


def config_hash(config: Mapping[str, object]) -> str:
    """Stable 12-character id of the canonical JSON form of ``config``."""

    canonical = json.dumps(config, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:12]


def build_network(model_cfg: Mapping[str, Any], *, seed: int = 0) -> Network:
    """Assemble an untrained network from the ``model`` section of a config."""

    kind = str(model_cfg.get("type", "ffn")).lower()
    if kind not in NETWORK_TYPES:
        available = ", ".join(sorted(NETWORK_TYPES))
        raise KeyError(f"Unknown network type {kind!r}. Available: {available}")
    layer_cfgs = model_cfg.get("layers")
    if not layer_cfgs:
        raise ValueError("model.layers must list at least one layer")
    layers = [build_layer(cfg) for cfg in layer_cfgs]
    output_layer = build_output_layer(model_cfg.get("output", {}))
    init_cfg = dict(model_cfg.get("init") or {})
    if init_cfg.get("rule", "random") != "zero":
        init_cfg.setdefault("seed", seed)
    return NETWORK_TYPES[kind](
        layers,
        output_layer,
        initialization=build_initialization(init_cfg),
        seed=seed,
    )


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])
    seed = int(train_cfg.get("seed", 0))

    dataset = registry.get_dataset(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))
    data_spec = dataset.data_spec
    output_cfg = dict(model_cfg.get("output") or {})
    loss_name = str(output_cfg.get("loss", "auto"))
    output_cfg["loss"] = LOSS_REGISTRY.resolve(loss_name, task_type=data_spec.task_type).name
    model_cfg["output"] = output_cfg

    network = build_network(model_cfg, seed=seed)
    metric_names = _metric_names(train_cfg.get("metrics", "default"), data_spec.task_type)

    run_dir = _resolve_run_dir(train_cfg, dataset.name, network.kind)
    run_dir.mkdir(parents=True, exist_ok=True)
    run_id = config_hash(config)

    optimizer_cfg = dict(train_cfg.get("optimizer") or {})
    optimizer_cfg.setdefault("seed", seed)
    _print_startup_summary(
        dataset_name=dataset.name,
        sizes=dataset.sizes,
        network=network,
        loss=output_cfg["loss"],
        optimizer=str(optimizer_cfg.get("name", "rmsprop")),
        metrics=metric_names,
    )

    train_jsonl = JsonlSink(run_dir / "metrics_train.jsonl", split="train", run_id=run_id, seed=seed)
    train_csv = CsvSink(run_dir / "metrics_train.csv", split="train")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    optimizer = build_optimizer(optimizer_cfg, callbacks=[train_jsonl, train_csv, plots])

    train = dataset.split("train")
    try:
        objective = network.train(train.inputs, train.targets, optimizer)
    finally:
        plots.close()

    evaluation: Dict[str, float] = {"objective": objective}
    for split in ("val", "test"):
        if split not in dataset.splits:
            continue
        batch = dataset.split(split)
        predictions = network.predict(batch.inputs)
        scores = compute_metrics(
            metric_names, predictions, batch.targets, task_type=data_spec.task_type
        )
        evaluation.update({f"{split}_{name}": value for name, value in scores.items()})
    (run_dir / "metrics_test.json").write_text(json.dumps(evaluation, indent=2, sort_keys=True))
    logger.info("run %s finished: %s", run_id, evaluation)

    checkpoint = network.save(run_dir / "parameters.npz")
    stored_config = json.loads(json.dumps(config, default=str))
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=stored_config,
        dataset_provenance=dataset.provenance,
        network=network.describe(),
        results={"run_id": run_id, **evaluation},
    )
    summary_path = write_summary(
        train_jsonl.path,
        run_dir / "summary.json",
        tail=int(train_cfg.get("summary_tail", 10)),
        extra=evaluation,
    )
    (run_dir / "config.json").write_text(json.dumps(stored_config, indent=2))

    return RunResult(
        objective=objective,
        metrics_path=str(train_jsonl.path),
        manifest_path=manifest,
        checkpoint_path=checkpoint,
        summary_path=summary_path,
    )


def _metric_names(metrics_cfg: object, task_type: str) -> List[str]:
    if metrics_cfg in (None, "default"):
        return default_metrics(task_type)
    if isinstance(metrics_cfg, str):
        return [name.strip() for name in metrics_cfg.split(",") if name.strip()]
    return [str(name) for name in metrics_cfg]  # type: ignore[union-attr]


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str, network: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset / network


def _print_startup_summary(
    *,
    dataset_name: str,
    sizes: Mapping[str, int],
    network: Network,
    loss: str,
    optimizer: str,
    metrics: Sequence[str],
) -> None:
    kinds = [layer.kind for layer in network.stack]
    print("=== StackNet run ===")
    print(f"Dataset       : {dataset_name} {dict(sizes)}")
    print(f"Network       : {network.kind} {kinds}")
    print(f"Loss          : {loss}")
    print(f"Optimizer     : {optimizer}")
    print(f"Metrics       : {', '.join(metrics)}")
    print(f"Parameters    : {network.stack.network_size}")
    print("====================")


__all__ = [
    "build_network",
    "config_hash",
    "load_config",
    "load_preset",
    "presets",
    "run_pipeline",
]
