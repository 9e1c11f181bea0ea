"""Command line entry point for StackNet training runs."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Iterable

from stacknet.training import pipelines


def _format_result(result, run_id: str | None = None) -> str:
    payload = {
        "objective": result.objective,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
        "checkpoint": result.checkpoint_path,
        "summary": result.summary_path,
    }
    if run_id is not None:
        payload["run_id"] = run_id
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        default="blobs-ffn",
        help="Preset configuration to execute (see --list-presets)",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument("--seed", type=int, help="Seed used for data, initialization and training")
    parser.add_argument("--run-dir", type=Path, help="Directory receiving run artifacts")
    parser.add_argument("--enable-plots", action="store_true", help="Write a training curve plot")
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress at INFO level")
    return parser.parse_args(argv)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def resolve_config(args: argparse.Namespace) -> tuple[dict, str]:
    """Return the config to run and where it came from (``preset`` or ``config``)."""

    source = "preset"
    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))
    if args.config:
        override = pipelines.load_config(args.config)
        if {"data", "model", "train"} <= set(override):
            config = override
            source = "config"
        else:
            config = _merge(config, override)
    train_cfg = config.setdefault("train", {})
    if args.enable_plots:
        train_cfg["enable_plots"] = True
    if args.seed is not None:
        train_cfg["seed"] = int(args.seed)
        config.setdefault("data", {}).setdefault("options", {})["seed"] = int(args.seed)
    return config, source


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    if args.list_presets:
        for name in sorted(pipelines.presets()):
            print(name)
        raise SystemExit(0)

    try:
        config, source = resolve_config(args)
    except KeyError as exc:
        raise SystemExit(str(exc)) from None

    run_id: str | None = None
    if args.run_dir is not None:
        config["train"]["run_dir"] = str(args.run_dir)
    elif source == "config":
        run_id = pipelines.config_hash(config)
        config["train"]["run_dir"] = str(Path(".artifacts") / run_id)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    result = pipelines.run_pipeline(config)
    print(_format_result(result, run_id=run_id))


if __name__ == "__main__":
    main()
