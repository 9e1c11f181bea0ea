import json
from pathlib import Path

import pytest

from cli.main import main


def test_cli_preset_writes_run_artifacts(tmp_path, capsys):
    run_dir = tmp_path / "run"
    main(["--preset", "bars-cnn", "--run-dir", str(run_dir), "--seed", "5"])
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["checkpoint"] == str(run_dir / "parameters.npz")
    assert (run_dir / "metrics_train.jsonl").exists()
    assert (run_dir / "manifest.json").exists()
    stored = json.loads((run_dir / "config.json").read_text())
    assert stored["train"]["seed"] == 5
    assert stored["data"]["options"]["seed"] == 5


def test_cli_lists_presets(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--list-presets"])
    assert excinfo.value.code == 0
    names = capsys.readouterr().out.split()
    assert "blobs-ffn" in names
    assert "bars-cnn" in names


def test_cli_full_config_runs_under_artifacts(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    config = {
        "data": {"name": "sine", "options": {"n_points": 32, "seed": 1}},
        "model": {
            "type": "ffn",
            "layers": [
                {"kind": "linear", "in_size": 1, "out_size": 4},
                {"kind": "activation", "function": "tanh"},
                {"kind": "linear", "in_size": 4, "out_size": 1},
            ],
            "output": {"kind": "regression"},
        },
        "train": {"seed": 2, "optimizer": {"name": "sgd", "max_iterations": 52}},
    }
    config_path = tmp_path / "run.json"
    config_path.write_text(json.dumps(config))
    dump = tmp_path / "resolved.json"
    main(["--config", str(config_path), "--dump-config", str(dump)])

    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    run_dir = Path(".artifacts") / payload["run_id"]
    assert (run_dir / "summary.json").exists()
    resolved = json.loads(dump.read_text())
    assert resolved["train"]["run_dir"] == str(run_dir)


def test_cli_partial_override_merges_into_preset(tmp_path, capsys):
    override = tmp_path / "override.yaml"
    override.write_text("train:\n  optimizer:\n    max_iterations: 36\n")
    dump = tmp_path / "resolved.json"
    main(
        [
            "--preset",
            "blobs-ffn",
            "--config",
            str(override),
            "--run-dir",
            str(tmp_path / "run"),
            "--dump-config",
            str(dump),
        ]
    )
    resolved = json.loads(dump.read_text())
    assert resolved["train"]["optimizer"]["max_iterations"] == 36
    assert resolved["train"]["optimizer"]["name"] == "rmsprop"
    assert resolved["model"]["type"] == "ffn"


def test_cli_unknown_preset_exits():
    with pytest.raises(SystemExit):
        main(["--preset", "missing"])
