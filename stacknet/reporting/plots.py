"""Training curve plots; matplotlib is only imported when plots are enabled."""

from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Tuple


class PlotAdapter:
    """Optimizer callback that records the epoch objective and plots it on close."""

    filename = "objective.png"

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self.history: List[Tuple[int, float]] = []

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        if not self.enable_plots:
            return
        self.history.append((int(epoch), float(metrics.get("objective", 0.0))))

    __call__ = on_epoch

    def close(self) -> str | None:
        if not self.enable_plots or not self.history:
            return None
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt

        self.run_dir.mkdir(parents=True, exist_ok=True)
        epochs, objectives = zip(*self.history)
        fig, ax = plt.subplots()
        ax.plot(epochs, objectives, marker="o", markersize=2)
        ax.set_xlabel("Epoch")
        ax.set_ylabel("Objective")
        ax.set_title("Training objective")
        plot_path = self.run_dir / self.filename
        fig.savefig(plot_path)
        plt.close(fig)
        return str(plot_path)


__all__ = ["PlotAdapter"]
