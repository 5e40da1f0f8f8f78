# src/selection_stability/report.py
from __future__ import annotations
from typing import TYPE_CHECKING

import matplotlib.pyplot as plt
import pandas as pd

if TYPE_CHECKING:
    from .stability import StabilityResult


def plot_stability(result: "StabilityResult", path: str | None = None, ax=None):
    """
    Scatter of the stability score against model size, with CI error bars.

    If `path` is given the figure is saved there and closed; otherwise the
    axes are returned for further drawing.
    """
    own_figure = ax is None
    if own_figure:
        fig, ax = plt.subplots(figsize=(8, 6))
    else:
        fig = ax.figure

    dims = result.stability.index.to_numpy()
    phi = result.stability.to_numpy()
    lower = result.ci.loc["lower"].to_numpy()
    upper = result.ci.loc["upper"].to_numpy()

    ax.errorbar(dims, phi, yerr=[phi - lower, upper - phi],
                fmt="o", capsize=4, label=f"{int(round(result.level * 100))}% CI")
    ax.axhline(1.0, color="grey", linestyle="--", linewidth=1)
    ax.set_xticks(dims)
    ax.set_xlabel("Model size d")
    ax.set_ylabel("Stability")
    ax.set_title(f"Selection stability ({result.n_boot} resamples)")
    ax.legend()

    if path:
        fig.tight_layout()
        fig.savefig(path, dpi=200)
        if own_figure:
            plt.close(fig)
    return ax


def format_table(result: "StabilityResult", digits: int = 3) -> pd.DataFrame:
    return result.table().round(digits)
