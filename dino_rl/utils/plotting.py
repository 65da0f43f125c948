"""
Plotting utilities for training runs.

This module provides:
- plot_learning_curve: Episode returns with a moving average
- plot_training_metrics: Several per-episode series in stacked subplots
"""

from typing import List, Dict, Optional
from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt
import matplotlib

from .logging import get_logger


# Use non-interactive backend for headless environments
matplotlib.use('Agg')

logger = get_logger("dino_rl.plotting")


def _finish(fig, save_path: Optional[str], show: bool) -> None:
    fig.tight_layout()

    if save_path:
        Path(save_path).parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Plot saved to: {save_path}")

    if show:
        plt.show()
    else:
        plt.close(fig)


def plot_learning_curve(
    returns: List[float],
    window: int = 20,
    title: str = "Learning Curve",
    xlabel: str = "Episode",
    ylabel: str = "Return",
    save_path: Optional[str] = None,
    show: bool = False
) -> None:
    """
    Plot learning curve with moving average.

    Args:
        returns: List of episode returns
        window: Moving average window size
        title: Plot title
        xlabel: X-axis label
        ylabel: Y-axis label
        save_path: If provided, save figure to this path
        show: Whether to display the plot

    Example:
        >>> plot_learning_curve(episode_returns, save_path="plots/curve.png")
    """
    fig, ax = plt.subplots(figsize=(10, 6))

    episodes = np.arange(len(returns))

    # Raw returns (transparent)
    ax.plot(episodes, returns, alpha=0.3, color='green', label='Raw')

    # Moving average
    if len(returns) >= window:
        moving_avg = np.convolve(returns, np.ones(window) / window, mode='valid')
        ax.plot(
            episodes[window - 1:],
            moving_avg,
            color='green',
            linewidth=2,
            label=f'{window}-episode average'
        )

    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.set_title(title)
    ax.legend()
    ax.grid(True, alpha=0.3)

    _finish(fig, save_path, show)


def plot_training_metrics(
    metrics: Dict[str, List[float]],
    title: str = "Training Metrics",
    save_path: Optional[str] = None,
    show: bool = False
) -> None:
    """
    Plot multiple per-episode metrics in subplots.

    Args:
        metrics: Dict of {metric_name: values_list}
        title: Overall figure title
        save_path: Optional save path
        show: Whether to display the plot

    Example:
        >>> plot_training_metrics({"return": [...], "cleared": [...], "epsilon": [...]})
    """
    n_metrics = len(metrics)
    fig, axes = plt.subplots(n_metrics, 1, figsize=(12, 3 * n_metrics), sharex=True)

    if n_metrics == 1:
        axes = [axes]

    for ax, (name, values) in zip(axes, metrics.items()):
        episodes = np.arange(len(values))
        ax.plot(episodes, values, linewidth=1)
        ax.set_ylabel(name)
        ax.grid(True, alpha=0.3)

    axes[-1].set_xlabel('Episode')
    fig.suptitle(title, fontsize=14)

    _finish(fig, save_path, show)
