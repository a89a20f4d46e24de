"""
Loss-curve rendering.

Draws the per-epoch loss history as a bar chart of (epoch, loss) pairs.
"""

import matplotlib.pyplot as plt
from typing import List, Sequence, Tuple


def loss_points(losses: Sequence[float]) -> List[Tuple[int, float]]:
    return [(i, float(v)) for i, v in enumerate(losses)]


def loss_graph(losses: Sequence[float], path: str = "loss.png", title: str = "Training Loss") -> str:
    points = loss_points(losses)

    fig, ax = plt.subplots(figsize=(8, 4))
    ax.bar([p[0] for p in points], [p[1] for p in points], width=1.0)
    ax.set_xlabel("Epoch")
    ax.set_ylabel("Mean sampled loss")
    ax.set_title(title)
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)

    return path
