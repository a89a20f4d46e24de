"""

Train a Weight-Tied Manifold on a 1-D regression task.

Fits y = sin(x) on [-pi, pi] with a network whose every weight and bias is
drawn from one small shared Substrate. Two topologies are trained side by
side over separate pools:
1.  **Fixed**: a hand-picked hidden schedule.
2.  **Dynamic**: depth and widths sampled from ranges.

The loss history of each run is written to metrics_plural.json.

"""

import json

import numpy as np

import torch

from plural import GradientRetention, Manifold, Substrate, Tanh

def make_dataset(n_points: int, seed: int):
    rng = np.random.default_rng(seed)
    x = rng.uniform(-np.pi, np.pi, size=(n_points, 1))
    y = np.sin(x)
    return x.tolist(), y.tolist()

def train_manifold():

    print("=" * 80)
    print("Plural - Weight-Tied Manifold Training")
    print("=" * 80)

    seed = 42
    pool_size = 256
    n_points = 200

    learning_rate = 0.01
    decay = 0.999
    epochs = 2000
    patience = 50
    min_delta = 1e-6

    x, y = make_dataset(n_points, seed)

    history = {}

    runs = {
        "fixed": lambda substrate, g: Manifold(substrate, 1, 1, [16, 16], generator=g),
        "dynamic": lambda substrate, g: Manifold.dynamic(substrate, 1, 1, range(8, 24), range(1, 4), generator=g),
    }

    for name, build in runs.items():
        generator = torch.Generator().manual_seed(seed)

        # Shared pool, far smaller than the weights it backs
        substrate = Substrate(pool_size, scale=0.5, generator=generator)

        manifold = build(substrate, generator)
        manifold.set_hidden_activation(Tanh()) \
                .set_gradient_retention(GradientRetention.ZERO) \
                .set_learning_rate(learning_rate) \
                .set_decay(decay) \
                .set_epochs(epochs) \
                .set_sample_size(10) \
                .until(patience, min_delta) \
                .weave() \
                .gather()

        n_refs = sum(layer.wi.numel() + layer.bi.numel() for layer in manifold.web)
        print(f"[{name}] {manifold} | {n_refs} weight refs over {pool_size} slots")

        manifold.train(x, y)

        preds = manifold.predict(x).numpy()
        mse = float(np.mean((preds - np.array(y)) ** 2))
        print(f"[{name}] Epochs: {len(manifold.losses)} | Final Loss: {manifold.losses[-1]:.6f} | Full MSE: {mse:.6f}")

        manifold.loss_graph(f"loss_{name}.png")
        history[name] = {'losses': manifold.losses, 'mse': mse, 'layers': manifold.layers}

    # Save results
    with open("metrics_plural.json", "w") as f:
        json.dump(history, f)

    print("Training Complete. Metrics saved to metrics_plural.json")

if __name__ == "__main__":
    train_manifold()
