"""
Manifold: Weight-Tied Feed-Forward Network

An ordered chain of substrate-backed Layers plus everything needed to train
it: hand-derived backpropagation, scatter-updates into the shared Substrate,
gradient retention, learning-rate decay and early termination.

Lifecycle:
    Manifold(...) / Manifold.dynamic(...)   -> layer schedule only
    .weave()                                -> Layer chain built, indices drawn
    .gather()                               -> dense w / b synced with the pool
    .train(inputs, targets)                 -> epochs until budget or predicate

Configuration is builder style: every setter returns the Manifold.
"""

import json
import torch
from enum import Enum
from typing import Callable, List, Optional, Sequence

from .activation import Activation, Identity, Relu
from .layer import Layer
from .loss import Loss, MSE
from .plot import loss_graph as render_loss_graph
from .substrate import Substrate


class GradientRetention(Enum):
    """
    ROLL: accumulators are never cleared, so the accumulated total is
          submitted again (plus new gradients) on every later step.
    ZERO: accumulators are reset after each update.
    """
    ROLL = "roll"
    ZERO = "zero"


EarlyTerminate = Callable[[List[float]], bool]


def never(losses: List[float]) -> bool:
    return False


def plateau(patience: int, min_delta: float) -> EarlyTerminate:
    """
    Stops once the mean improvement over the last `patience` consecutive
    loss pairs falls below `min_delta`. Needs at least patience + 2 entries.
    """
    if patience <= 0:
        raise ValueError(f"patience must be positive, got {patience}")

    def early_terminate(losses: List[float]) -> bool:
        n = len(losses)
        if n < patience + 2:
            return False

        deltas = [losses[i - 1] - losses[i] for i in range(n - patience, n)]
        avg_delta = sum(deltas) / len(deltas)

        return avg_delta < min_delta

    return early_terminate


class Manifold:
    def __init__(self,
                 substrate: Substrate,
                 d_in: int,
                 d_out: int,
                 layers: Sequence[int],
                 hidden_activation: Optional[Activation] = None,
                 output_activation: Optional[Activation] = None,
                 loss: Optional[Loss] = None,
                 gradient_retention: GradientRetention = GradientRetention.ROLL,
                 learning_rate: float = 0.001,
                 decay: float = 1.0,
                 epochs: int = 1000,
                 sample_size: int = 10,
                 generator: Optional[torch.Generator] = None):
        if d_in <= 0 or d_out <= 0:
            raise ValueError(f"d_in and d_out must be positive, got {d_in}, {d_out}")
        if any(width <= 0 for width in layers):
            raise ValueError(f"hidden widths must be positive, got {list(layers)}")

        self.substrate = substrate
        self.d_in = d_in
        self.d_out = d_out
        self.layers = list(layers)
        self.web: List[Layer] = []

        self.hidden_activation = hidden_activation if hidden_activation is not None else Relu()
        self.output_activation = output_activation if output_activation is not None else Identity()
        self.loss = loss if loss is not None else MSE()
        self.gradient_retention = gradient_retention
        self.learning_rate = learning_rate
        self.decay = decay
        self.early_terminate: EarlyTerminate = never
        self.is_verbose = False
        self.generator = generator

        self.set_epochs(epochs)
        self.set_sample_size(sample_size)

        self.losses: List[float] = []

    @classmethod
    def dynamic(cls,
                substrate: Substrate,
                d_in: int,
                d_out: int,
                breadth: range,
                depth: range,
                generator: Optional[torch.Generator] = None,
                **config) -> "Manifold":
        """
        Randomized topology: hidden layer count drawn uniformly from `depth`,
        each hidden width drawn uniformly from `breadth` (half-open ranges).
        """
        if len(breadth) == 0 or len(depth) == 0:
            raise ValueError(f"breadth and depth must be non-empty, got {breadth}, {depth}")

        def draw(choices: range) -> int:
            return choices[int(torch.randint(len(choices), (1,), generator=generator))]

        n_hidden = draw(depth)
        layers = [draw(breadth) for _ in range(n_hidden)]

        config.setdefault("sample_size", 1)
        return cls(substrate, d_in, d_out, layers, generator=generator, **config)

    def __repr__(self) -> str:
        widths = " -> ".join(str(w) for w in [self.d_in] + self.layers + [self.d_out])
        return f"Manifold({widths}, woven={bool(self.web)}, pool={self.substrate.size})"

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_hidden_activation(self, activation: Activation) -> "Manifold":
        self.hidden_activation = activation
        return self

    def set_output_activation(self, activation: Activation) -> "Manifold":
        self.output_activation = activation
        return self

    def verbose(self) -> "Manifold":
        self.is_verbose = True
        return self

    def set_loss(self, loss: Loss) -> "Manifold":
        self.loss = loss
        return self

    def set_gradient_retention(self, method: GradientRetention) -> "Manifold":
        self.gradient_retention = method
        return self

    def set_learning_rate(self, rate: float) -> "Manifold":
        self.learning_rate = rate
        return self

    def set_decay(self, decay: float) -> "Manifold":
        self.decay = decay
        return self

    def until(self, patience: int, min_delta: float) -> "Manifold":
        self.early_terminate = plateau(patience, min_delta)
        return self

    def until_some(self, early_terminate: EarlyTerminate) -> "Manifold":
        self.early_terminate = early_terminate
        return self

    def set_epochs(self, epochs: int) -> "Manifold":
        if epochs <= 0:
            raise ValueError(f"epochs must be positive, got {epochs}")
        self.epochs = epochs
        return self

    def set_sample_size(self, sample_size: int) -> "Manifold":
        if sample_size <= 0:
            raise ValueError(f"sample_size must be positive, got {sample_size}")
        self.sample_size = sample_size
        return self

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def weave(self) -> "Manifold":
        if self.web:
            raise RuntimeError("manifold is already woven")

        pool_size = self.substrate.size
        x_shape = (1, self.d_in)
        p_dim = self.d_in

        # Hidden layers
        for layer_size in self.layers:
            w_shape = (p_dim, layer_size)
            self.web.append(Layer(pool_size, x_shape, w_shape, layer_size,
                                  self.hidden_activation, generator=self.generator))
            p_dim = layer_size
            x_shape = (1, layer_size)

        # Output layer
        w_shape = (p_dim, self.d_out)
        self.web.append(Layer(pool_size, x_shape, w_shape, self.d_out,
                              self.output_activation, generator=self.generator))
        return self

    def gather(self) -> "Manifold":
        for layer in self.web:
            layer.gather(self.substrate)
        return self

    # ------------------------------------------------------------------
    # Numerics
    # ------------------------------------------------------------------

    def _prepare(self, xv, width: int, name: str) -> torch.Tensor:
        x = torch.as_tensor(xv, dtype=torch.float64).reshape(-1)
        if x.numel() != width:
            raise ValueError(f"{name} has length {x.numel()}, expected {width}")
        return x

    def forward(self, xv) -> torch.Tensor:
        """Flat (d_in,) input -> flat (d_out,) output."""
        if not self.web:
            raise RuntimeError("call weave() before forward()")

        x = self._prepare(xv, self.d_in, "input").reshape(1, self.d_in)
        for layer in self.web:
            x = layer.forward(x)

        return x.reshape(-1)

    def predict(self, inputs) -> torch.Tensor:
        """Forwards every row; returns (N, d_out)."""
        rows = [self.forward(x) for x in inputs]
        if not rows:
            return torch.zeros((0, self.d_out), dtype=torch.float64)
        return torch.stack(rows)

    def backwards(self, y_pred: torch.Tensor, y, loss: Optional[Loss] = None):
        """
        Backpropagates dL/dy_pred through the chain in reverse order and,
        layer by layer, pushes the accumulated gradients into the Substrate.
        """
        loss = loss if loss is not None else self.loss
        y_target = self._prepare(y, self.d_out, "target")

        grad_output = loss.d(y_pred, y_target).reshape(1, self.d_out)

        for layer in reversed(self.web):
            grad_output = layer.backward(grad_output)
            self._update(layer)

            if self.gradient_retention is GradientRetention.ZERO:
                layer.assign_grad_w(torch.zeros_like(layer.grad_w))
                layer.assign_grad_b(torch.zeros_like(layer.grad_b))

    def _update(self, layer: Layer):
        # Weights and biases take the same path: submit copies, then fold
        # any slot reassignment back as an index delta.
        grad_w = layer.grad_w.clone()
        wi = layer.wi.clone()
        self.substrate.highspeed(grad_w, wi, self.learning_rate)

        grad_b = layer.grad_b.clone()
        bi = layer.bi.clone()
        self.substrate.highspeed(grad_b, bi, self.learning_rate)

        layer.shift_weights(wi - layer.wi) \
             .shift_bias(bi - layer.bi) \
             .assign_grad_w(grad_w) \
             .assign_grad_b(grad_b) \
             .gather(self.substrate)

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train(self, x, y) -> "Manifold":
        xs = [self._prepare(row, self.d_in, "input") for row in x]
        ys = [self._prepare(row, self.d_out, "target") for row in y]

        if len(xs) != len(ys):
            raise ValueError(f"got {len(xs)} inputs but {len(ys)} targets")
        if not xs:
            raise ValueError("training set is empty")
        if not self.web:
            raise RuntimeError("call weave() before train()")

        n = len(xs)
        k = min(self.sample_size, n)

        for epoch in range(self.epochs):
            # 1. Minibatch without replacement
            sample = torch.randperm(n, generator=self.generator)[:k].tolist()
            total_loss: List[float] = []

            # 2. Forward / loss / backward-update per pair
            for i in sample:
                y_pred = self.forward(xs[i])
                total_loss.append(self.loss.a(y_pred, ys[i]))
                self.backwards(y_pred, ys[i], self.loss)

            # 3. Decay
            self.learning_rate *= self.decay

            # 4. History
            avg_loss = sum(total_loss) / len(total_loss)
            self.losses.append(avg_loss)

            # 5. Early termination
            if self.early_terminate(self.losses):
                if self.is_verbose:
                    print(f"Early termination at epoch {epoch + 1}/{self.epochs} | Loss: {avg_loss:.6f}")
                break

            if self.is_verbose:
                print(f"Epoch {epoch + 1}/{self.epochs} | Loss: {avg_loss:.6f}")

        return self

    # ------------------------------------------------------------------
    # Loss history
    # ------------------------------------------------------------------

    def loss_graph(self, path: str = "loss.png") -> "Manifold":
        render_loss_graph(self.losses, path)
        return self

    def save_losses(self, path: str) -> "Manifold":
        with open(path, "w") as f:
            json.dump({"losses": self.losses}, f)
        return self
