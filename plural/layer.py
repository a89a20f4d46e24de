"""
Substrate-Backed Dense Layer

One affine transform followed by an activation:
    z = x @ w + b
    y = a(z)

w and b are not parameters of the layer. They are materialized from the
shared Substrate through the index tensors wi / bi, so
    w[i, j] == substrate.get(wi[i, j])
    b[j]    == substrate.get(bi[j])
holds immediately after every gather.

Gradients are derived by hand (no autograd). The accumulators grad_w /
grad_b hold the running NEGATIVE sum of every gradient seen since their
last reset, which is the direction the Substrate update adds along.
"""

import torch
from typing import Optional, Tuple

from .activation import Activation
from .substrate import Substrate


class Layer:
    def __init__(self,
                 pool_size: int,
                 x_shape: Tuple[int, int],
                 w_shape: Tuple[int, int],
                 b_shape: int,
                 activation: Activation,
                 generator: Optional[torch.Generator] = None):
        # Forward cache
        self.x = torch.zeros(x_shape, dtype=torch.float64)
        self.d_z = torch.zeros((x_shape[0], w_shape[1]), dtype=torch.float64)

        # Handles into the pool, uniform over [0, pool_size)
        self.wi = torch.randint(0, pool_size, w_shape, generator=generator)
        self.bi = torch.randint(0, pool_size, (b_shape,), generator=generator)

        # Dense materialization (filled by gather)
        self.w = torch.zeros(w_shape, dtype=torch.float64)
        self.b = torch.zeros(b_shape, dtype=torch.float64)

        # Accumulators
        self.grad_w = torch.zeros(w_shape, dtype=torch.float64)
        self.grad_b = torch.zeros(b_shape, dtype=torch.float64)

        self.activation = activation

    @property
    def in_width(self) -> int:
        return self.wi.shape[0]

    @property
    def out_width(self) -> int:
        return self.wi.shape[1]

    def __repr__(self) -> str:
        return f"Layer({self.in_width} -> {self.out_width}, {self.activation!r})"

    def gather(self, substrate: Substrate) -> "Layer":
        self.w = substrate.lookup(self.wi)
        self.b = substrate.lookup(self.bi)
        return self

    def shift_weights(self, shift: torch.Tensor) -> "Layer":
        self.wi += shift
        return self

    def shift_bias(self, shift: torch.Tensor) -> "Layer":
        self.bi += shift
        return self

    def assign_grad_w(self, grad: torch.Tensor) -> "Layer":
        self.grad_w = grad
        return self

    def assign_grad_b(self, grad: torch.Tensor) -> "Layer":
        self.grad_b = grad
        return self

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """x: (Batch, In) -> (Batch, Out)"""
        self.x = x.clone()

        z = x @ self.w + self.b

        self.d_z = self.activation.d(z)
        return self.activation.a(z)

    def backward(self, grad_output: torch.Tensor) -> torch.Tensor:
        """
        grad_output: dL/dy, shaped like the last forward output.
        Returns dL/dx for the previous layer.
        """
        # 1. Through the activation
        grad_z = grad_output * self.d_z

        # 2. Upstream gradient (uses w as it was for the forward pass)
        grad_input = grad_z @ self.w.T

        # 3. Parameter gradients
        grad_w = self.x.T @ grad_z
        grad_b = grad_z.sum(dim=0)

        # 4. Accumulate as negative contributions
        self.grad_w -= grad_w
        self.grad_b -= grad_b

        return grad_input
