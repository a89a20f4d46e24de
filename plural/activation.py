"""
Activation Capabilities

Elementwise nonlinearities shared by the layers of a Manifold.
Every activation exposes two operations evaluated at the same pre-activation z:
    a(z) -> activated output
    d(z) -> elementwise derivative of a at z
Instances carry no state, so one object can be shared by any number of layers.
"""

import torch


class Activation:
    """Two-operation interface for elementwise activations."""

    def a(self, z: torch.Tensor) -> torch.Tensor:
        raise NotImplementedError

    def d(self, z: torch.Tensor) -> torch.Tensor:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Relu(Activation):
    def a(self, z: torch.Tensor) -> torch.Tensor:
        return torch.clamp(z, min=0.0)

    def d(self, z: torch.Tensor) -> torch.Tensor:
        # Derivative at exactly 0 is taken as 0
        return (z > 0).to(z.dtype)


class LeakyRelu(Activation):
    def __init__(self, slope: float = 0.01):
        self.slope = slope

    def a(self, z: torch.Tensor) -> torch.Tensor:
        return torch.where(z > 0, z, z * self.slope)

    def d(self, z: torch.Tensor) -> torch.Tensor:
        return torch.where(z > 0, torch.ones_like(z), torch.full_like(z, self.slope))

    def __repr__(self) -> str:
        return f"LeakyRelu(slope={self.slope})"


class Identity(Activation):
    """No activation (linear output)."""

    def a(self, z: torch.Tensor) -> torch.Tensor:
        return z.clone()

    def d(self, z: torch.Tensor) -> torch.Tensor:
        return torch.ones_like(z)


class Sigmoid(Activation):
    """
    s(z) = 1 / (1 + e^(-z)),  s'(z) = s(z) * (1 - s(z))
    """

    def a(self, z: torch.Tensor) -> torch.Tensor:
        return torch.sigmoid(z)

    def d(self, z: torch.Tensor) -> torch.Tensor:
        s = torch.sigmoid(z)
        return s * (1 - s)


class Tanh(Activation):
    def a(self, z: torch.Tensor) -> torch.Tensor:
        return torch.tanh(z)

    def d(self, z: torch.Tensor) -> torch.Tensor:
        return 1 - torch.tanh(z) ** 2
