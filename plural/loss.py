"""
Loss Capabilities

A loss exposes:
    a(prediction, target) -> scalar loss (python float)
    d(prediction, target) -> gradient w.r.t. prediction, same length as prediction
"""

import torch


class Loss:
    """Two-operation interface for losses over flat prediction vectors."""

    def a(self, prediction: torch.Tensor, target: torch.Tensor) -> float:
        raise NotImplementedError

    def d(self, prediction: torch.Tensor, target: torch.Tensor) -> torch.Tensor:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class MSE(Loss):
    """
    Mean squared error.
    L = mean((p - t)^2),  dL/dp = 2 * (p - t) / n
    """

    def a(self, prediction: torch.Tensor, target: torch.Tensor) -> float:
        return torch.mean((prediction - target) ** 2).item()

    def d(self, prediction: torch.Tensor, target: torch.Tensor) -> torch.Tensor:
        return 2.0 * (prediction - target) / prediction.numel()


class MAE(Loss):
    """Mean absolute error. The gradient at p == t is taken as 0."""

    def a(self, prediction: torch.Tensor, target: torch.Tensor) -> float:
        return torch.mean(torch.abs(prediction - target)).item()

    def d(self, prediction: torch.Tensor, target: torch.Tensor) -> torch.Tensor:
        return torch.sign(prediction - target) / prediction.numel()
