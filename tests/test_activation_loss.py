"""Tests for the activation and loss capabilities."""

from pathlib import Path
import sys

import pytest
import torch

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from plural import MAE, MSE, Identity, LeakyRelu, Relu, Sigmoid, Tanh


Z = torch.tensor([[-2.0, -0.5, 0.0, 0.5, 3.0]], dtype=torch.float64)


def test_relu() -> None:
    relu = Relu()
    assert torch.equal(relu.a(Z), torch.tensor([[0.0, 0.0, 0.0, 0.5, 3.0]], dtype=torch.float64))
    assert torch.equal(relu.d(Z), torch.tensor([[0.0, 0.0, 0.0, 1.0, 1.0]], dtype=torch.float64))


def test_leaky_relu() -> None:
    leaky = LeakyRelu(0.1)
    assert torch.allclose(leaky.a(Z), torch.tensor([[-0.2, -0.05, 0.0, 0.5, 3.0]], dtype=torch.float64))
    assert torch.allclose(leaky.d(Z), torch.tensor([[0.1, 0.1, 0.1, 1.0, 1.0]], dtype=torch.float64))


def test_identity_does_not_alias_input() -> None:
    identity = Identity()
    out = identity.a(Z)
    assert torch.equal(out, Z)
    assert out.data_ptr() != Z.data_ptr()
    assert torch.equal(identity.d(Z), torch.ones_like(Z))


@pytest.mark.parametrize("activation", [Sigmoid(), Tanh()])
def test_smooth_derivatives_match_finite_differences(activation) -> None:
    eps = 1e-6
    numeric = (activation.a(Z + eps) - activation.a(Z - eps)) / (2 * eps)
    assert torch.allclose(activation.d(Z), numeric, atol=1e-8)
    assert activation.d(Z).shape == activation.a(Z).shape


def test_mse() -> None:
    pred = torch.tensor([1.0, 3.0], dtype=torch.float64)
    target = torch.tensor([0.0, 1.0], dtype=torch.float64)
    mse = MSE()

    assert mse.a(pred, target) == pytest.approx(2.5)
    assert torch.allclose(mse.d(pred, target), torch.tensor([1.0, 2.0], dtype=torch.float64))


def test_mae() -> None:
    pred = torch.tensor([1.0, -3.0, 2.0], dtype=torch.float64)
    target = torch.tensor([0.0, 1.0, 2.0], dtype=torch.float64)
    mae = MAE()

    assert mae.a(pred, target) == pytest.approx(5.0 / 3.0)
    assert torch.allclose(mae.d(pred, target), torch.tensor([1.0, -1.0, 0.0], dtype=torch.float64) / 3.0)
