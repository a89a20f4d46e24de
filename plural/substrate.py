"""
Shared Parameter Substrate

One flat pool of scalar parameters addressed by integer handles.
Layers never own weights; they hold index tensors into this pool and
materialize dense matrices by lookup (gather). Many matrix positions may
reference the same slot, which is how a large network is backed by a
small parameter store.

All writes go through `highspeed`, a scatter-update that sums every
contribution aimed at the same slot before the slot changes, so the order
of entries inside one call never matters.
"""

import threading
import torch
from typing import Optional


class Substrate:
    """
    Fixed-size pool of float64 values.

    drift: probability that an index entry whose own contribution opposes
    the net update of its slot is moved to a freshly drawn slot
    (collision mitigation). 0.0 disables reassignment.
    """
    def __init__(self, size: int, scale: float = 0.5, drift: float = 0.0,
                 generator: Optional[torch.Generator] = None,
                 _values: Optional[torch.Tensor] = None):
        if size <= 0:
            raise ValueError(f"substrate size must be positive, got {size}")
        if not 0.0 <= drift <= 1.0:
            raise ValueError(f"drift must lie in [0, 1], got {drift}")

        self.size = size
        self.drift = drift
        self.generator = generator

        if _values is not None:
            self.values = _values
        else:
            # Uniform in [-scale, scale)
            self.values = (torch.rand(size, generator=generator, dtype=torch.float64) * 2.0 - 1.0) * scale

        self._lock = threading.Lock()

    @classmethod
    def from_values(cls, values, drift: float = 0.0,
                    generator: Optional[torch.Generator] = None) -> "Substrate":
        """Wraps explicit pool contents (copied, flattened to float64)."""
        values = torch.as_tensor(values, dtype=torch.float64).reshape(-1).clone()
        return cls(values.numel(), drift=drift, generator=generator, _values=values)

    def __len__(self) -> int:
        return self.size

    def __repr__(self) -> str:
        return f"Substrate(size={self.size}, drift={self.drift})"

    def _check(self, index: torch.Tensor):
        if index.numel() == 0:
            return
        lo = int(index.min())
        hi = int(index.max())
        if lo < 0 or hi >= self.size:
            raise IndexError(f"substrate index out of range [0, {self.size}): saw [{lo}, {hi}]")

    def get(self, index: int) -> float:
        index = int(index)
        if not 0 <= index < self.size:
            raise IndexError(f"substrate index {index} out of range [0, {self.size})")
        return self.values[index].item()

    def lookup(self, index: torch.Tensor) -> torch.Tensor:
        """Vectorized get: returns a tensor shaped like `index`."""
        self._check(index)
        return self.values[index]

    def highspeed(self, grad: torch.Tensor, index: torch.Tensor, learning_rate: float):
        """
        Applies grad[k] * learning_rate to slot index[k] for every k.

        grad and index must share a shape. Both may be mutated in place when
        drift reassigns entries: moved entries get a new slot id in `index`
        and a zeroed entry in `grad`.
        """
        if grad.shape != index.shape:
            raise ValueError(f"grad shape {tuple(grad.shape)} does not match index shape {tuple(index.shape)}")

        flat_index = index.reshape(-1)
        self._check(flat_index)
        contrib = grad.reshape(-1).to(self.values.dtype) * learning_rate

        with self._lock:
            # 1. Combine colliding contributions per slot
            update = torch.zeros_like(self.values)
            update.index_add_(0, flat_index, contrib)

            # 2. Apply once
            self.values += update

            # 3. Collision mitigation
            if self.drift > 0.0:
                self._reassign(grad, index, flat_index, contrib, update)

    def _reassign(self, grad, index, flat_index, contrib, update):
        opposed = (contrib * update[flat_index]) < 0
        roll = torch.rand(flat_index.shape, generator=self.generator, dtype=torch.float64)
        moved = opposed & (roll < self.drift)

        if not bool(moved.any()):
            return

        fresh = torch.randint(0, self.size, flat_index.shape, generator=self.generator)
        index.copy_(torch.where(moved, fresh, flat_index).view_as(index))
        grad.masked_fill_(moved.view_as(grad), 0.0)
