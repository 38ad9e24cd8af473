from __future__ import annotations

import numpy as np


class ScratchBuffer:
    """Reusable 2D work array owned by a single debiaser.

    The array is allocated lazily and replaced only when a caller asks for a
    different shape or dtype. Instances must not be shared between debiasers.
    """

    def __init__(self) -> None:
        self._arr: np.ndarray | None = None

    @property
    def shape(self) -> tuple[int, int] | None:
        return None if self._arr is None else self._arr.shape

    def matches(self, shape: tuple[int, int], dtype=np.float64) -> bool:
        return (
            self._arr is not None
            and self._arr.shape == tuple(shape)
            and self._arr.dtype == np.dtype(dtype)
        )

    def ensure(self, shape: tuple[int, int], dtype=np.float64) -> np.ndarray:
        if not self.matches(shape, dtype):
            self._arr = np.zeros(tuple(int(x) for x in shape), dtype=dtype)
        return self._arr
