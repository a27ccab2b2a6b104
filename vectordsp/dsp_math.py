"""Basic constants and helpers for fixed-size DSP vectors."""

from __future__ import annotations

import math
from typing import Callable, Iterable, Union

import numpy as np

FLOATS_PER_VECTOR_BITS = 6
FLOATS_PER_VECTOR = 1 << FLOATS_PER_VECTOR_BITS

PI = math.pi
TWO_PI = 2.0 * math.pi

DTYPE = np.float32

VectorLike = Union[float, int, Iterable[float], np.ndarray]


def bits_to_contain(n: int) -> int:
    """Return the smallest number of bits b such that 2**b >= n."""
    n = int(n)
    if n <= 1:
        return 0
    return (n - 1).bit_length()


def dsp_vector(value: Union[float, Callable[[int], float]] = 0.0) -> np.ndarray:
    """Make a new DSP vector.

    ``value`` is either a scalar that fills every element or a callable that
    is given each element index and returns that element's value.
    """
    if callable(value):
        return np.fromiter(
            (value(n) for n in range(FLOATS_PER_VECTOR)),
            dtype=DTYPE,
            count=FLOATS_PER_VECTOR,
        )
    return np.full(FLOATS_PER_VECTOR, value, dtype=DTYPE)


def as_vector(x: VectorLike) -> np.ndarray:
    """Return ``x`` as a new float32 DSP vector.

    Scalars are broadcast to every element. Sequences must hold exactly one
    vector's worth of samples, otherwise ValueError is raised.
    """
    arr = np.array(x, dtype=DTYPE, copy=True)
    if arr.ndim == 0:
        return np.full(FLOATS_PER_VECTOR, arr.item(), dtype=DTYPE)
    if arr.shape != (FLOATS_PER_VECTOR,):
        raise ValueError(
            f"expected {FLOATS_PER_VECTOR} samples, got shape {arr.shape}"
        )
    return arr