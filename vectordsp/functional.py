"""Higher-order functions over DSP vectors and arrays of DSP vectors.

An array of DSP vectors is a float32 numpy array of shape (rows, vector size).
The wrappers here run a process function in another context, such as at
twice or half the sample rate, or inside a feedback delay loop.
"""

from __future__ import annotations

from typing import Callable, Optional, Tuple

import numpy as np

from .delays import HalfBandFilter, PitchbendableDelay
from .dsp_math import DTYPE, FLOATS_PER_VECTOR, VectorLike, as_vector


def _as_rows(x, rows: Optional[int] = None) -> np.ndarray:
    """Return x as a new (rows, vector size) float32 array.

    Scalars fill every element; a single vector becomes one row. Raises
    ValueError if the shape does not fit.
    """
    arr = np.array(x, dtype=DTYPE, copy=True)
    if arr.ndim == 0:
        count = 1 if rows is None else rows
        return np.full((count, FLOATS_PER_VECTOR), arr.item(), dtype=DTYPE)
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)
    if arr.ndim != 2 or arr.shape[1] != FLOATS_PER_VECTOR:
        raise ValueError(
            f"expected rows of {FLOATS_PER_VECTOR} samples, got shape {arr.shape}"
        )
    if rows is not None and arr.shape[0] != rows:
        raise ValueError(f"expected {rows} rows, got {arr.shape[0]}")
    return arr


# ----------------------------------------------------------------------------
# basic higher-order functions


def generate(fn: Callable[[], float], x) -> np.ndarray:
    """Call fn() once for each element of x and return the results in x's shape."""
    arr = np.asarray(x)
    values = np.fromiter((fn() for _ in range(arr.size)), dtype=DTYPE, count=arr.size)
    return values.reshape(arr.shape)


def map_samples(fn: Callable[[float], float], x) -> np.ndarray:
    """Apply fn to each element of x and return the results in x's shape."""
    arr = np.asarray(x)
    flat = arr.ravel().tolist()
    values = np.fromiter((fn(v) for v in flat), dtype=DTYPE, count=len(flat))
    return values.reshape(arr.shape)


def map_rows(fn: Callable[[np.ndarray], VectorLike], x) -> np.ndarray:
    """Apply fn to each row vector of x and return an array of the results."""
    arr = _as_rows(x)
    results = [as_vector(fn(row.copy())) for row in arr]
    return np.array(results, dtype=DTYPE).reshape(arr.shape)


def map_rows_indexed(fn: Callable[[np.ndarray, int], VectorLike], x) -> np.ndarray:
    """Apply fn(row, row_index) to each row vector of x and return the results."""
    arr = _as_rows(x)
    results = [as_vector(fn(row.copy(), j)) for j, row in enumerate(arr)]
    return np.array(results, dtype=DTYPE).reshape(arr.shape)


# ----------------------------------------------------------------------------
# resampled processing


class Upsample2xFunction:
    """Run a process function at twice the sample rate.

    Each input row is upsampled by 2, the function is applied to both halves
    and its single output row is downsampled back. The resampling filters add
    a delay of about 3 samples.
    """

    def __init__(self, in_rows: int = 1):
        if in_rows < 1:
            raise ValueError("in_rows must be at least 1")
        self._in_rows = in_rows
        self._uppers = [HalfBandFilter() for _ in range(in_rows)]
        self._downer = HalfBandFilter()

    def __call__(self, fn: Callable[[np.ndarray], VectorLike], x) -> np.ndarray:
        vx = _as_rows(x, self._in_rows)
        first = np.array(
            [up.upsample_first_half(row) for up, row in zip(self._uppers, vx)], dtype=DTYPE
        )
        second = np.array(
            [up.upsample_second_half(row) for up, row in zip(self._uppers, vx)], dtype=DTYPE
        )
        out1 = _as_rows(fn(first), 1)
        out2 = _as_rows(fn(second), 1)
        return self._downer.downsample(out1[0], out2[0]).reshape(1, FLOATS_PER_VECTOR)


class Downsample2xFunction:
    """Run a process function at half the sample rate.

    Two input vectors make one downsampled vector, so the output lags by one
    whole vector plus the filters' group delay (about 6 samples). With zero
    input rows the function acts as a generator and x may be left out.
    """

    def __init__(self, in_rows: int = 1):
        if in_rows < 0:
            raise ValueError("in_rows must not be negative")
        self._in_rows = in_rows
        self._downers = [HalfBandFilter() for _ in range(in_rows)]
        self._upper = HalfBandFilter()
        self._input_buffer = np.zeros((in_rows, FLOATS_PER_VECTOR), dtype=DTYPE)
        self._output_buffer = np.zeros((1, FLOATS_PER_VECTOR), dtype=DTYPE)
        self._phase = False

    def __call__(self, fn: Callable[[np.ndarray], VectorLike], x=None) -> np.ndarray:
        if x is None:
            vx = np.zeros((self._in_rows, FLOATS_PER_VECTOR), dtype=DTYPE)
        else:
            vx = _as_rows(x, self._in_rows)
        if self._phase:
            downsampled = np.array(
                [
                    down.downsample(buffered, row)
                    for down, buffered, row in zip(self._downers, self._input_buffer, vx)
                ],
                dtype=DTYPE,
            ).reshape(self._in_rows, FLOATS_PER_VECTOR)
            out = _as_rows(fn(downsampled), 1)
            vy = self._upper.upsample_first_half(out[0]).reshape(1, FLOATS_PER_VECTOR)
            self._output_buffer = self._upper.upsample_second_half(out[0]).reshape(
                1, FLOATS_PER_VECTOR
            )
        else:
            self._input_buffer = vx
            vy = self._output_buffer.copy()
        self._phase = not self._phase
        return vy


# ----------------------------------------------------------------------------
# feedback delay wrappers


class _FeedbackDelayBase:
    def __init__(self):
        self.feedback_gain = 1.0
        self._delays = [PitchbendableDelay()]
        self._vy1 = np.zeros((1, FLOATS_PER_VECTOR), dtype=DTYPE)
        self._allocated = False

    def set_max_delay_in_samples(self, delay: float) -> None:
        """Allocate delay memory for delay times up to ``delay`` samples."""
        for d in self._delays:
            d.set_max_delay_in_samples(delay)
        self._allocated = True

    def clear(self) -> None:
        for d in self._delays:
            d.clear()
        self._vy1[:] = 0.0

    def _input_with_feedback(self, x) -> np.ndarray:
        if not self._allocated:
            raise ValueError("no delay memory allocated; call set_max_delay_in_samples first")
        vx = _as_rows(x, 1)
        return (vx + self._vy1 * DTYPE(self.feedback_gain)).astype(DTYPE)

    def _feed_back(self, signal, delay_time: VectorLike) -> None:
        rows = _as_rows(signal, 1)
        delay = as_vector(delay_time) - DTYPE(FLOATS_PER_VECTOR)
        self._vy1 = np.array(
            [d(row, delay) for d, row in zip(self._delays, rows)], dtype=DTYPE
        )


class FeedbackDelayFunction(_FeedbackDelayBase):
    """Wrap a function in a pitchbendable delay whose output is fed back to its input."""

    def __init__(self):
        super().__init__()

    def __call__(self, x, fn: Callable[[np.ndarray], VectorLike],
                 delay_time: VectorLike) -> np.ndarray:
        """Process one vector; delay_time is the total loop time in samples."""
        out = _as_rows(fn(self._input_with_feedback(x)), 1)
        self._feed_back(out, delay_time)
        return out


class FeedbackDelayFunctionWithTap(_FeedbackDelayBase):
    """Like FeedbackDelayFunction, but the function returns (feedback, tap).

    The feedback signal goes into the delay loop and the tap is returned.
    """

    def __init__(self):
        super().__init__()

    def __call__(self, x, fn: Callable[[np.ndarray], Tuple[VectorLike, VectorLike]],
                 delay_time: VectorLike) -> np.ndarray:
        feedback, tap = fn(self._input_with_feedback(x))
        self._feed_back(feedback, delay_time)
        return _as_rows(tap, 1)


# ----------------------------------------------------------------------------
# banks of processors


class Bank:
    """A bank of ``rows`` processors made by ``factory``.

    Calling the bank gives processor i row i of each argument and returns an
    array whose row i is processor i's output.
    """

    def __init__(self, factory: Callable[[], Callable], rows: int):
        if rows < 1:
            raise ValueError("a bank needs at least one processor")
        self._processors = [factory() for _ in range(rows)]

    def __call__(self, *args) -> np.ndarray:
        rows = len(self._processors)
        arrays = [_as_rows(a, rows) for a in args]
        return np.array(
            [as_vector(p(*(a[i] for a in arrays))) for i, p in enumerate(self._processors)],
            dtype=DTYPE,
        )

    def process_arrays(self, *args) -> np.ndarray:
        """Give processor i the element args[i] of each argument."""
        return np.array(
            [as_vector(p(*(a[i] for a in args))) for i, p in enumerate(self._processors)],
            dtype=DTYPE,
        )

    def clear(self) -> None:
        for p in self._processors:
            p.clear()

    def __getitem__(self, n: int):
        return self._processors[n]

    def __len__(self) -> int:
        return len(self._processors)