"""Delay lines, allpass sections, resamplers and a phase-locked loop.

Every processor here handles one DSP vector per call and keeps its state
between calls.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence

import numpy as np

from .dsp_math import DTYPE, FLOATS_PER_VECTOR, VectorLike, as_vector, bits_to_contain
from .filters import OnePole

_INDICES = np.arange(FLOATS_PER_VECTOR, dtype=np.int64)


def _round_half_away(x: float) -> float:
    return math.copysign(math.floor(abs(x) + 0.5), x)


# ----------------------------------------------------------------------------
# integer and fractional delays


class IntegerDelay:
    """Delays a signal by a whole number of samples.

    Delay memory must be allocated with set_max_delay_in_samples, or by giving
    a delay to the constructor, before any processing.
    """

    def __init__(self, delay: Optional[int] = None):
        self._buffer = np.zeros(0, dtype=DTYPE)
        self._mask = 0
        self._write_index = 0
        self._delay = 0
        if delay is not None:
            self.set_max_delay_in_samples(float(delay))
            self.set_delay_in_samples(delay)

    @property
    def delay(self) -> int:
        return self._delay

    @property
    def capacity(self) -> int:
        """Length of the delay memory in samples."""
        return self._buffer.size

    def set_delay_in_samples(self, delay: float) -> None:
        """Set the delay; reads are wrapped to the allocated memory."""
        self._delay = int(delay)

    def set_max_delay_in_samples(self, delay: float) -> None:
        """Allocate memory for delays up to ``delay`` samples and clear it."""
        d_max = int(math.floor(delay))
        new_size = 1 << bits_to_contain(d_max + FLOATS_PER_VECTOR)
        self._buffer = np.zeros(new_size, dtype=DTYPE)
        self._mask = new_size - 1
        self._write_index = 0

    def clear(self) -> None:
        self._buffer[:] = 0.0

    def _require_memory(self) -> None:
        if self._buffer.size == 0:
            raise ValueError("no delay memory allocated; call set_max_delay_in_samples first")

    def process_sample(self, x: float) -> float:
        """Write one sample and return the sample ``delay`` samples back."""
        self._require_memory()
        w = self._write_index
        self._buffer[w] = x
        y = float(self._buffer[(w - self._delay) & self._mask])
        self._write_index = (w + 1) & self._mask
        return y

    def __call__(self, x: VectorLike, delay: Optional[VectorLike] = None) -> np.ndarray:
        """Delay one vector, by the set delay or by a per-sample delay vector."""
        self._require_memory()
        vx = as_vector(x)
        if delay is None:
            w = self._write_index
            self._buffer[(w + _INDICES) & self._mask] = vx
            out = self._buffer[(w - self._delay + _INDICES) & self._mask].copy()
            self._write_index = (w + FLOATS_PER_VECTOR) & self._mask
            return out
        out = []
        for sample, d in zip(vx.tolist(), as_vector(delay).tolist()):
            self._delay = int(d)
            out.append(self.process_sample(sample))
        return np.array(out, dtype=DTYPE)


class Allpass1:
    """First-order allpass section with a single sample of delay."""

    def __init__(self, coeff: float = 0.0):
        self.coeff = float(coeff)
        self._x1 = 0.0
        self._y1 = 0.0

    @staticmethod
    def coeffs(d: float) -> float:
        """Allpass coefficient for a delay fraction d, best in [0.618, 1.618]."""
        xm1 = d - 1.0
        return -0.53 * xm1 + 0.24 * xm1 * xm1

    def clear(self) -> None:
        self._x1 = 0.0
        self._y1 = 0.0

    def process_sample(self, x: float) -> float:
        y = self._x1 + (x - self._y1) * self.coeff
        self._x1 = x
        self._y1 = y
        return y

    def __call__(self, x: VectorLike) -> np.ndarray:
        return np.array([self.process_sample(v) for v in as_vector(x).tolist()], dtype=DTYPE)


class FractionalDelay:
    """Allpass-interpolated fractional delay.

    Changing the delay time changes the allpass coefficient, which may click.
    """

    def __init__(self, delay: Optional[float] = None):
        self._integer_delay = IntegerDelay()
        self._allpass = Allpass1(0.0)
        self._delay = 0.0
        if delay is not None:
            self.set_max_delay_in_samples(delay)
            self.set_delay_in_samples(delay)

    @property
    def delay(self) -> float:
        return self._delay

    def clear(self) -> None:
        self._integer_delay.clear()
        self._allpass.clear()

    def set_delay_in_samples(self, delay: float) -> None:
        self._delay = float(delay)
        whole = math.floor(delay)
        delay_int = int(whole)
        frac = delay - whole
        # keep the allpass fraction within [0.618, 1.618] where possible
        if frac < 0.618 and delay_int > 0:
            frac += 1.0
            delay_int -= 1
        self._integer_delay.set_delay_in_samples(delay_int)
        self._allpass.coeff = Allpass1.coeffs(frac)

    def set_max_delay_in_samples(self, delay: float) -> None:
        self._integer_delay.set_max_delay_in_samples(math.floor(delay))

    def _step(self, x: float) -> float:
        return self._allpass.process_sample(self._integer_delay.process_sample(x))

    def __call__(self, x: VectorLike, delay: Optional[VectorLike] = None,
                 change_ticks: Optional[VectorLike] = None) -> np.ndarray:
        """Delay x by the set delay, or by a per-sample delay vector.

        With change_ticks, the delay time only changes at samples where the
        tick is nonzero.
        """
        if delay is None:
            return self._allpass(self._integer_delay(x))
        vx = as_vector(x).tolist()
        delays = as_vector(delay).tolist()
        if change_ticks is None:
            ticks = [1] * FLOATS_PER_VECTOR
        else:
            ticks = np.asarray(change_ticks).ravel().tolist()
            if len(ticks) != FLOATS_PER_VECTOR:
                raise ValueError(f"expected {FLOATS_PER_VECTOR} change ticks")
        out = []
        for sample, d, tick in zip(vx, delays, ticks):
            if tick != 0:
                self.set_delay_in_samples(d)
            out.append(self._step(sample))
        return np.array(out, dtype=DTYPE)


# ----------------------------------------------------------------------------
# crossfaded delay for click-free modulation

FADE_PERIOD = 32

_RAMP = _INDICES % FADE_PERIOD
_DELAY1_CHANGES = (_RAMP == FADE_PERIOD // 2).astype(np.int32)
_DELAY2_CHANGES = (_RAMP == 0).astype(np.int32)
_FADE = np.where(
    _RAMP > FADE_PERIOD // 2, 1.0 - _RAMP / FADE_PERIOD, _RAMP / FADE_PERIOD
).astype(DTYPE) * DTYPE(2.0)


class PitchbendableDelay:
    """Two crossfaded fractional delays whose delay time can be modulated smoothly.

    Each delay only changes its time while it is faded out. There is a warmup
    of half a fade period during which input is attenuated.
    """

    def __init__(self):
        self._delay1 = FractionalDelay()
        self._delay2 = FractionalDelay()

    def set_max_delay_in_samples(self, delay: float) -> None:
        self._delay1.set_max_delay_in_samples(delay)
        self._delay2.set_max_delay_in_samples(delay)

    def clear(self) -> None:
        self._delay1.clear()
        self._delay2.clear()

    def __call__(self, x: VectorLike, delay: VectorLike) -> np.ndarray:
        a = self._delay1(x, delay, _DELAY1_CHANGES)
        b = self._delay2(x, delay, _DELAY2_CHANGES)
        return (a + (b - a) * _FADE).astype(DTYPE)


class Allpass:
    """Allpass filter around an arbitrary delay; the minimum delay is one vector."""

    def __init__(self, delay=None):
        self._delay = delay if delay is not None else IntegerDelay()
        self._vy1 = np.zeros(FLOATS_PER_VECTOR, dtype=DTYPE)
        self.gain = 0.0

    def set_delay_in_samples(self, delay: float) -> None:
        self._delay.set_delay_in_samples(delay - FLOATS_PER_VECTOR)

    def set_max_delay_in_samples(self, delay: float) -> None:
        self._delay.set_max_delay_in_samples(delay - FLOATS_PER_VECTOR)

    def clear(self) -> None:
        self._delay.clear()
        self._vy1 = np.zeros(FLOATS_PER_VECTOR, dtype=DTYPE)

    def __call__(self, x: VectorLike, delay: Optional[VectorLike] = None) -> np.ndarray:
        """Filter with the set delay, or with a varying delay vector."""
        g = DTYPE(-self.gain)
        delay_input = (as_vector(x) - self._vy1 * g).astype(DTYPE)
        y = (delay_input * g + self._vy1).astype(DTYPE)
        if delay is None:
            self._vy1 = self._delay(delay_input)
        else:
            self._vy1 = self._delay(delay_input, as_vector(delay) - DTYPE(FLOATS_PER_VECTOR))
        return y


# ----------------------------------------------------------------------------
# feedback delay network


class FDN:
    """Feedback delay network of ``size`` delays mixed by a Householder matrix.

    Calling it returns a (2, vector size) array: left sum, then right sum.
    """

    def __init__(self, size: int):
        if size < 1:
            raise ValueError("an FDN needs at least one delay")
        self._size = size
        self._delays = [IntegerDelay() for _ in range(size)]
        self._filters = [OnePole() for _ in range(size)]
        self._inputs = [np.zeros(FLOATS_PER_VECTOR, dtype=DTYPE) for _ in range(size)]
        self.feedback_gains: List[float] = [0.0] * size

    def __len__(self) -> int:
        return self._size

    def _check(self, values: Sequence[float]) -> list:
        values = list(values)
        if len(values) != self._size:
            raise ValueError(f"expected {self._size} values, got {len(values)}")
        return values

    def set_delays_in_samples(self, times: Sequence[float]) -> None:
        """Set delay times, compensating for one vector of feedback latency."""
        for delay, t in zip(self._delays, self._check(times)):
            length = max(1, int(t - FLOATS_PER_VECTOR))
            if delay.capacity < length + FLOATS_PER_VECTOR:
                delay.set_max_delay_in_samples(length)
            delay.set_delay_in_samples(length)

    def set_filter_cutoffs(self, omegas: Sequence[float]) -> None:
        for filt, omega in zip(self._filters, self._check(omegas)):
            filt.coeffs = OnePole.make_coeffs(omega)

    def __call__(self, x: VectorLike) -> np.ndarray:
        vx = as_vector(x)
        outputs = [delay(v) for delay, v in zip(self._delays, self._inputs)]
        paired = outputs[: self._size & ~1]
        sum_l = np.sum(paired[1::2], axis=0, dtype=DTYPE) if paired[1::2] else np.zeros(
            FLOATS_PER_VECTOR, dtype=DTYPE)
        sum_r = np.sum(paired[0::2], axis=0, dtype=DTYPE) if paired[0::2] else np.zeros(
            FLOATS_PER_VECTOR, dtype=DTYPE)

        total = np.sum(outputs, axis=0, dtype=DTYPE) * DTYPE(2.0 / self._size)
        self._inputs = [
            (filt(out - total) * DTYPE(gain) + vx).astype(DTYPE)
            for out, filt, gain in zip(outputs, self._filters, self.feedback_gains)
        ]
        return np.stack([sum_l, sum_r]).astype(DTYPE)


# ----------------------------------------------------------------------------
# resampling


class HalfBandFilter:
    """Polyphase allpass half-band filter for 2x up- or downsampling."""

    def __init__(self):
        # order 4, 70 dB rejection, transition band 0.1
        self._apa0 = Allpass1(0.07986642623635751)
        self._apa1 = Allpass1(0.5453536510711322)
        self._apb0 = Allpass1(0.28382934487410993)
        self._apb1 = Allpass1(0.8344118914807379)
        self._b1 = 0.0

    def _upsample(self, samples) -> np.ndarray:
        out = []
        for v in samples:
            out.append(self._apa1.process_sample(self._apa0.process_sample(v)))
            out.append(self._apb1.process_sample(self._apb0.process_sample(v)))
        return np.array(out, dtype=DTYPE)

    def upsample_first_half(self, x: VectorLike) -> np.ndarray:
        """Upsample the first half of x to a full vector."""
        return self._upsample(as_vector(x)[: FLOATS_PER_VECTOR // 2].tolist())

    def upsample_second_half(self, x: VectorLike) -> np.ndarray:
        """Upsample the second half of x to a full vector."""
        return self._upsample(as_vector(x)[FLOATS_PER_VECTOR // 2:].tolist())

    def _downsample(self, samples) -> list:
        out = []
        for a_in, b_in in zip(samples[0::2], samples[1::2]):
            a0 = self._apa1.process_sample(self._apa0.process_sample(a_in))
            b0 = self._apb1.process_sample(self._apb0.process_sample(b_in))
            out.append((a0 + self._b1) * 0.5)
            self._b1 = b0
        return out

    def downsample(self, x1: VectorLike, x2: VectorLike) -> np.ndarray:
        """Downsample two consecutive vectors to one."""
        first = self._downsample(as_vector(x1).tolist())
        second = self._downsample(as_vector(x2).tolist())
        return np.array(first + second, dtype=DTYPE)

    def clear(self) -> None:
        for ap in (self._apa0, self._apa1, self._apb0, self._apb1):
            ap.clear()
        self._b1 = 0.0


class Downsampler:
    """A cascade of half-band filters downsampling by 2**octaves."""

    def __init__(self, octaves: int):
        if octaves < 0:
            raise ValueError("octaves must not be negative")
        self._octaves = octaves
        self._num_buffers = 2 * octaves + 1
        self._filters = [HalfBandFilter() for _ in range(octaves)]
        self._buffers = np.zeros((self._num_buffers, FLOATS_PER_VECTOR), dtype=DTYPE)
        self._counter = 0

    def write(self, x: VectorLike) -> bool:
        """Write one vector; True when a new output vector is ready to read."""
        vx = as_vector(x)
        if not self._octaves:
            self._buffers[-1] = vx
            return True
        self._buffers[self._counter & 1] = vx
        # octave h runs when bit h and all lower bits of the counter are set
        mask = 1
        for h, filt in enumerate(self._filters):
            if not self._counter & mask:
                break
            mask <<= 1
            upper = 1 if self._counter & mask else 0
            out = filt.downsample(self._buffers[2 * h], self._buffers[2 * h + 1])
            self._buffers[2 * h + 2 + upper] = out
        self._counter = (self._counter + 1) & ((1 << self._octaves) - 1)
        return self._counter == 0

    def read(self) -> np.ndarray:
        return self._buffers[-1].copy()

    def clear(self) -> None:
        for filt in self._filters:
            filt.clear()
        self._buffers[:] = 0.0
        self._counter = 0


class Upsampler:
    """A cascade of half-band filters upsampling by 2**octaves.

    After each write, 2**octaves vectors can be read.
    """

    def __init__(self, octaves: int):
        if octaves < 0:
            raise ValueError("octaves must not be negative")
        self._octaves = octaves
        self._num_buffers = 1 << octaves
        self._filters = [HalfBandFilter() for _ in range(octaves)]
        self._buffers = np.zeros((self._num_buffers, FLOATS_PER_VECTOR), dtype=DTYPE)
        self._read_index = 0

    def write(self, x: VectorLike) -> None:
        self._buffers[-1] = as_vector(x)
        n = self._num_buffers
        for j, filt in enumerate(self._filters):
            source_bufs = 1 << j
            src_start = n - source_bufs
            dest_start = n - 2 * source_bufs
            for i in range(source_bufs):
                src = self._buffers[src_start + i].copy()
                first = filt.upsample_first_half(src)
                second = filt.upsample_second_half(src)
                self._buffers[dest_start + 2 * i] = first
                self._buffers[dest_start + 2 * i + 1] = second
        self._read_index = 0

    def read(self) -> np.ndarray:
        if self._read_index >= self._num_buffers:
            raise IndexError("no more upsampled vectors to read; write first")
        out = self._buffers[self._read_index].copy()
        self._read_index += 1
        return out

    def clear(self) -> None:
        for filt in self._filters:
            filt.clear()
        self._buffers[:] = 0.0
        self._read_index = 0


# ----------------------------------------------------------------------------
# phase-locked loop


class PLL:
    """Locks an output phasor in [0, 1) to an input phasor at a given ratio.

    A negative input marks the input as inactive; the output is then -1.
    """

    def __init__(self):
        self._omega = 0.0
        self._x1 = 0.0

    def clear(self) -> None:
        """Mark the phase as unknown so the next active input resynchronises."""
        self._omega = -1.0

    def _step(self, px: float, dydx: float, dxdy: float, feedback: float) -> float:
        dxdt = px - self._x1
        if dxdt < 0.0:
            dxdt += 1.0
        self._x1 = px
        dydt = dxdt * dydx
        if dydx >= 1.0:
            error = self._omega - math.fmod(px * dydx, 1.0)
        else:
            error = math.fmod(self._omega * dxdy, 1.0) - px
        error = _round_half_away(error) - error
        dydt += feedback * error
        dydt = max(dydt, 0.0)
        self._omega = math.fmod(self._omega + dydt, 1.0)
        return self._omega

    def __call__(self, x: VectorLike, dydx: VectorLike, feedback: VectorLike) -> np.ndarray:
        """Run one vector; activity is checked only at the first sample."""
        vx = as_vector(x).tolist()
        ratios = as_vector(dydx).tolist()
        gains = as_vector(feedback).tolist()
        if vx[0] < 0.0:
            self.clear()
            return np.full(FLOATS_PER_VECTOR, -1.0, dtype=DTYPE)
        if self._omega == -1.0:
            self._x1 = vx[0] - (vx[1] - vx[0])
            self._omega = math.fmod(vx[0] * ratios[0], 1.0)
        out = [
            self._step(px, r, 1.0 / r if r else math.inf, fb)
            for px, r, fb in zip(vx, ratios, gains)
        ]
        return np.array(out, dtype=DTYPE)

    def next_sample(self, x: float, dydx: float, feedback: float) -> float:
        """Run a single sample."""
        if x < 0.0:
            self.clear()
            return -1.0
        if self._omega == -1.0:
            self._x1 = x - dydx
            self._omega = math.fmod(x * dydx, 1.0)
        return self._step(float(x), float(dydx), 1.0 / dydx, float(feedback))