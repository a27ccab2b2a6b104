"""Stateful filters that process one DSP vector per call.

Cutoffs are given as omega, the frequency divided by the sample rate, so the
filters need not know the sample rate. For the state-variable filters k is a
damping parameter equal to 1/Q. Shelf and bell gains are output / input
amplitude ratios.
"""

from __future__ import annotations

import math
from enum import IntEnum
from itertools import repeat
from typing import Iterable, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .dsp_math import DTYPE, FLOATS_PER_VECTOR, PI, TWO_PI, VectorLike, as_vector


def db_to_gain(db: float) -> float:
    """Convert decibels to the gain parameter A used by shelf and bell filters."""
    return 10.0 ** (db / 40.0)


def interpolate_coeffs_linear(c0: Sequence[float], c1: Sequence[float]) -> np.ndarray:
    """Ramp each coefficient from c0 to c1 over one vector.

    Returns an array of shape (len(c0), vector size). Element n of row i is
    c0[i] + (c1[i] - c0[i]) * (n + 1) / size, so each row ends exactly at c1[i].
    """
    start = np.asarray(c0, dtype=np.float64)
    end = np.asarray(c1, dtype=np.float64)
    if start.shape != end.shape or start.ndim != 1:
        raise ValueError("coefficient sequences must be one-dimensional and equal in length")
    steps = np.arange(1, FLOATS_PER_VECTOR + 1, dtype=np.float64) / FLOATS_PER_VECTOR
    return (start[:, None] + (end - start)[:, None] * steps[None, :]).astype(DTYPE)


def _columns(coeffs: Iterable[float]) -> list:
    """Turn scalar coefficients into endless per-sample iterators."""
    return [repeat(float(c)) for c in coeffs]


def _rows(coeffs_vec: np.ndarray, count: int) -> list:
    arr = np.asarray(coeffs_vec, dtype=DTYPE)
    if arr.shape != (count, FLOATS_PER_VECTOR):
        raise ValueError(
            f"expected coefficients of shape {(count, FLOATS_PER_VECTOR)}, got {arr.shape}"
        )
    return [row.tolist() for row in arr]


def _to_vector(values: list) -> np.ndarray:
    return np.array(values, dtype=DTYPE)


def _svf_gains(omega: float, k: float) -> Tuple[float, float, float]:
    pi_omega = PI * omega
    s1 = math.sin(pi_omega)
    s2 = math.sin(2.0 * pi_omega)
    nrm = 1.0 / (2.0 + k * s2)
    g0 = s2 * nrm
    g1 = (-2.0 * s1 * s1 - k * s2) * nrm
    g2 = (2.0 * s1 * s1) * nrm
    return g0, g1, g2


def _safe_sqrt(vy: np.ndarray) -> np.ndarray:
    vy = np.asarray(vy, dtype=DTYPE)
    return np.where(vy > 1e-20, np.sqrt(np.maximum(vy, 0.0)), 0.0).astype(DTYPE)


# ----------------------------------------------------------------------------
# state-variable filter variations


class LopassCoeffs(NamedTuple):
    g0: float
    g1: float
    g2: float


class HipassCoeffs(NamedTuple):
    g0: float
    g1: float
    g2: float
    k: float


class Lopass:
    """Two-pole lowpass state-variable filter."""

    def __init__(self, coeffs: Optional[Sequence[float]] = None):
        self.coeffs = LopassCoeffs(*(coeffs if coeffs is not None else (0.0, 0.0, 0.0)))
        self._ic1 = 0.0
        self._ic2 = 0.0

    @staticmethod
    def make_coeffs(omega: float, k: float) -> LopassCoeffs:
        """Coefficients for cutoff omega and damping k (k = 0 is most resonant)."""
        return LopassCoeffs(*_svf_gains(omega, k))

    @staticmethod
    def make_coeffs_vec(omega: VectorLike, k: VectorLike) -> np.ndarray:
        """Per-sample coefficients, shape (3, vector size).

        omega is limited to at most 0.5 and k to at least 0.01.
        """
        w = np.minimum(as_vector(omega).astype(np.float64), 0.5)
        kk = np.maximum(as_vector(k).astype(np.float64), 0.01)
        pi_omega = PI * w
        s1 = np.sin(pi_omega)
        s2 = np.sin(2.0 * pi_omega)
        nrm = 1.0 / (2.0 + kk * s2)
        g0 = s2 * nrm
        g1 = (-2.0 * s1 * s1 - kk * s2) * nrm
        g2 = (2.0 * s1 * s1) * nrm
        return np.stack([g0, g1, g2]).astype(DTYPE)

    def clear(self) -> None:
        self._ic1 = 0.0
        self._ic2 = 0.0

    def __call__(self, x: VectorLike, omega: Optional[VectorLike] = None,
                 k: Optional[VectorLike] = None) -> np.ndarray:
        """Filter x with the stored coefficients, or with ones made from omega and k."""
        if omega is None and k is None:
            g0s, g1s, g2s = _columns(self.coeffs)
        elif omega is None or k is None:
            raise TypeError("omega and k must be given together")
        else:
            g0s, g1s, g2s = _rows(self.make_coeffs_vec(omega, k), 3)
        ic1, ic2 = self._ic1, self._ic2
        out = []
        for v0, g0, g1, g2 in zip(as_vector(x).tolist(), g0s, g1s, g2s):
            t0 = v0 - ic2
            t1 = g0 * t0 + g1 * ic1
            t2 = g2 * t0 + g0 * ic1
            out.append(t2 + ic2)
            ic1 += 2.0 * t1
            ic2 += 2.0 * t2
        self._ic1, self._ic2 = ic1, ic2
        return _to_vector(out)


class Hipass:
    """Two-pole highpass state-variable filter."""

    def __init__(self):
        self.coeffs = HipassCoeffs(0.0, 0.0, 0.0, 0.0)
        self._ic1 = 0.0
        self._ic2 = 0.0

    @staticmethod
    def make_coeffs(omega: float, k: float) -> HipassCoeffs:
        return HipassCoeffs(*_svf_gains(omega, k), k)

    def clear(self) -> None:
        self._ic1 = 0.0
        self._ic2 = 0.0

    def __call__(self, x: VectorLike) -> np.ndarray:
        g0, g1, g2, k = self.coeffs
        ic1, ic2 = self._ic1, self._ic2
        out = []
        for v0 in as_vector(x).tolist():
            t0 = v0 - ic2
            t1 = g0 * t0 + g1 * ic1
            t2 = g2 * t0 + g0 * ic1
            v1 = t1 + ic1
            v2 = t2 + ic2
            ic1 += 2.0 * t1
            ic2 += 2.0 * t2
            out.append(v0 - k * v1 - v2)
        self._ic1, self._ic2 = ic1, ic2
        return _to_vector(out)


class Bandpass:
    """Two-pole bandpass state-variable filter."""

    def __init__(self):
        self.coeffs = LopassCoeffs(0.0, 0.0, 0.0)
        self._ic1 = 0.0
        self._ic2 = 0.0

    @staticmethod
    def make_coeffs(omega: float, k: float) -> LopassCoeffs:
        return LopassCoeffs(*_svf_gains(omega, k))

    def clear(self) -> None:
        self._ic1 = 0.0
        self._ic2 = 0.0

    def __call__(self, x: VectorLike) -> np.ndarray:
        g0, g1, g2 = self.coeffs
        ic1, ic2 = self._ic1, self._ic2
        out = []
        for v0 in as_vector(x).tolist():
            t0 = v0 - ic2
            t1 = g0 * t0 + g1 * ic1
            t2 = g2 * t0 + g0 * ic1
            out.append(t1 + ic1)
            ic1 += 2.0 * t1
            ic2 += 2.0 * t2
        self._ic1, self._ic2 = ic1, ic2
        return _to_vector(out)


class LoShelfCoeffs(NamedTuple):
    a1: float
    a2: float
    a3: float
    m1: float
    m2: float


class HiShelfCoeffs(NamedTuple):
    a1: float
    a2: float
    a3: float
    m0: float
    m1: float
    m2: float


class LoShelf:
    """Low shelving filter."""

    def __init__(self):
        self.coeffs = LoShelfCoeffs(0.0, 0.0, 0.0, 0.0, 0.0)
        self._ic1 = 0.0
        self._ic2 = 0.0

    @staticmethod
    def make_coeffs(omega: float, k: float, gain: float) -> LoShelfCoeffs:
        g = math.tan(PI * omega) / math.sqrt(gain)
        a1 = 1.0 / (1.0 + g * (g + k))
        a2 = g * a1
        a3 = g * a2
        return LoShelfCoeffs(a1, a2, a3, k * (gain - 1.0), gain * gain - 1.0)

    @classmethod
    def make_coeffs_vec(cls, p0: Sequence[float], p1: Sequence[float]) -> np.ndarray:
        """Coefficients ramped over one vector between params (omega, k, gain) p0 and p1."""
        return interpolate_coeffs_linear(cls.make_coeffs(*p0), cls.make_coeffs(*p1))

    def clear(self) -> None:
        self._ic1 = 0.0
        self._ic2 = 0.0

    def __call__(self, x: VectorLike, coeffs_vec: Optional[np.ndarray] = None) -> np.ndarray:
        if coeffs_vec is None:
            cols = _columns(self.coeffs)
        else:
            cols = _rows(coeffs_vec, 5)
        ic1, ic2 = self._ic1, self._ic2
        out = []
        for v0, a1, a2, a3, m1, m2 in zip(as_vector(x).tolist(), *cols):
            v3 = v0 - ic2
            v1 = a1 * ic1 + a2 * v3
            v2 = ic2 + a2 * ic1 + a3 * v3
            ic1 = 2.0 * v1 - ic1
            ic2 = 2.0 * v2 - ic2
            out.append(v0 + m1 * v1 + m2 * v2)
        self._ic1, self._ic2 = ic1, ic2
        return _to_vector(out)


class HiShelf:
    """High shelving filter."""

    def __init__(self):
        self.coeffs = HiShelfCoeffs(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
        self._ic1 = 0.0
        self._ic2 = 0.0

    @staticmethod
    def make_coeffs(omega: float, k: float, gain: float) -> HiShelfCoeffs:
        g = math.tan(PI * omega) * math.sqrt(gain)
        a1 = 1.0 / (1.0 + g * (g + k))
        a2 = g * a1
        a3 = g * a2
        return HiShelfCoeffs(
            a1, a2, a3, gain * gain, k * (1.0 - gain) * gain, 1.0 - gain * gain
        )

    @classmethod
    def make_coeffs_vec(cls, p0: Sequence[float], p1: Sequence[float]) -> np.ndarray:
        """Coefficients ramped over one vector between params (omega, k, gain) p0 and p1."""
        return interpolate_coeffs_linear(cls.make_coeffs(*p0), cls.make_coeffs(*p1))

    def clear(self) -> None:
        self._ic1 = 0.0
        self._ic2 = 0.0

    def __call__(self, x: VectorLike, coeffs_vec: Optional[np.ndarray] = None) -> np.ndarray:
        if coeffs_vec is None:
            cols = _columns(self.coeffs)
        else:
            cols = _rows(coeffs_vec, 6)
        ic1, ic2 = self._ic1, self._ic2
        out = []
        for v0, a1, a2, a3, m0, m1, m2 in zip(as_vector(x).tolist(), *cols):
            v3 = v0 - ic2
            v1 = a1 * ic1 + a2 * v3
            v2 = ic2 + a2 * ic1 + a3 * v3
            ic1 = 2.0 * v1 - ic1
            ic2 = 2.0 * v2 - ic2
            out.append(m0 * v0 + m1 * v1 + m2 * v2)
        self._ic1, self._ic2 = ic1, ic2
        return _to_vector(out)


class BellCoeffs(NamedTuple):
    a1: float
    a2: float
    a3: float
    m1: float


class Bell:
    """Peaking (bell) equalizer filter."""

    def __init__(self):
        self.coeffs = BellCoeffs(0.0, 0.0, 0.0, 0.0)
        self._ic1 = 0.0
        self._ic2 = 0.0

    @staticmethod
    def make_coeffs(omega: float, k: float, gain: float) -> BellCoeffs:
        kc = k / gain
        g = math.tan(PI * omega)
        a1 = 1.0 / (1.0 + g * (g + kc))
        a2 = g * a1
        a3 = g * a2
        return BellCoeffs(a1, a2, a3, kc * (gain * gain - 1.0))

    def clear(self) -> None:
        self._ic1 = 0.0
        self._ic2 = 0.0

    def __call__(self, x: VectorLike) -> np.ndarray:
        a1, a2, a3, m1 = self.coeffs
        ic1, ic2 = self._ic1, self._ic2
        out = []
        for v0 in as_vector(x).tolist():
            v3 = v0 - ic2
            v1 = a1 * ic1 + a2 * v3
            v2 = ic2 + a2 * ic1 + a3 * v3
            ic1 = 2.0 * v1 - ic1
            ic2 = 2.0 * v2 - ic2
            out.append(v0 + m1 * v1)
        self._ic1, self._ic2 = ic1, ic2
        return _to_vector(out)


# ----------------------------------------------------------------------------
# one-pole and simple filters


class OnePoleCoeffs(NamedTuple):
    a0: float
    b1: float


def _one_pole_coeffs(omega: float) -> OnePoleCoeffs:
    x = math.exp(-omega * TWO_PI)
    return OnePoleCoeffs(1.0 - x, x)


class OnePole:
    """A one-pole lowpass filter."""

    def __init__(self):
        self.coeffs = OnePoleCoeffs(0.0, 0.0)
        self._y1 = 0.0

    @staticmethod
    def make_coeffs(omega: float) -> OnePoleCoeffs:
        return _one_pole_coeffs(omega)

    @staticmethod
    def passthru() -> OnePoleCoeffs:
        return OnePoleCoeffs(1.0, 0.0)

    def reset(self, value: float) -> None:
        """Jump to the output value without slewing there."""
        self._y1 = float(value)

    def clear(self) -> None:
        self._y1 = 0.0

    def __call__(self, x: VectorLike) -> np.ndarray:
        a0, b1 = self.coeffs
        y1 = self._y1
        out = []
        for v in as_vector(x).tolist():
            y1 = a0 * v + b1 * y1
            out.append(y1)
        self._y1 = y1
        return _to_vector(out)


class DCBlocker:
    """A one-pole, one-zero filter that removes DC."""

    def __init__(self):
        self.coeffs = 0.045
        self._x1 = 0.0
        self._y1 = 0.0

    @staticmethod
    def make_coeffs(omega: float) -> float:
        return math.cos(omega)

    def __call__(self, x: VectorLike) -> np.ndarray:
        c = float(self.coeffs)
        x1, y1 = self._x1, self._y1
        out = []
        for x0 in as_vector(x).tolist():
            y0 = x0 - x1 + c * y1
            y1 = y0
            x1 = x0
            out.append(y0)
        self._x1, self._y1 = x1, y1
        return _to_vector(out)


class Differentiator:
    """Output the difference between each sample and the one before it."""

    def __init__(self):
        self._x1 = 0.0

    def __call__(self, x: VectorLike) -> np.ndarray:
        vx = as_vector(x)
        vy = np.diff(vx, prepend=DTYPE(self._x1)).astype(DTYPE)
        self._x1 = float(vx[-1])
        return vy


class Integrator:
    """Running sum of the input, with an optional leak for stability."""

    def __init__(self, leak: float = 0.0):
        self.leak = leak
        self._y1 = 0.0

    def __call__(self, x: VectorLike) -> np.ndarray:
        leak = float(self.leak)
        y1 = self._y1
        out = []
        for v in as_vector(x).tolist():
            y1 -= y1 * leak
            y1 += v
            out.append(y1)
        self._y1 = y1
        return _to_vector(out)


class Peak:
    """Peak amplitude follower with hold time and exponential decay."""

    def __init__(self):
        self.coeffs = OnePoleCoeffs(0.0, 0.0)
        self.peak_hold_samples = 44100
        self._y1 = 0.0
        self._hold_counter = 0

    @staticmethod
    def make_coeffs(omega: float) -> OnePoleCoeffs:
        return _one_pole_coeffs(omega)

    @staticmethod
    def passthru() -> OnePoleCoeffs:
        return OnePoleCoeffs(1.0, 0.0)

    def __call__(self, x: VectorLike) -> np.ndarray:
        a0, b1 = self.coeffs
        vx = as_vector(x)
        y1 = self._y1
        counter = self._hold_counter
        out = []
        for v in (vx * vx).tolist():
            if v > y1:
                y1 = v
                counter = self.peak_hold_samples
            elif counter <= 0:
                y1 = a0 * v + b1 * y1
            out.append(y1)
        if counter > 0:
            counter -= FLOATS_PER_VECTOR
        self._y1 = y1
        self._hold_counter = counter
        return _safe_sqrt(_to_vector(out))


class RMS:
    """Filtered root-mean-square level."""

    def __init__(self):
        self.coeffs = OnePoleCoeffs(0.0, 0.0)
        self._y1 = 0.0

    @staticmethod
    def make_coeffs(omega: float) -> OnePoleCoeffs:
        return _one_pole_coeffs(omega)

    @staticmethod
    def passthru() -> OnePoleCoeffs:
        return OnePoleCoeffs(1.0, 0.0)

    def __call__(self, x: VectorLike) -> np.ndarray:
        a0, b1 = self.coeffs
        vx = as_vector(x)
        y1 = self._y1
        out = []
        for v in (vx * vx).tolist():
            y1 = a0 * v + b1 * y1
            out.append(y1)
        self._y1 = y1
        return _safe_sqrt(_to_vector(out))


# ----------------------------------------------------------------------------
# envelope


class Segment(IntEnum):
    A = 0
    D = 1
    S = 2
    R = 3
    OFF = 4


class ADSRCoeffs(NamedTuple):
    ka: float
    kd: float
    s: float
    kr: float


class ADSR:
    """ADSR envelope triggered and scaled by a single gate-and-amplitude signal.

    A rising gate (0 to positive) starts the attack with the gate value as
    amplitude; a falling gate (positive to 0) starts the release.
    """

    BIAS = 0.1
    MIN_SEGMENT_TIME = 0.0002

    def __init__(self):
        self.coeffs = ADSRCoeffs(0.0, 0.0, 0.0, 0.0)
        self.y = 0.0
        self.y1 = 0.0
        self.x1 = 0.0
        self.threshold = 0.0
        self.target = 0.0
        self.k = 0.0
        self.amp = 0.0
        self.segment = Segment.OFF

    @classmethod
    def calc_coeffs(cls, a: float, d: float, s: float, r: float,
                    sample_rate: float) -> ADSRCoeffs:
        """Coefficients for attack, decay and release times in seconds and sustain level s."""
        inv_sr = 1.0 / sample_rate
        ka = TWO_PI * inv_sr / max(a, cls.MIN_SEGMENT_TIME)
        kd = TWO_PI * inv_sr / max(d, cls.MIN_SEGMENT_TIME)
        kr = TWO_PI * inv_sr / max(r, cls.MIN_SEGMENT_TIME)
        return ADSRCoeffs(ka, kd, s, kr)

    def clear(self) -> None:
        self.segment = Segment.OFF

    def process_sample(self, x: float) -> float:
        x = float(x)
        if self.segment == Segment.OFF and x == 0.0:
            return 0.0

        crossed = (self.y1 > self.threshold) != (self.y > self.threshold)
        recalc = False
        if crossed and self.segment < Segment.OFF:
            self.segment = Segment(self.segment + 1)
            recalc = True

        trig_on = self.x1 == 0.0 and x > 0.0
        trig_off = self.x1 > 0.0 and x == 0.0
        if trig_on:
            self.segment = Segment.A
            self.amp = x
            recalc = True
        elif trig_off:
            self.segment = Segment.R
            recalc = True

        if recalc:
            c = self.coeffs
            if self.segment == Segment.A:
                start, end = 0.0, 1.0
                self.k = c.ka
            elif self.segment == Segment.D:
                start, end = 1.0, c.s
                self.k = c.kd
            elif self.segment == Segment.S:
                start, end = c.s, c.s
                self.k = 0.0
                self.y1 = c.s
                self.y = c.s
            elif self.segment == Segment.R:
                start, end = c.s, 0.0
                self.k = c.kr
            else:
                start, end = 0.0, 0.0
                self.k = 0.0
                self.y1 = 0.0
                self.y = 0.0
            self.threshold = end
            self.target = end + (end - start) * self.BIAS

        self.x1 = x
        self.y1 = self.y
        self.y = self.y + self.k * (self.target - self.y)
        return self.y * self.amp

    def __call__(self, x: VectorLike) -> np.ndarray:
        return _to_vector([self.process_sample(v) for v in as_vector(x).tolist()])