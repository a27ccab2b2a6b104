import math

import numpy as np
import pytest

from vectordsp.dsp_math import FLOATS_PER_VECTOR, TWO_PI
from vectordsp.filters import (
    ADSR,
    RMS,
    Bandpass,
    Bell,
    DCBlocker,
    Differentiator,
    HiShelf,
    Hipass,
    Integrator,
    LoShelf,
    Lopass,
    OnePole,
    Peak,
    Segment,
    db_to_gain,
    interpolate_coeffs_linear,
)

N = FLOATS_PER_VECTOR


def _noise(seed=0):
    return np.random.default_rng(seed).uniform(-1.0, 1.0, N).astype(np.float32)


def _run(filt, x, vectors, *args):
    out = None
    for _ in range(vectors):
        out = filt(x, *args)
    return out


def test_db_to_gain_zero_is_unity():
    assert db_to_gain(0.0) == 1.0


def test_db_to_gain_forty_db():
    assert db_to_gain(40.0) == pytest.approx(10.0)


def test_db_to_gain_is_multiplicative():
    assert db_to_gain(6.0 + 9.0) == pytest.approx(db_to_gain(6.0) * db_to_gain(9.0))
    assert db_to_gain(-12.0) == pytest.approx(1.0 / db_to_gain(12.0))


def test_interpolate_coeffs_shape_and_end():
    c0 = [0.0, 2.0, -1.0]
    c1 = [1.0, 2.0, 3.0]
    v = interpolate_coeffs_linear(c0, c1)
    assert v.shape == (3, N)
    assert np.allclose(v[:, -1], c1)
    assert np.all(v[1] == 2.0)
    assert np.all(np.diff(v[0]) > 0)
    assert v[0].min() >= 0.0 and v[0].max() <= 1.0


def test_interpolate_coeffs_rejects_mismatch():
    with pytest.raises(ValueError):
        interpolate_coeffs_linear([1.0, 2.0], [1.0])


def test_lopass_dc_settles_to_input():
    f = Lopass(Lopass.make_coeffs(0.05, 1.0))
    out = _run(f, np.ones(N), 20)
    assert out[-1] == pytest.approx(1.0, abs=1e-3)


def test_lopass_vector_params_match_stored_coeffs():
    x = _noise()
    a = Lopass()
    b = Lopass(Lopass.make_coeffs(0.1, 0.7))
    ya = a(x, 0.1, 0.7)
    yb = b(x)
    assert np.allclose(ya, yb, atol=1e-5)


def test_lopass_coeffs_vec_clamps():
    cv = Lopass.make_coeffs_vec(0.9, 0.0)
    expected = Lopass.make_coeffs(0.5, 0.01)
    assert cv.shape == (3, N)
    assert np.allclose(cv[:, 0], expected, atol=1e-6)


def test_lopass_requires_both_params():
    with pytest.raises(TypeError):
        Lopass()(np.zeros(N), 0.1)


def test_lopass_clear_restores_initial_state():
    x = _noise()
    f = Lopass(Lopass.make_coeffs(0.2, 0.5))
    first = f(x)
    f(x)
    f.clear()
    assert np.array_equal(f(x), first)


def test_svf_outputs_sum_to_input():
    omega, k = 0.08, 0.6
    lo = Lopass(Lopass.make_coeffs(omega, k))
    hi = Hipass()
    hi.coeffs = Hipass.make_coeffs(omega, k)
    bp = Bandpass()
    bp.coeffs = Bandpass.make_coeffs(omega, k)
    for seed in range(3):
        x = _noise(seed)
        total = lo(x) + k * bp(x) + hi(x)
        assert np.allclose(total, x, atol=1e-4)


def test_hipass_blocks_dc():
    f = Hipass()
    f.coeffs = Hipass.make_coeffs(0.05, 1.0)
    out = _run(f, np.ones(N), 20)
    assert abs(out[-1]) < 1e-3


@pytest.mark.parametrize("cls", [LoShelf, HiShelf])
def test_shelf_with_unity_gain_is_identity(cls):
    f = cls()
    f.coeffs = cls.make_coeffs(0.1, 1.0, 1.0)
    x = _noise()
    assert np.allclose(f(x), x, atol=1e-6)


def test_bell_with_unity_gain_is_identity():
    f = Bell()
    f.coeffs = Bell.make_coeffs(0.1, 1.0, 1.0)
    x = _noise()
    assert np.allclose(f(x), x, atol=1e-6)


def test_bell_dc_is_unity():
    f = Bell()
    f.coeffs = Bell.make_coeffs(0.05, 1.0, 3.0)
    out = _run(f, np.ones(N), 40)
    assert out[-1] == pytest.approx(1.0, abs=1e-3)


def test_hishelf_dc_is_unity():
    f = HiShelf()
    f.coeffs = HiShelf.make_coeffs(0.05, 1.0, 2.0)
    out = _run(f, np.ones(N), 40)
    assert out[-1] == pytest.approx(1.0, abs=1e-3)


def test_loshelf_dc_gain_is_gain_squared():
    gain = 2.0
    f = LoShelf()
    f.coeffs = LoShelf.make_coeffs(0.05, 1.0, gain)
    out = _run(f, np.ones(N), 40)
    assert out[-1] == pytest.approx(gain ** 2, abs=1e-2)


@pytest.mark.parametrize("cls", [LoShelf, HiShelf])
def test_shelf_constant_coeffs_vec_matches_stored(cls):
    params = (0.1, 0.8, 1.5)
    x = _noise()
    a = cls()
    a.coeffs = cls.make_coeffs(*params)
    b = cls()
    assert np.allclose(a(x), b(x, cls.make_coeffs_vec(params, params)), atol=1e-5)


def test_shelf_rejects_bad_coeffs_shape():
    with pytest.raises(ValueError):
        LoShelf()(np.zeros(N), np.zeros((3, N)))


def test_one_pole_coeffs_sum_to_one():
    c = OnePole.make_coeffs(0.01)
    assert c.a0 + c.b1 == pytest.approx(1.0)
    assert c.b1 == pytest.approx(math.exp(-0.01 * TWO_PI))


def test_one_pole_passthru_is_identity():
    f = OnePole()
    f.coeffs = OnePole.passthru()
    x = _noise()
    assert np.allclose(f(x), x)


def test_one_pole_reset_holds_value():
    f = OnePole()
    f.coeffs = (0.0, 1.0)
    f.reset(0.7)
    assert np.allclose(f(_noise()), 0.7)
    f.clear()
    assert np.all(f(_noise()) == 0.0)


def test_dc_blocker_first_sample_and_decay():
    f = DCBlocker()
    f.coeffs = DCBlocker.make_coeffs(0.5)
    x = np.full(N, 0.25, dtype=np.float32)
    first = f(x)
    assert first[0] == pytest.approx(0.25)
    out = _run(f, x, 10)
    assert abs(out[-1]) < 1e-3


def test_integrator_undoes_differentiator():
    d = Differentiator()
    i = Integrator()
    for seed in range(3):
        x = _noise(seed)
        assert np.allclose(i(d(x)), x, atol=1e-5)


def test_integrator_accumulates_across_vectors():
    f = Integrator()
    x = _noise()
    first = f(x)
    second = f(x)
    expected = np.cumsum(np.concatenate([x, x]).astype(np.float64))
    assert np.allclose(np.concatenate([first, second]), expected, atol=1e-4)


def test_rms_passthru_is_absolute_value():
    f = RMS()
    f.coeffs = RMS.passthru()
    x = np.linspace(-1.0, 1.0, N).astype(np.float32)
    assert np.allclose(f(x), np.abs(x), rtol=1e-5)


def test_rms_of_silence_is_zero():
    f = RMS()
    f.coeffs = RMS.make_coeffs(0.01)
    assert np.all(f(np.zeros(N)) == 0.0)


def test_peak_holds_maximum():
    f = Peak()
    f.coeffs = Peak.passthru()
    x = np.full(N, 0.1, dtype=np.float32)
    x[10] = 0.8
    out = f(x)
    assert np.allclose(out[:10], 0.1, rtol=1e-5)
    assert np.allclose(out[10:], 0.8, rtol=1e-5)
    again = f(np.full(N, 0.1, dtype=np.float32))
    assert np.allclose(again, 0.8, rtol=1e-5)


def test_peak_without_hold_follows_input():
    f = Peak()
    f.coeffs = Peak.passthru()
    f.peak_hold_samples = 0
    f(np.full(N, 0.9, dtype=np.float32))
    out = f(np.full(N, 0.1, dtype=np.float32))
    assert np.allclose(out, 0.1, rtol=1e-5)


def test_adsr_calc_coeffs():
    c = ADSR.calc_coeffs(0.01, 0.0, 0.5, 0.02, 48000.0)
    assert c.s == 0.5
    assert c.ka == pytest.approx(TWO_PI / 48000.0 / 0.01)
    assert c.kd == pytest.approx(TWO_PI / 48000.0 / ADSR.MIN_SEGMENT_TIME)


def test_adsr_silent_without_gate():
    env = ADSR()
    env.coeffs = ADSR.calc_coeffs(0.001, 0.001, 0.5, 0.001, 48000.0)
    assert np.all(env(np.zeros(N)) == 0.0)


def test_adsr_full_cycle():
    env = ADSR()
    env.coeffs = ADSR.calc_coeffs(0.001, 0.001, 0.5, 0.001, 48000.0)
    gate = np.ones(N, dtype=np.float32)
    first = env(gate)
    assert first[0] >= 0.0
    assert first.max() > 0.5
    out = _run(env, gate, 10)
    assert env.segment == Segment.S
    assert np.allclose(out, 0.5)
    released = _run(env, np.zeros(N), 10)
    assert env.segment == Segment.OFF
    assert np.all(released == 0.0)


def test_adsr_clear_turns_off():
    env = ADSR()
    env.coeffs = ADSR.calc_coeffs(0.01, 0.01, 0.5, 0.01, 48000.0)
    env(np.ones(N))
    env.clear()
    assert env.segment == Segment.OFF
    assert env.process_sample(0.0) == 0.0