# vectordsp

Audio DSP building blocks that work on fixed-size blocks of samples
("DSP vectors", 64 float32 samples each) held as numpy arrays. Processors
keep their state between calls, so a signal is processed one block at a time.
An array of several DSP vectors is a float32 array of shape `(rows, 64)`.

## Installation

```
pip install .
```

Install the test extra with `pip install .[test]`, then run the tests with `pytest`.

## What is inside

- `vectordsp.dsp_math`: the block size `FLOATS_PER_VECTOR`, `dsp_vector` (fill a
  block from a scalar or from a function of the sample index), `as_vector`
  (convert a scalar or a 64-sample sequence to a block) and `bits_to_contain`.
- `vectordsp.symbol`: interned text symbols (`Symbol`, `SymbolTable`,
  `symbol_table`, `kr_hash`, `symbol_hash`). Each distinct string gets an ID in
  creation order; symbols compare, sort and hash by that ID. The shared table is
  thread-safe, and `SymbolTable.audit()` checks its consistency.
- `vectordsp.dsp_buffer`: `DSPBuffer`, a power-of-two ring buffer of samples for
  one writer and one reader. Writing past the free space overwrites the oldest
  data. It also offers `read_vectors`, `read_vector`, `discard`,
  `write_with_overlap_add`, `read_with_overlap` and `peek_most_recent`.
- `vectordsp.filters`: state-variable filters (`Lopass`, `Hipass`, `Bandpass`,
  `LoShelf`, `HiShelf`, `Bell`), plus `OnePole`, `DCBlocker`, `Differentiator`,
  `Integrator`, the level followers `Peak` and `RMS`, and the `ADSR` envelope.
  Cutoffs are given as omega, the frequency divided by the sample rate; `db_to_gain`
  converts decibels to the shelf and bell gain parameter, and
  `interpolate_coeffs_linear` ramps coefficients across a block.
- `vectordsp.delays`: `IntegerDelay`, `Allpass1`, `FractionalDelay`,
  `PitchbendableDelay` (two crossfaded delays for click-free modulation),
  `Allpass`, the feedback delay network `FDN`, `HalfBandFilter`, `Upsampler`,
  `Downsampler` and the phase-locked loop `PLL`.
- `vectordsp.functional`: mapping helpers (`generate`, `map_samples`, `map_rows`,
  `map_rows_indexed`) and wrappers that run a processing function in another
  context: `Upsample2xFunction`, `Downsample2xFunction`, `FeedbackDelayFunction`,
  `FeedbackDelayFunctionWithTap` and `Bank`, a bank of processors fed one row each.

## Examples

```python
import numpy as np
from vectordsp.dsp_buffer import DSPBuffer
from vectordsp.filters import OnePole

buf = DSPBuffer(197)            # rounded up to 256 samples
assert buf.write_available() == 256

smoother = OnePole()
smoother.coeffs = OnePole.make_coeffs(0.01)
block = smoother(np.ones(64, dtype=np.float32))

buf.write(block)
out = buf.read(64)
```

```python
import numpy as np
from vectordsp.delays import Downsampler, Upsampler

up = Upsampler(3)
down = Downsampler(3)
up.write(np.zeros(64, dtype=np.float32))
for _ in range(8):
    ready = down.write(up.read())
block = down.read()             # ready is True after the eighth write
```

```python
from vectordsp.symbol import Symbol

a = Symbol("hello")
b = Symbol("hello")
assert a == b
```

## What it does not do

The package only processes numpy arrays in memory. It does not open audio
devices, play or record sound, or read and write audio files; it has no
command-line program. Connecting it to audio input and output is left to the
calling code.