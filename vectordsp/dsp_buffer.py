"""A single-producer, single-consumer ring buffer for audio samples."""

from __future__ import annotations

from typing import Optional

import numpy as np

from .dsp_math import DTYPE, FLOATS_PER_VECTOR, VectorLike, bits_to_contain


class DSPBuffer:
    """Ring buffer of float32 samples with a power-of-two capacity.

    Read and write indices run over twice the capacity. A full buffer
    (write - read == size) can then be told apart from an empty one
    (write - read == 0). One thread may write while another reads.
    """

    def __init__(self, size: int = 0):
        self._data = np.zeros(0, dtype=DTYPE)
        self._size = 0
        self._data_mask = 0
        self._distance_mask = 0
        self._write_index = 0
        self._read_index = 0
        if size:
            self.resize(size)

    @property
    def size(self) -> int:
        """The capacity of the buffer in samples."""
        return self._size

    def __len__(self) -> int:
        return self._size

    # -- index helpers -------------------------------------------------

    def _advance(self, start: int, count: int) -> int:
        return (start + count) & self._distance_mask

    def _rewind(self, start: int, count: int) -> int:
        return (start - count) & self._distance_mask

    def _positions(self, start: int, count: int) -> np.ndarray:
        return (start + np.arange(count, dtype=np.int64)) & self._data_mask

    @staticmethod
    def _as_samples(samples: VectorLike) -> np.ndarray:
        return np.asarray(samples, dtype=DTYPE).ravel()

    # -- public interface ----------------------------------------------

    def resize(self, size: int) -> int:
        """Allocate room for at least ``size`` samples and reset the indices.

        The capacity is the next power of two, and never less than one DSP
        vector. Samples already held are kept where they fit. Returns the new
        capacity.
        """
        self._read_index = 0
        self._write_index = 0
        new_size = max(1 << bits_to_contain(size), FLOATS_PER_VECTOR)
        new_data = np.zeros(new_size, dtype=DTYPE)
        keep = min(new_size, self._data.size)
        new_data[:keep] = self._data[:keep]
        self._data = new_data
        self._size = new_size
        self._data_mask = new_size - 1
        self._distance_mask = new_size * 2 - 1
        return new_size

    def clear(self) -> None:
        """Discard everything waiting to be read."""
        self._read_index = self._write_index

    def read_available(self) -> int:
        """Number of samples that can be read."""
        r = self._read_index
        w = self._write_index
        return (w - r) & self._distance_mask

    def write_available(self) -> int:
        """Number of samples that can be written without overwriting."""
        return self._size - self.read_available()

    def write(self, samples: VectorLike) -> None:
        """Write samples, advancing the write index.

        Multi-row arrays are written row after row. If there is not enough
        free space, the oldest samples are overwritten and the buffer is left
        full.
        """
        src = self._as_samples(samples)
        count = src.size
        if count > self._size:
            raise ValueError(
                f"cannot write {count} samples to a buffer of size {self._size}"
            )
        full = self.write_available() < count
        w = self._write_index
        self._data[self._positions(w, count)] = src
        self._write_index = self._advance(w, count)
        if full:
            self._read_index = self._rewind(self._write_index, self._size)

    def read(self, count: int) -> np.ndarray:
        """Read up to ``count`` samples, advancing the read index."""
        count = max(0, min(int(count), self.read_available()))
        r = self._read_index
        out = self._data[self._positions(r, count)].copy()
        self._read_index = self._advance(r, count)
        return out

    def read_vectors(self, rows: int) -> Optional[np.ndarray]:
        """Read ``rows`` DSP vectors as an array of shape (rows, vector size).

        Returns None, reading nothing, if not enough samples are available.
        """
        count = FLOATS_PER_VECTOR * int(rows)
        if self.read_available() < count:
            return None
        r = self._read_index
        out = self._data[self._positions(r, count)].reshape(rows, FLOATS_PER_VECTOR)
        self._read_index = self._advance(r, count)
        return out

    def read_vector(self) -> np.ndarray:
        """Read one DSP vector, or return a zero vector if not enough is available."""
        result = self.read_vectors(1)
        if result is None:
            return np.zeros(FLOATS_PER_VECTOR, dtype=DTYPE)
        return result[0]

    def discard(self, count: int) -> None:
        """Drop up to ``count`` samples by advancing the read index."""
        count = max(0, min(int(count), self.read_available()))
        self._read_index = self._advance(self._read_index, count)

    def write_with_overlap_add(self, samples: VectorLike, overlap: int) -> bool:
        """Add a window of samples and advance the write index by len - overlap.

        The samples past the window that the next window will overlap are
        cleared first. Partial windows are never written: if there is not room
        for two windows less the overlap, nothing happens and False is returned.
        """
        src = self._as_samples(samples)
        count = src.size
        overlap = int(overlap)
        if self.write_available() < count * 2 - overlap:
            return False
        w = self._write_index
        self._data[self._positions(w, count)] += src
        w = self._advance(w, count)
        self._data[self._positions(w, count - overlap)] = 0.0
        self._write_index = self._rewind(w, overlap)
        return True

    def read_with_overlap(self, count: int, overlap: int) -> np.ndarray:
        """Read up to ``count`` samples, then step the read index back by ``overlap``."""
        overlap = int(overlap)
        count = max(0, min(int(count), self.read_available() + overlap))
        r = self._read_index
        out = self._data[self._positions(r, count)].copy()
        self._read_index = self._advance(r, count - overlap)
        return out

    def peek_most_recent(self, count: int) -> Optional[np.ndarray]:
        """Return the ``count`` most recently written samples without reading them.

        Returns None if fewer than ``count`` samples are available.
        """
        count = int(count)
        available = self.read_available()
        if available < count:
            return None
        start = self._read_index + available - count
        return self._data[self._positions(start, count)].copy()