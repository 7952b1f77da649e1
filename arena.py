# Author      : Tyson Limato
# Date        : 2025-7-3
# File Name   : arena.py
import numpy as np

from errors import AllocationFailure


class ArrayArena:
    """
    A rows x columns matrix backed by one contiguous buffer.

    Every row, and every run of consecutive rows, is a view into the same
    memory, so a chunk can be handed straight to MPI without copying.

    Parameters:
    -----------
    rows : int
        Number of arrays.
    columns : int
        Elements per array.
    dtype : str or np.dtype
        Element type (default int32, matching MPI_INT).
    """

    def __init__(self, rows: int, columns: int, dtype="int32"):
        if rows <= 0 or columns <= 0:
            raise AllocationFailure(f"cannot allocate a {rows}x{columns} arena")
        try:
            self._data = np.zeros(rows * columns, dtype=dtype)
        except MemoryError as exc:
            raise AllocationFailure(
                f"calloc failed for {rows}x{columns} {np.dtype(dtype).name}"
            ) from exc
        self.rows = rows
        self.columns = columns

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def flat(self) -> np.ndarray:
        return self._data

    @property
    def matrix(self) -> np.ndarray:
        return self._data.reshape(self.rows, self.columns)

    def row(self, i: int) -> np.ndarray:
        start = i * self.columns
        return self._data[start:start + self.columns]

    def rows_view(self, start: int, count: int) -> np.ndarray:
        """`count` consecutive rows starting at `start` as a (count, columns) view."""
        if start < 0 or count <= 0 or start + count > self.rows:
            raise IndexError(f"rows {start}..{start + count} outside arena of {self.rows}")
        lo = start * self.columns
        hi = lo + count * self.columns
        return self._data[lo:hi].reshape(count, self.columns)

    def chunk(self, job_index: int, payload_size: int) -> np.ndarray:
        return self.rows_view(job_index, payload_size)

    def copy(self) -> "ArrayArena":
        clone = ArrayArena(self.rows, self.columns, self.dtype)
        clone.flat[:] = self._data
        return clone

    def __len__(self):
        return self.rows
