# Author      : Tyson Limato
# Date        : 2025-7-2
# File Name   : sort_config.py
from dataclasses import dataclass

import numpy as np

# Defaults carried over from the C benchmark this project started from
TOTAL_ARRAYS  = 10000
TOTAL_NUMBERS = 100000
PAYLOAD_SIZE  = 8
SORT_THREADS  = 8
MASTER        = 0


@dataclass
class SortConfig:
    """
    Dimensions and tunables of one distributed sort run.

    Parameters:
    -----------
    total_arrays : int
        Number of arrays in the dataset (A).
    array_length : int
        Number of elements per array (L).
    payload_size : int
        Number of arrays sent to a worker per job (P). Must divide total_arrays.
    sort_threads : int
        Size of the thread pool each worker sorts with.
    dtype : str
        Numpy dtype name of the elements.
    master : int
        Rank of the coordinator.
    """
    total_arrays: int = TOTAL_ARRAYS
    array_length: int = TOTAL_NUMBERS
    payload_size: int = PAYLOAD_SIZE
    sort_threads: int = SORT_THREADS
    dtype: str = "int32"
    master: int = MASTER

    def validate(self) -> "SortConfig":
        for name in ("total_arrays", "array_length", "payload_size", "sort_threads"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.total_arrays % self.payload_size != 0:
            raise ValueError(
                f"total_arrays ({self.total_arrays}) must be divisible by "
                f"payload_size ({self.payload_size})"
            )
        # raises TypeError on an unknown dtype name
        np.dtype(self.dtype)
        return self

    @property
    def np_dtype(self) -> np.dtype:
        return np.dtype(self.dtype)

    @property
    def num_jobs(self) -> int:
        return self.total_arrays // self.payload_size

    @property
    def chunk_shape(self) -> tuple:
        return (self.payload_size, self.array_length)

    @property
    def die_tag(self) -> int:
        # One past the last array index, never a valid job index
        return self.total_arrays + 1

    @property
    def max_number(self) -> int:
        return self.total_arrays * self.array_length

    def job_indices(self) -> range:
        """Job indices in dispatch order: 0, P, 2P, ... A-P."""
        return range(0, self.total_arrays, self.payload_size)
