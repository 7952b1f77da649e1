# Author      : Tyson Limato
# Date        : 2025-7-5
# File Name   : sort_engine.py
from concurrent.futures import ThreadPoolExecutor, wait

import numpy as np

from errors import AllocationFailure


class ParallelSortEngine:
    """
    Sorts every row of a 2-D batch in place, one row per thread-pool task.

    Rows are disjoint views into the batch, so the tasks never share memory.
    `ndarray.sort` releases the GIL for numeric dtypes, which is what lets a
    plain thread pool sort several rows at the same time.

    Parameters:
    -----------
    threads : int
        Fixed number of sorting threads, created once and reused for every batch.
    kind : str
        Numpy sort algorithm (default "quicksort", like the original qsort).
    """

    def __init__(self, threads: int = 8, kind: str = "quicksort"):
        if threads <= 0:
            raise AllocationFailure(f"cannot create a sort pool of {threads} threads")
        self.threads = threads
        self.kind = kind
        try:
            self._pool = ThreadPoolExecutor(max_workers=threads, thread_name_prefix="sort")
        except RuntimeError as exc:
            raise AllocationFailure(f"could not start {threads} sort threads") from exc

    def sort_batch(self, batch: np.ndarray) -> np.ndarray:
        if batch.ndim != 2:
            raise ValueError(f"expected a 2-D batch, got shape {batch.shape}")

        futures = [self._pool.submit(row.sort, kind=self.kind) for row in batch]
        done, _ = wait(futures)
        # re-raise the first failure, if any
        for future in done:
            future.result()
        return batch

    def close(self):
        self._pool.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
