# Author      : Tyson Limato
# Date        : 2025-6-1
# File Name   : example_data_generator.py
import numpy as np

from arena import ArrayArena


def _check_range(arena: ArrayArena, high: int):
    if arena.dtype.kind in "iu" and high > np.iinfo(arena.dtype).max:
        raise ValueError(f"values up to {high} do not fit in {arena.dtype.name}")


def fill_descending(arena: ArrayArena) -> ArrayArena:
    """
    Fill the arena so that every array is strictly descending and all values are distinct:
    value[i][n] = rows*columns - i*columns - n.
    """
    max_number = arena.rows * arena.columns
    _check_range(arena, max_number)

    offsets = np.arange(arena.columns, dtype=np.int64)
    for i in range(arena.rows):
        # built row by row so no temporary of the full arena size is needed
        arena.row(i)[:] = (max_number - i * arena.columns) - offsets
    return arena


def fill_random(arena: ArrayArena, seed=None, high: int = None) -> ArrayArena:
    """Fill the arena with uniform random values in [0, high); high defaults to rows*columns."""
    if high is None:
        high = arena.rows * arena.columns
    _check_range(arena, high)

    rng = np.random.default_rng(seed)
    for i in range(arena.rows):
        if arena.dtype.kind in "iu":
            arena.row(i)[:] = rng.integers(0, high, size=arena.columns)
        else:
            arena.row(i)[:] = rng.random(arena.columns) * high
    return arena


GENERATORS = {
    "descending": fill_descending,
    "random": fill_random,
}


# Run the function
if __name__ == "__main__":
    demo = fill_descending(ArrayArena(4, 6))
    print(demo.matrix)
