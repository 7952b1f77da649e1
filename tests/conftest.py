"""
Shared fixtures for the distributed sort tests.
"""

import pytest

from arena import ArrayArena
from example_data_generator import fill_random
from sort_config import SortConfig


@pytest.fixture
def small_config():
    """A=8, P=2, L=4 with a 2-thread sort pool."""
    return SortConfig(total_arrays=8, array_length=4, payload_size=2, sort_threads=2)


@pytest.fixture
def make_arena():
    """Build a random arena matching a config."""
    def _make(config, seed=0):
        arena = ArrayArena(config.total_arrays, config.array_length, config.dtype)
        return fill_random(arena, seed=seed, high=1000)
    return _make

