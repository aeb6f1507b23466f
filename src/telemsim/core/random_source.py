"""
Random number generation for the simulation.

Every stochastic operation takes an explicitly passed generator rather
than touching numpy's global state. Parallel workers get child seeds
spawned from a master seed, so a run is reproducible regardless of how
many workers execute it.
"""

from __future__ import annotations

from typing import List, Optional, Union

import numpy as np

SeedLike = Union[None, int, np.random.SeedSequence, np.random.Generator, "RandomSource"]


class RandomSource:
    """
    Seedable source of independent numpy generators.

    Wraps a numpy SeedSequence. generator() returns a fresh Generator for
    this source; spawn(n) derives n independent child sources, one per
    worker task (receiver or trial). Child sources are picklable and can be
    shipped to worker processes.
    """

    def __init__(self, seed: Union[None, int, np.random.SeedSequence] = None):
        """
        Initialize with optional seed.

        Args:
            seed: Integer seed, existing SeedSequence, or None for OS entropy
        """
        if isinstance(seed, np.random.SeedSequence):
            self._seq = seed
        else:
            self._seq = np.random.SeedSequence(seed)

    @property
    def entropy(self) -> int:
        """Root entropy of this source (the seed when one was given)."""
        return self._seq.entropy

    @property
    def seed_sequence(self) -> np.random.SeedSequence:
        return self._seq

    def generator(self) -> np.random.Generator:
        """Create a new Generator for this source."""
        return np.random.default_rng(self._seq)

    def spawn(self, n: int) -> List[RandomSource]:
        """Derive n independent child sources."""
        return [RandomSource(child) for child in self._seq.spawn(n)]

    def child_seed(self) -> int:
        """A 32-bit integer summarizing this source, for reporting."""
        return int(self._seq.generate_state(1)[0])

    def __repr__(self) -> str:
        return f"RandomSource(entropy={self.entropy}, spawn_key={self._seq.spawn_key})"


def as_generator(rng: SeedLike = None) -> np.random.Generator:
    """
    Resolve a seed-like argument into a numpy Generator.

    A Generator is returned unchanged so callers can share one stream
    across several operations.
    """
    if isinstance(rng, np.random.Generator):
        return rng
    if isinstance(rng, RandomSource):
        return rng.generator()
    return np.random.default_rng(rng)


def as_source(seed: SeedLike = None) -> RandomSource:
    """Resolve a seed-like argument into a RandomSource."""
    if isinstance(seed, RandomSource):
        return seed
    if isinstance(seed, np.random.Generator):
        # Draw a root seed from the generator so its stream still advances
        return RandomSource(int(seed.integers(0, 2**63 - 1)))
    return RandomSource(seed)


def spawn_sources(seed: SeedLike, n: int) -> List[RandomSource]:
    """Derive n independent child sources from a master seed."""
    return as_source(seed).spawn(n)
