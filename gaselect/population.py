from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Sequence, Tuple

import numpy as np

from gaselect.errors import InvalidArgument


@dataclass(frozen=True)
class Chromosome:
    """Candidate predictor subset encoded as a fixed-length tuple of 0/1 bits.

    Two chromosomes are equal iff they select the same subset; the bit tuple
    doubles as the canonical cache key.
    """

    bits: Tuple[int, ...]

    def __post_init__(self) -> None:
        if any(b not in (0, 1) for b in self.bits):
            raise InvalidArgument("Chromosome genes must be 0 or 1")

    @classmethod
    def from_bits(cls, bits: Iterable[int]) -> "Chromosome":
        return cls(tuple(int(b) for b in bits))

    @classmethod
    def from_indices(cls, indices: Iterable[int], length: int) -> "Chromosome":
        bits = [0] * length
        for i in indices:
            if not 0 <= int(i) < length:
                raise InvalidArgument(f"Feature index {i} outside [0, {length})")
            bits[int(i)] = 1
        return cls(tuple(bits))

    @property
    def key(self) -> Tuple[int, ...]:
        return self.bits

    @property
    def indices(self) -> List[int]:
        return [i for i, b in enumerate(self.bits) if b == 1]

    @property
    def n_selected(self) -> int:
        return sum(self.bits)

    @property
    def mask(self) -> np.ndarray:
        return np.array(self.bits, dtype=bool)

    def __len__(self) -> int:
        return len(self.bits)

    def __repr__(self) -> str:
        return f"Chromosome({''.join(map(str, self.bits))})"


@dataclass(frozen=True)
class Individual:
    chromosome: Chromosome
    fitness: float


class Generation:
    """Individuals kept sorted ascending by fitness (best first).

    Sorting is stable, so individuals with equal fitness keep the order they
    were supplied in.
    """

    def __init__(self, individuals: Iterable[Individual]):
        self._individuals: List[Individual] = sorted(individuals, key=lambda ind: ind.fitness)

    def __len__(self) -> int:
        return len(self._individuals)

    def __iter__(self) -> Iterator[Individual]:
        return iter(self._individuals)

    def __getitem__(self, idx):
        return self._individuals[idx]

    @property
    def best(self) -> Individual:
        if not self._individuals:
            raise InvalidArgument("Empty generation has no best individual")
        return self._individuals[0]

    @property
    def fitness(self) -> np.ndarray:
        return np.array([ind.fitness for ind in self._individuals], dtype=float)

    @property
    def chromosomes(self) -> List[Chromosome]:
        return [ind.chromosome for ind in self._individuals]

    def __repr__(self) -> str:
        best = f"{self._individuals[0].fitness:.4f}" if self._individuals else "n/a"
        return f"Generation(size={len(self)}, best={best})"


def initialize_parents(C: int, P: int, init_prob: float = 0.5) -> List[Chromosome]:
    """Draw P random chromosomes of length C; each gene is set with probability init_prob."""
    if int(C) <= 0:
        raise InvalidArgument(f"Chromosome length C must be positive, got {C}")
    if int(P) <= 0:
        raise InvalidArgument(f"Population size P must be positive, got {P}")
    if not 0.0 <= float(init_prob) <= 1.0:
        raise InvalidArgument(f"init_prob must lie in [0, 1], got {init_prob}")
    return [
        Chromosome(tuple(1 if random.random() < init_prob else 0 for _ in range(int(C))))
        for _ in range(int(P))
    ]


def population_diversity(population: Sequence[Chromosome]) -> float:
    """
    Average pairwise Hamming distance fraction across the population, in [0, 1].
    Uses per-bit counts: (1 / (L * N * (N - 1))) * sum_j 2 * n1_j * (N - n1_j)
    where L is the chromosome length and n1_j the number of ones at bit j.
    """
    if not population:
        return float("nan")
    N = len(population)
    L = len(population[0])
    if N < 2 or L == 0:
        return 0.0
    M = np.asarray([c.bits for c in population], dtype=int)
    n1 = M.sum(axis=0)
    pairs_diff_per_bit = 2.0 * n1 * (N - n1)
    return float(pairs_diff_per_bit.sum()) / (N * (N - 1)) / L
