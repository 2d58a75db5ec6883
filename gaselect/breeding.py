from __future__ import annotations

import random
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from deap import tools

from gaselect.errors import InvalidArgument
from gaselect.population import Chromosome

ParentPair = Tuple[Chromosome, Chromosome]
BreedingOperator = Callable[[Chromosome, Chromosome], Iterable[Any]]


def _unique(children: Iterable[Chromosome]) -> List[Chromosome]:
    return list(dict.fromkeys(children))


def cx_k_point(ind1: List[int], ind2: List[int], k: int) -> Tuple[List[int], List[int]]:
    """K-point crossover for sequences (in-place). Segments alternate A, B, A, ... in ind1."""
    size = min(len(ind1), len(ind2))
    if size <= 1 or k <= 0:
        return ind1, ind2
    points = sorted(random.sample(range(1, size), k))
    toggle = False
    last = 0
    for pt in points + [size]:
        if toggle:
            ind1[last:pt], ind2[last:pt] = ind2[last:pt], ind1[last:pt]
        toggle = not toggle
        last = pt
    return ind1, ind2


class Breeder:
    def breed(self, parents: ParentPair) -> List[Chromosome]:
        raise NotImplementedError


class CrossoverBreeder(Breeder):
    """Default operator: n_splits-point crossover (0 copies the parents), then per-gene bit-flip mutation."""

    def __init__(self, C: int, n_splits: int = 2, mutation_rate: float = 0.01):
        if int(C) <= 0:
            raise InvalidArgument(f"Chromosome length C must be positive, got {C}")
        if int(n_splits) < 0 or int(n_splits) >= int(C):
            raise InvalidArgument(f"n_splits must lie in [0, C-1] = [0, {int(C) - 1}], got {n_splits}")
        if not 0.0 <= float(mutation_rate) <= 1.0:
            raise InvalidArgument(f"mutation_rate must lie in [0, 1], got {mutation_rate}")
        self.C = int(C)
        self.n_splits = int(n_splits)
        self.mutation_rate = float(mutation_rate)

    def breed(self, parents: ParentPair) -> List[Chromosome]:
        parent_a, parent_b = parents
        if len(parent_a) != self.C or len(parent_b) != self.C:
            raise InvalidArgument(f"Parents must have length C={self.C}")
        child1, child2 = cx_k_point(list(parent_a.bits), list(parent_b.bits), self.n_splits)
        children = []
        for child in (child1, child2):
            (mutant,) = tools.mutFlipBit(child, indpb=self.mutation_rate)
            children.append(Chromosome.from_bits(mutant))
        return _unique(children)


class CustomBreeder(Breeder):
    """Delegates to a user operator op(parent_a, parent_b) returning chromosomes or 0/1 sequences."""

    def __init__(self, op: BreedingOperator, C: int):
        if not callable(op):
            raise InvalidArgument(f"Breeding operator must be callable, got {op!r}")
        self.op = op
        self.C = int(C)

    def breed(self, parents: ParentPair) -> List[Chromosome]:
        children = []
        for child in self.op(*parents):
            chrom = child if isinstance(child, Chromosome) else Chromosome.from_bits(child)
            if len(chrom) != self.C:
                raise InvalidArgument(f"Breeding operator returned a child of length {len(chrom)}, expected {self.C}")
            children.append(chrom)
        return _unique(children)


def make_breeder(C: int, n_splits: int = 2, op: Optional[BreedingOperator] = None, mutation_rate: float = 0.01) -> Breeder:
    if op is not None:
        return CustomBreeder(op, C)
    return CrossoverBreeder(C, n_splits=n_splits, mutation_rate=mutation_rate)


def breed(
    parents: ParentPair,
    C: int,
    n_splits: int = 2,
    op: Optional[BreedingOperator] = None,
    mutation_rate: float = 0.01,
) -> List[Chromosome]:
    return make_breeder(C, n_splits, op, mutation_rate).breed(parents)


def breed_all(pairs: Sequence[ParentPair], breeder: Breeder) -> List[Chromosome]:
    """Children of every pair, deduped across pairs."""
    return _unique(child for pair in pairs for child in breeder.breed(pair))
