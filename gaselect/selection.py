"""
Parent selection over a ranked Generation.

Two strategies share the select_parents(generation, n_pairs) contract:
- ProportionalSelector: linear rank weighting (roulette over ranks).
- TournamentSelector: best of k individuals drawn without replacement.
"""

from __future__ import annotations

import random
from typing import List, Tuple

import numpy as np
import pandas as pd

from gaselect.errors import InvalidArgument
from gaselect.population import Chromosome, Generation

ParentPair = Tuple[Chromosome, Chromosome]


def rank_weights(fitness: np.ndarray) -> np.ndarray:
    """
    Selection probabilities from fitness values (lower fitness -> higher weight).

    Individuals are ranked with the worst getting rank 1 and the best rank P;
    tied fitness values share their average rank, so the weight is a strictly
    decreasing function of fitness. Weights are rank / sum(ranks).
    """
    fitness = np.asarray(fitness, dtype=float)
    if fitness.size == 0:
        raise InvalidArgument("Cannot compute selection weights for an empty generation")
    ranks = pd.Series(fitness).rank(method="average", ascending=False).to_numpy()
    return ranks / ranks.sum()


class Selector:
    name = "selector"

    def select_parents(self, generation: Generation, n_pairs: int) -> List[ParentPair]:
        raise NotImplementedError


class ProportionalSelector(Selector):
    """Rank-weighted roulette. With randomness=True the second parent is drawn uniformly."""

    name = "proportional"

    def __init__(self, randomness: bool = True):
        self.randomness = bool(randomness)

    def select_parents(self, generation: Generation, n_pairs: int) -> List[ParentPair]:
        if len(generation) == 0:
            raise InvalidArgument("Cannot select parents from an empty generation")
        population = generation.chromosomes
        weights = rank_weights(generation.fitness).tolist()
        pairs: List[ParentPair] = []
        for _ in range(int(n_pairs)):
            (parent_a,) = random.choices(population, weights=weights, k=1)
            if self.randomness:
                parent_b = random.choice(population)
            else:
                (parent_b,) = random.choices(population, weights=weights, k=1)
            pairs.append((parent_a, parent_b))
        return pairs


class TournamentSelector(Selector):
    name = "tournament"

    def __init__(self, k: int = 2):
        if int(k) < 1:
            raise InvalidArgument(f"Tournament size K must be at least 1, got {k}")
        self.k = int(k)

    def tournament(self, generation: Generation) -> Chromosome:
        """Winner of one tournament: lowest fitness in a k-sample, earliest position on ties."""
        if self.k > len(generation):
            raise InvalidArgument(f"Tournament size K={self.k} exceeds generation size {len(generation)}")
        # the generation is sorted, so the smallest sampled position is the best contestant
        winner = min(random.sample(range(len(generation)), self.k))
        return generation[winner].chromosome

    def select_parents(self, generation: Generation, n_pairs: int) -> List[ParentPair]:
        return [(self.tournament(generation), self.tournament(generation)) for _ in range(int(n_pairs))]


def make_selector(selection: str, K: int = 2, randomness: bool = True) -> Selector:
    name = (selection or "").strip().lower()
    if name == "proportional":
        return ProportionalSelector(randomness=randomness)
    if name == "tournament":
        return TournamentSelector(k=K)
    raise InvalidArgument(f"Unsupported selection '{selection}'. Choose proportional|tournament")
