from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from gaselect.criteria import Criterion
from gaselect.errors import DegenerateModel
from gaselect.population import Chromosome, Generation, Individual

logger = logging.getLogger(__name__)


def score_subset(mask: np.ndarray, X: np.ndarray, y: np.ndarray, family: Any, criterion: Criterion) -> float:
    """Fitness of one predictor subset; empty or unfittable subsets score +inf."""
    mask = np.asarray(mask, dtype=bool)
    if not mask.any():
        return math.inf
    try:
        return float(criterion(X[:, mask], y, family))
    except DegenerateModel as exc:
        logger.debug("[GA] Degenerate subset %s: %s", np.flatnonzero(mask).tolist(), exc)
        return math.inf


class FitnessCache:
    """Memo table from chromosome key to fitness, scoped to a single search."""

    def __init__(self) -> None:
        self._store: Dict[Tuple[int, ...], float] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: Tuple[int, ...]) -> Optional[float]:
        value = self._store.get(key)
        if value is None:
            self.misses += 1
        else:
            self.hits += 1
        return value

    def put(self, key: Tuple[int, ...], value: float) -> None:
        self._store[key] = float(value)

    def __contains__(self, key: Tuple[int, ...]) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)

    def stats(self) -> Dict[str, int]:
        return {"size": len(self._store), "hits": self.hits, "misses": self.misses}


class FitnessEvaluator:
    """Scores chromosomes against fixed (X, y, family, criterion), memoizing through a FitnessCache."""

    def __init__(
        self,
        X: np.ndarray,
        y: np.ndarray,
        family: Any,
        criterion: Criterion,
        cache: Optional[FitnessCache] = None,
    ) -> None:
        self.X = np.asarray(X, dtype=float)
        self.y = np.asarray(y, dtype=float)
        self.family = family
        self.criterion = criterion
        self.cache = cache if cache is not None else FitnessCache()
        self.n_fits = 0

    def context(self) -> Dict[str, Any]:
        """Read-only inputs a worker process needs to score subsets."""
        return {"X": self.X, "y": self.y, "family": self.family, "criterion": self.criterion}

    def evaluate(self, chromosome: Chromosome) -> float:
        cached = self.cache.get(chromosome.key)
        if cached is not None:
            return cached
        value = score_subset(chromosome.mask, self.X, self.y, self.family, self.criterion)
        self.n_fits += 1
        self.cache.put(chromosome.key, value)
        return value

    def evaluate_many(self, chromosomes: Sequence[Chromosome], pool=None) -> List[float]:
        """Fitness for distinct chromosomes; cache misses go through pool.map when a pool is given."""
        values: Dict[Tuple[int, ...], float] = {}
        missing: List[Chromosome] = []
        for chrom in chromosomes:
            cached = self.cache.get(chrom.key)
            if cached is None:
                missing.append(chrom)
            else:
                values[chrom.key] = cached

        if missing:
            if pool is not None:
                fresh = pool.map([c.bits for c in missing])
            else:
                fresh = [score_subset(c.mask, self.X, self.y, self.family, self.criterion) for c in missing]
            for chrom, value in zip(missing, fresh):
                self.cache.put(chrom.key, value)
                values[chrom.key] = float(value)
            self.n_fits += len(missing)
        return [values[c.key] for c in chromosomes]


def ranked_models(chromosomes: Iterable[Chromosome], evaluator: FitnessEvaluator, pool=None) -> Generation:
    """Dedupe chromosomes (first occurrence wins), score them and return them best first."""
    unique = list(dict.fromkeys(chromosomes))
    fitness = evaluator.evaluate_many(unique, pool=pool)
    return Generation(Individual(chrom, fit) for chrom, fit in zip(unique, fitness))
