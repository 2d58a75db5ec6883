"""
Genetic Algorithm predictor subset selection for generalized linear models.

Searches the space of predictor subsets for the one minimizing a model-fit
criterion (AIC by default, lower is better). Each generation is ranked by
fitness, parents are chosen by rank-proportional or tournament selection,
children are bred by multi-point crossover and bit-flip mutation, and a
proportion G of the worst old individuals is replaced by the best children.
The best individual seen over all iterations is returned.

Example:
    result = select(X, y, selection="tournament", K=5, G=0.8)
    result.survivor      # names of the selected predictors
    result.history()     # per-generation statistics as a DataFrame
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from deap import tools

from gaselect.breeding import breed_all, make_breeder
from gaselect.config import SearchConfig
from gaselect.criteria import check_response, resolve_criterion, resolve_family
from gaselect.errors import InvalidArgument
from gaselect.fitness import FitnessCache, FitnessEvaluator, ranked_models
from gaselect.parallel import start_pool
from gaselect.population import Chromosome, Generation, Individual, initialize_parents, population_diversity
from gaselect.replacement import generation_gap
from gaselect.selection import TournamentSelector, make_selector

logger = logging.getLogger(__name__)

# Upper bound on extra draws (as a multiple of P) when topping up the initial population
_INIT_DRAW_FACTOR = 20


# -----------------------------
# Input validation
# -----------------------------


@dataclass
class Dataset:
    X: np.ndarray
    y: np.ndarray
    feature_names: List[str]


def prepare_inputs(X: Any, y: Any) -> Dataset:
    """Check shapes and types of the design matrix and response; raise InvalidArgument on bad input."""
    if isinstance(X, pd.DataFrame):
        df = X
    else:
        arr = np.asarray(X)
        if arr.ndim != 2:
            raise InvalidArgument(f"X must be 2-dimensional, got shape {arr.shape}")
        df = pd.DataFrame(arr, columns=[f"x{i}" for i in range(arr.shape[1])])
    if df.shape[1] == 0:
        raise InvalidArgument("X has no predictor columns")

    non_numeric = [str(c) for c in df.columns if not pd.api.types.is_numeric_dtype(df[c])]
    if non_numeric:
        raise InvalidArgument(f"Non-numeric predictor columns: {', '.join(non_numeric)}")
    if df.isna().to_numpy().any():
        raise InvalidArgument("X contains missing values")

    y_arr = np.asarray(y)
    if y_arr.ndim == 2 and y_arr.shape[1] == 1:
        y_arr = y_arr[:, 0]
    if y_arr.ndim != 1:
        raise InvalidArgument(f"y must be 1-dimensional, got shape {y_arr.shape}")
    if len(y_arr) != len(df):
        raise InvalidArgument(f"y has {len(y_arr)} entries but X has {len(df)} rows")
    if not pd.api.types.is_numeric_dtype(y_arr.dtype):
        raise InvalidArgument(f"y must be numeric, got dtype {y_arr.dtype}")
    if pd.isna(y_arr).any():
        raise InvalidArgument("y contains missing values")

    X_arr = df.to_numpy(dtype=float)
    y_arr = y_arr.astype(float)
    if not np.isfinite(X_arr).all() or not np.isfinite(y_arr).all():
        raise InvalidArgument("Inputs contain infinite values")
    return Dataset(X=X_arr, y=y_arr, feature_names=[str(c) for c in df.columns])


# -----------------------------
# Result
# -----------------------------


@dataclass
class SelectionResult:
    survivor: List[str]
    chromosome: Chromosome
    fitness: float
    num_iteration: int
    first_seen: int
    logbook: tools.Logbook = field(repr=False)
    cache_stats: Dict[str, int] = field(default_factory=dict, repr=False)

    @property
    def selected_indices(self) -> List[int]:
        return self.chromosome.indices

    def history(self) -> pd.DataFrame:
        return pd.DataFrame(self.logbook)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "best_fitness": self.fitness,
            "selected_indices": self.selected_indices,
            "selected_features": list(self.survivor),
            "num_selected": len(self.survivor),
            "total_features": len(self.chromosome),
            "num_iteration": self.num_iteration,
            "first_seen": self.first_seen,
            "cache": dict(self.cache_stats),
        }


# -----------------------------
# GA search
# -----------------------------


class SearchState(Enum):
    INITIALIZING = "initializing"
    EVALUATING = "evaluating"
    SELECTING = "selecting"
    BREEDING = "breeding"
    REPLACING = "replacing"
    TERMINATED = "terminated"


class GeneticSearch:
    """
    One GA subset search over fixed data.

    All configuration and input checks happen in the constructor, so an
    invalid setup raises InvalidArgument before any generation is built. The
    fitness cache and the optional worker pool live only for one run().
    """

    def __init__(self, X: Any, y: Any, config: Optional[SearchConfig] = None):
        self.data = prepare_inputs(X, y)
        self.config = (config or SearchConfig()).resolved(self.data.X.shape[1])
        cfg = self.config
        self.family = resolve_family(cfg.family, cfg.link)
        check_response(self.data.y, self.family)
        self.criterion = resolve_criterion(cfg.fit_func)
        self.criterion.check(self.family)
        self.selector = make_selector(cfg.selection, cfg.K, cfg.randomness)
        self.breeder = make_breeder(cfg.C, cfg.n_splits, cfg.op, cfg.mutation_rate)
        self.feature_names = self.data.feature_names[: cfg.C]
        self.state = SearchState.INITIALIZING

    def _initial_population(self) -> List[Chromosome]:
        """P distinct random chromosomes (fewer only if the draw budget runs out)."""
        cfg = self.config
        population = list(dict.fromkeys(initialize_parents(cfg.C, cfg.P, cfg.init_prob)))
        draws = cfg.P
        while len(population) < cfg.P and draws < _INIT_DRAW_FACTOR * cfg.P:
            missing = cfg.P - len(population)
            population = list(dict.fromkeys(population + initialize_parents(cfg.C, missing, cfg.init_prob)))
            draws += missing
        if len(population) < cfg.P:
            logger.warning(
                "[GA] Only %d distinct initial chromosomes after %d draws (P=%d, init_prob=%s)",
                len(population), draws, cfg.P, cfg.init_prob,
            )
        return population

    def _record(
        self,
        logbook: tools.Logbook,
        stats: tools.Statistics,
        gen: int,
        generation: Generation,
        nevals: int,
        nchildren: int,
        best: Individual,
    ) -> None:
        record = stats.compile(generation)
        logbook.record(
            gen=gen,
            nevals=nevals,
            nchildren=nchildren,
            diversity=population_diversity(generation.chromosomes),
            best_ever=best.fitness,
            **record,
        )
        logger.debug(
            "[GA] gen=%d nevals=%d nchildren=%d min=%.4f best_ever=%.4f",
            gen, nevals, nchildren, record["min"], best.fitness,
        )

    def run(self) -> SelectionResult:
        cfg = self.config
        if cfg.seed is not None:
            random.seed(cfg.seed)
            np.random.seed(cfg.seed)

        self.state = SearchState.INITIALIZING
        cache = FitnessCache()
        evaluator = FitnessEvaluator(self.data.X[:, : cfg.C], self.data.y, self.family, self.criterion, cache)

        stats = tools.Statistics(lambda ind: ind.fitness)
        stats.register("min", np.min)
        stats.register("median", np.median)
        stats.register("max", np.max)
        stats.register("degenerate", lambda vals: int(np.isinf(vals).sum()))
        logbook = tools.Logbook()
        logbook.header = ["gen", "nevals", "nchildren", "min", "median", "max", "degenerate", "diversity", "best_ever"]

        logger.info(
            "[GA] Starting search: C=%d P=%d G=%.3f selection=%s criterion=%s max_iter=%d parallel=%s",
            cfg.C, cfg.P, cfg.G, self.selector.name, self.criterion.name, cfg.max_iter, cfg.parallel,
        )
        pool = start_pool(evaluator.context(), cfg.n_procs) if cfg.parallel else None
        try:
            initial = self._initial_population()
            if isinstance(self.selector, TournamentSelector) and len(initial) < self.selector.k:
                raise InvalidArgument(
                    f"Only {len(initial)} distinct initial chromosomes, too few for tournaments of K={self.selector.k}"
                )

            self.state = SearchState.EVALUATING
            old_gen = ranked_models(initial, evaluator, pool=pool)
            best = old_gen.best
            best_i = 0
            self._record(logbook, stats, 0, old_gen, evaluator.n_fits, 0, best)

            i = 0
            while i < cfg.max_iter:
                self.state = SearchState.SELECTING
                parents = self.selector.select_parents(old_gen, cfg.n_pairs)

                self.state = SearchState.BREEDING
                children = breed_all(parents, self.breeder)

                self.state = SearchState.EVALUATING
                fits_before = evaluator.n_fits
                ranked_new = ranked_models(children, evaluator, pool=pool)

                self.state = SearchState.REPLACING
                next_gen = generation_gap(old_gen, ranked_new, cfg.G)
                i += 1
                if next_gen.best.fitness < best.fitness:
                    best = next_gen.best
                    best_i = i
                self._record(logbook, stats, i, next_gen, evaluator.n_fits - fits_before, len(children), best)
                old_gen = next_gen

            self.state = SearchState.TERMINATED
        finally:
            if pool is not None:
                pool.close()

        logger.info(
            "[GA] Finished %d iterations: best %s=%.4f with %d/%d predictors, first seen at iteration %d",
            i, self.criterion.name, best.fitness, best.chromosome.n_selected, cfg.C, best_i,
        )
        return SelectionResult(
            survivor=[self.feature_names[j] for j in best.chromosome.indices],
            chromosome=best.chromosome,
            fitness=best.fitness,
            num_iteration=i,
            first_seen=best_i,
            logbook=logbook,
            cache_stats=cache.stats(),
        )


def select(X: Any, y: Any, config: Optional[SearchConfig] = None, **options: Any) -> SelectionResult:
    """
    Run a GA subset search and return the best predictor subset seen.

    Options (keyword overrides of SearchConfig, which they take precedence over):
      C: chromosome length, default number of predictors (first C columns are candidates)
      family, link: statsmodels GLM family ("gaussian", "binomial", ...) and optional link
      selection: "tournament" (default) or "proportional"
      K: tournament size, default 2
      randomness: proportional selection draws the second parent uniformly, default True
      P: population size, default 2 * C
      G: proportion of the worst old individuals replaced each iteration, default 1 / P
      n_splits: crossover points, default 2
      op: custom breeding operator op(parent_a, parent_b) -> children
      fit_func: "aic" (default), "bic", "deviance", "cv", or a callable on fitted GLM results
      max_iter: iterations to run, default 100
      parallel, n_procs: evaluate fitness in a process pool
      mutation_rate, init_prob, n_pairs, seed
    """
    base = config or SearchConfig()
    try:
        cfg = replace(base, **options)
    except TypeError as exc:
        raise InvalidArgument(f"Unknown option: {exc}") from exc
    return GeneticSearch(X, y, cfg).run()
