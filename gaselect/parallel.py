"""
Bounded worker pool for fitness evaluation.

Workers are initialized once with the evaluation context (X, y, family,
criterion) so each task only ships a chromosome's bits. Results come back
through a blocking map; the parent owns the fitness cache.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import os
import pickle
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from gaselect.errors import WorkerFailure
from gaselect.fitness import score_subset

logger = logging.getLogger(__name__)

# --- Global worker evaluation context for multiprocessing ---
_EVAL_CTX: Dict[str, Any] = {}


def _init_eval_worker(ctx: Dict[str, Any]) -> None:
    global _EVAL_CTX
    _EVAL_CTX = dict(ctx)


def _evaluate_bits_picklable(bits: Tuple[int, ...]) -> float:
    """Picklable task that reads data from the global worker context."""
    return score_subset(
        np.array(bits, dtype=bool),
        _EVAL_CTX["X"],
        _EVAL_CTX["y"],
        _EVAL_CTX["family"],
        _EVAL_CTX["criterion"],
    )


class EvaluationPool:
    def __init__(self, context: Dict[str, Any], n_procs: Optional[int] = None) -> None:
        self.n_procs = max(int(n_procs or os.cpu_count() or 1), 1)
        self._pool = mp.Pool(processes=self.n_procs, initializer=_init_eval_worker, initargs=(context,))

    def map(self, bits: Sequence[Tuple[int, ...]]) -> List[float]:
        try:
            return self._pool.map(_evaluate_bits_picklable, list(bits))
        except Exception as exc:
            raise WorkerFailure(f"parallel fitness evaluation failed: {exc!r}") from exc

    def close(self) -> None:
        self._pool.close()
        self._pool.join()

    def __enter__(self) -> "EvaluationPool":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def start_pool(context: Dict[str, Any], n_procs: Optional[int] = None) -> Optional[EvaluationPool]:
    """
    Start a pool, or return None (serial evaluation) when processes cannot be created.

    Under the spawn and forkserver start methods the context is pickled into
    each worker, so an unpicklable criterion (a lambda or a locally defined
    fit_func) also falls back to serial evaluation.
    """
    try:
        pool = EvaluationPool(context, n_procs)
    except (OSError, ValueError, pickle.PicklingError, AttributeError, TypeError) as exc:
        logger.warning("[PARALLEL] Failed to start pool (%s); falling back to serial evaluation", exc)
        return None
    logger.info("[PARALLEL] Enabled with n_procs=%d", pool.n_procs)
    return pool
