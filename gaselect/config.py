from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Callable, Dict, Optional, Union

from gaselect.errors import InvalidArgument

logger = logging.getLogger(__name__)


@dataclass
class SearchConfig:
    """
    Settings for one GA subset search.

    Data-dependent defaults (C, P, G, n_pairs) stay None until resolved()
    is called with the number of available predictors:
      C = n_predictors, P = 2 * C, G = 1 / P, n_pairs = ceil(P / 2).
    """

    C: Optional[int] = None
    family: Any = "gaussian"
    link: Optional[str] = None
    selection: str = "tournament"
    K: int = 2
    randomness: bool = True
    P: Optional[int] = None
    G: Optional[float] = None
    n_splits: int = 2
    op: Optional[Callable[..., Any]] = None
    fit_func: Union[str, Callable[..., float], Any] = "aic"
    max_iter: int = 100
    parallel: bool = False
    n_procs: Optional[int] = None
    mutation_rate: float = 0.01
    init_prob: float = 0.5
    n_pairs: Optional[int] = None
    seed: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("[CONFIG] Ignoring unknown settings: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        # callables and statsmodels objects are reported by name
        for key in ("family", "op", "fit_func"):
            val = out[key]
            if val is not None and not isinstance(val, str):
                out[key] = getattr(val, "__name__", None) or getattr(val, "name", None) or type(val).__name__
        return out

    def resolved(self, n_features: int) -> "SearchConfig":
        """Copy with data-dependent defaults filled in, validated against n_features."""
        if int(n_features) <= 0:
            raise InvalidArgument("Design matrix has no predictor columns")
        C = int(self.C) if self.C is not None else int(n_features)
        if C <= 0 or C > int(n_features):
            raise InvalidArgument(f"Chromosome length C must lie in [1, {n_features}], got {self.C}")
        P = int(self.P) if self.P is not None else 2 * C
        if C < 63 and P > 2 ** C:
            logger.warning("[CONFIG] Only %d distinct subsets of %d predictors; capping P=%d to %d", 2 ** C, C, P, 2 ** C)
            P = 2 ** C
        G = float(self.G) if self.G is not None else (1.0 / P if P > 0 else 0.0)
        n_pairs = int(self.n_pairs) if self.n_pairs is not None else max((P + 1) // 2, 1)
        cfg = replace(self, C=C, P=P, G=G, n_pairs=n_pairs)
        cfg.validate()
        return cfg

    def validate(self) -> None:
        """Eager checks for a resolved configuration; raises InvalidArgument."""
        if self.C is None or self.P is None or self.G is None or self.n_pairs is None:
            raise InvalidArgument("Configuration must be resolved before validation")
        if self.C <= 0:
            raise InvalidArgument(f"Chromosome length C must be positive, got {self.C}")
        if self.P <= 0:
            raise InvalidArgument(f"Population size P must be positive, got {self.P}")
        if not 0.0 <= self.G <= 1.0:
            raise InvalidArgument(f"Generation gap G must lie in [0, 1], got {self.G}")
        selection = (self.selection or "").strip().lower()
        tournament = selection == "tournament"
        if selection not in ("proportional", "tournament"):
            raise InvalidArgument(f"Unsupported selection '{self.selection}'. Choose proportional|tournament")
        if tournament and not 1 <= int(self.K) <= self.P:
            raise InvalidArgument(f"Tournament size K must lie in [1, P={self.P}], got {self.K}")
        if self.op is None and not 0 <= int(self.n_splits) < self.C:
            raise InvalidArgument(f"n_splits must lie in [0, C-1] = [0, {self.C - 1}], got {self.n_splits}")
        if self.op is not None and not callable(self.op):
            raise InvalidArgument(f"Breeding operator must be callable, got {self.op!r}")
        if int(self.max_iter) < 0:
            raise InvalidArgument(f"max_iter must be non-negative, got {self.max_iter}")
        if not 0.0 <= float(self.mutation_rate) <= 1.0:
            raise InvalidArgument(f"mutation_rate must lie in [0, 1], got {self.mutation_rate}")
        if not 0.0 <= float(self.init_prob) <= 1.0:
            raise InvalidArgument(f"init_prob must lie in [0, 1], got {self.init_prob}")
        # init_prob 0 or 1 draws one subset over and over
        if tournament and int(self.K) > 1 and float(self.init_prob) in (0.0, 1.0):
            raise InvalidArgument(
                f"init_prob={self.init_prob} yields a single distinct chromosome, too few for tournaments of K={self.K}"
            )
        if self.n_pairs < 1:
            raise InvalidArgument(f"n_pairs must be positive, got {self.n_pairs}")
        if self.n_procs is not None and int(self.n_procs) < 1:
            raise InvalidArgument(f"n_procs must be positive, got {self.n_procs}")


def _load_json(path: str) -> Dict[str, Any]:
    with open(path, "r") as f:
        return json.load(f)


def load_config(path: str) -> SearchConfig:
    """
    Load a SearchConfig from a JSON object of settings, e.g.
      {"selection": "proportional", "P": 40, "G": 0.25, "max_iter": 50}
    Callables (op, custom fit_func) cannot come from JSON; pass them to select().
    """
    data = _load_json(path)
    if not isinstance(data, dict):
        raise InvalidArgument(f"Config file {path} must contain a JSON object")
    return SearchConfig.from_dict(data)
