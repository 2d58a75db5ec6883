"""
Model-fit criteria used as GA fitness.

A criterion takes the selected predictor columns, the response and a
statsmodels GLM family, and returns a score where lower is better. The
default fits a GLM with an intercept and returns its AIC. A cross-validated
alternative scores the subset with scikit-learn instead.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Union

import numpy as np
import statsmodels.api as sm
from sklearn.linear_model import GammaRegressor, LinearRegression, LogisticRegression, PoissonRegressor, TweedieRegressor
from sklearn.model_selection import KFold, StratifiedKFold, cross_val_score
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler
from statsmodels.genmod import families
from statsmodels.genmod.families import links

from gaselect.errors import DegenerateModel, InvalidArgument


# -----------------------------
# Family / link resolution
# -----------------------------


_FAMILIES: Dict[str, type] = {
    "gaussian": families.Gaussian,
    "binomial": families.Binomial,
    "poisson": families.Poisson,
    "gamma": families.Gamma,
    "inverse_gaussian": families.InverseGaussian,
    "negative_binomial": families.NegativeBinomial,
    "tweedie": families.Tweedie,
}

_LINKS: Dict[str, type] = {
    "identity": links.Identity,
    "log": links.Log,
    "logit": links.Logit,
    "probit": links.Probit,
    "cloglog": links.CLogLog,
    "inverse": links.InversePower,
    "inverse_squared": links.InverseSquared,
    "sqrt": links.Sqrt,
}


def resolve_family(family: Any = "gaussian", link: Optional[str] = None) -> families.Family:
    """Build a statsmodels family from a name, class or instance, optionally overriding its link."""
    if isinstance(family, families.Family):
        cls = type(family)
        if link is None:
            return family
    elif isinstance(family, type) and issubclass(family, families.Family):
        cls = family
    elif isinstance(family, str):
        cls = _FAMILIES.get(family.strip().lower())
        if cls is None:
            raise InvalidArgument(f"Unsupported family '{family}'. Choose {'|'.join(_FAMILIES)}")
    else:
        raise InvalidArgument(f"family must be a name, a statsmodels Family class or instance, got {family!r}")

    if link is None:
        return cls()
    link_cls = _LINKS.get(str(link).strip().lower())
    if link_cls is None:
        raise InvalidArgument(f"Unsupported link '{link}'. Choose {'|'.join(_LINKS)}")
    try:
        return cls(link=link_cls())
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"Link '{link}' is not valid for family {cls.__name__}: {exc}") from exc


def family_name(family: families.Family) -> str:
    for name, cls in _FAMILIES.items():
        if type(family) is cls:
            return name
    return type(family).__name__.lower()


# response domain per family: (lower bound, lower inclusive, upper bound)
_RESPONSE_DOMAIN = {
    "binomial": (0.0, True, 1.0),
    "poisson": (0.0, True, None),
    "negative_binomial": (0.0, True, None),
    "tweedie": (0.0, True, None),
    "gamma": (0.0, False, None),
    "inverse_gaussian": (0.0, False, None),
}


def check_response(y: np.ndarray, family: families.Family) -> None:
    """Raise InvalidArgument when y holds values the family cannot model."""
    name = family_name(family)
    domain = _RESPONSE_DOMAIN.get(name)
    if domain is None:
        return
    low, inclusive, high = domain
    y = np.asarray(y, dtype=float)
    too_low = y < low if inclusive else y <= low
    too_high = y > high if high is not None else np.zeros_like(too_low)
    bad = int(np.count_nonzero(too_low | too_high))
    if bad:
        bounds = f"[{low}, {high}]" if high is not None else (f">= {low}" if inclusive else f"> {low}")
        raise InvalidArgument(f"{bad} response values fall outside the {name} domain {bounds}")


# -----------------------------
# GLM criteria
# -----------------------------


def fit_glm(X_sel: np.ndarray, y: np.ndarray, family: families.Family):
    """Fit a GLM with intercept on the selected columns; DegenerateModel if that is impossible."""
    if X_sel.ndim != 2 or X_sel.shape[1] == 0:
        raise DegenerateModel("empty predictor subset")
    design = sm.add_constant(X_sel, has_constant="add")
    try:
        return sm.GLM(y, design, family=family).fit()
    except (np.linalg.LinAlgError, ValueError, FloatingPointError, ZeroDivisionError) as exc:
        raise DegenerateModel(f"GLM fit failed: {exc}") from exc


def aic(result) -> float:
    return float(result.aic)


def bic(result) -> float:
    # llf-based BIC; statsmodels' plain .bic is deviance-based
    return float(result.bic_llf)


def deviance(result) -> float:
    return float(result.deviance)


_GLM_STATS: Dict[str, Callable[[Any], float]] = {
    "aic": aic,
    "bic": bic,
    "deviance": deviance,
}


class Criterion:
    """Fitness criterion: (selected columns, response, family) -> score, lower is better."""

    name = "criterion"

    def check(self, family: families.Family) -> None:
        """Raise InvalidArgument when this criterion cannot score models of the given family."""

    def __call__(self, X_sel: np.ndarray, y: np.ndarray, family: families.Family) -> float:
        raise NotImplementedError


class GLMCriterion(Criterion):
    """Fit a statsmodels GLM and apply fit_func to the results (default AIC).

    fit_func may be one of "aic", "bic", "deviance" or any callable taking a
    fitted GLM results object. Callables must be importable module-level
    functions when evaluation runs in a worker pool.
    """

    def __init__(self, fit_func: Union[str, Callable[[Any], float]] = "aic"):
        if isinstance(fit_func, str):
            key = fit_func.strip().lower()
            if key not in _GLM_STATS:
                raise InvalidArgument(f"Unsupported criterion '{fit_func}'. Choose {'|'.join(_GLM_STATS)}|cv")
            self.fit_func = _GLM_STATS[key]
            self.name = key
        elif callable(fit_func):
            self.fit_func = fit_func
            self.name = getattr(fit_func, "__name__", "custom")
        else:
            raise InvalidArgument(f"fit_func must be a name or a callable, got {fit_func!r}")

    def __call__(self, X_sel: np.ndarray, y: np.ndarray, family: families.Family) -> float:
        result = fit_glm(X_sel, y, family)
        value = float(self.fit_func(result))
        if not np.isfinite(value):
            raise DegenerateModel(f"{self.name} is not finite ({value})")
        return value

    def __repr__(self) -> str:
        return f"GLMCriterion({self.name})"


# -----------------------------
# Cross-validated criterion
# -----------------------------


_DEFAULT_SCORING = {
    "gaussian": "neg_mean_squared_error",
    "binomial": "neg_log_loss",
    "poisson": "neg_mean_poisson_deviance",
    "gamma": "neg_mean_gamma_deviance",
    "inverse_gaussian": "neg_mean_squared_error",
    "tweedie": "neg_mean_squared_error",
}


def make_estimator(name: str) -> Pipeline:
    name = name.lower()
    if name == "gaussian":
        est = LinearRegression()
    elif name == "binomial":
        est = LogisticRegression(max_iter=200, solver="liblinear")
    elif name == "poisson":
        est = PoissonRegressor(max_iter=300)
    elif name == "gamma":
        est = GammaRegressor(max_iter=300)
    elif name == "inverse_gaussian":
        est = TweedieRegressor(power=3, link="log", max_iter=300)
    elif name == "tweedie":
        est = TweedieRegressor(power=1.5, link="log", max_iter=300)
    else:
        raise InvalidArgument(f"Cross-validated criterion does not support family '{name}'")
    return Pipeline([
        ("scaler", StandardScaler()),
        ("est", est),
    ])


class CrossValidatedCriterion(Criterion):
    """
    Score a subset with k-fold cross-validation of the matching scikit-learn estimator.

    scikit-learn scorers are greater-is-better, so the mean fold score is
    negated. The splitter is seeded, which keeps the score a pure function of
    the subset.
    """

    name = "cv"

    def __init__(self, scoring: Optional[str] = None, cv: int = 5, random_state: int = 0):
        if int(cv) < 2:
            raise InvalidArgument(f"cv must be at least 2, got {cv}")
        self.scoring = scoring
        self.cv = int(cv)
        self.random_state = int(random_state)

    def check(self, family: families.Family) -> None:
        make_estimator(family_name(family))

    def __call__(self, X_sel: np.ndarray, y: np.ndarray, family: families.Family) -> float:
        if X_sel.ndim != 2 or X_sel.shape[1] == 0:
            raise DegenerateModel("empty predictor subset")
        name = family_name(family)
        est = make_estimator(name)
        scoring = self.scoring or _DEFAULT_SCORING.get(name, "neg_mean_squared_error")
        if name == "binomial":
            splitter = StratifiedKFold(n_splits=self.cv, shuffle=True, random_state=self.random_state)
        else:
            splitter = KFold(n_splits=self.cv, shuffle=True, random_state=self.random_state)
        try:
            scores = cross_val_score(est, X_sel, y, scoring=scoring, cv=splitter, error_score="raise")
        except (ValueError, np.linalg.LinAlgError) as exc:
            raise DegenerateModel(f"cross-validation failed: {exc}") from exc
        value = -float(np.mean(scores))
        if not np.isfinite(value):
            raise DegenerateModel(f"cross-validated score is not finite ({value})")
        return value

    def __repr__(self) -> str:
        return f"CrossValidatedCriterion(scoring={self.scoring!r}, cv={self.cv})"


def resolve_criterion(fit_func: Union[str, Criterion, Callable[[Any], float]] = "aic") -> Criterion:
    if isinstance(fit_func, Criterion):
        return fit_func
    if isinstance(fit_func, str) and fit_func.strip().lower() == "cv":
        return CrossValidatedCriterion()
    return GLMCriterion(fit_func)
