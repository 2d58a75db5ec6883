import json

import numpy as np
import pandas as pd
import pytest

import subset_selection_ga
from gaselect.config import SearchConfig, load_config
from gaselect.criteria import aic, resolve_criterion, resolve_family
from gaselect.errors import InvalidArgument
from gaselect.fitness import FitnessEvaluator
from gaselect.population import Chromosome
from subset_selection_ga import GeneticSearch, SearchState, prepare_inputs, select


def bic_plus_size(result):
    return float(result.bic_llf) + float(len(result.params))


@pytest.fixture
def no_generation(monkeypatch):
    """Fail loudly if a search ever reaches population initialization."""

    def _boom(*args, **kwargs):
        raise AssertionError("a generation was started")

    monkeypatch.setattr(subset_selection_ga, "initialize_parents", _boom)


def test_zero_iterations_returns_best_initial_individual(wide_data):
    X, y = wide_data
    result = select(X, y, C=10, P=8, max_iter=0, seed=3)
    history = result.history()
    assert result.num_iteration == 0
    assert result.first_seen == 0
    assert len(history) == 1
    assert result.fitness == history.loc[0, "min"]
    evaluator = FitnessEvaluator(X, y, resolve_family("gaussian"), resolve_criterion("aic"))
    assert evaluator.evaluate(result.chromosome) == pytest.approx(result.fitness)
    assert result.survivor == [f"x{i}" for i in result.selected_indices]


def test_best_ever_is_monotone_and_beats_initial(regression_data):
    X, y = regression_data
    result = select(X, y, P=10, max_iter=15, seed=1)
    best_ever = result.history()["best_ever"].tolist()
    assert all(b <= a for a, b in zip(best_ever, best_ever[1:]))
    assert result.fitness <= result.history().loc[0, "min"]
    assert result.fitness == best_ever[-1]
    assert result.num_iteration == 15
    assert 0 <= result.first_seen <= 15


def test_finds_true_predictors(regression_data):
    X, y = regression_data
    result = select(X, y, P=12, G=0.5, max_iter=30, seed=0)
    assert {"real1", "real2"} <= set(result.survivor)


def test_proportional_selection_search(regression_data):
    X, y = regression_data
    result = select(X, y, selection="proportional", randomness=False, P=12, G=0.5, max_iter=30, seed=2)
    assert {"real1", "real2"} <= set(result.survivor)


def test_seed_makes_runs_reproducible(regression_data):
    X, y = regression_data
    first = select(X, y, P=8, max_iter=10, seed=99)
    second = select(X, y, P=8, max_iter=10, seed=99)
    assert first.chromosome == second.chromosome
    assert first.first_seen == second.first_seen
    pd.testing.assert_frame_equal(first.history(), second.history())


def test_full_replacement_uses_only_offspring(regression_data, monkeypatch):
    seen = []
    real_gap = subset_selection_ga.generation_gap

    def spy(old, new, G):
        out = real_gap(old, new, G)
        seen.append((old, new, out))
        return out

    monkeypatch.setattr(subset_selection_ga, "generation_gap", spy)
    X, y = regression_data
    select(X, y, P=6, G=1.0, n_pairs=6, max_iter=5, seed=4)
    assert len(seen) == 5
    for old, new, out in seen:
        assert len(out) == len(old)
        if len(new) >= len(old):
            assert out.chromosomes == new.chromosomes[: len(old)]


def test_tournament_larger_than_population_fails_early(regression_data, no_generation):
    X, y = regression_data
    with pytest.raises(InvalidArgument):
        select(X, y, P=4, K=5)


def test_mismatched_response_fails_early(regression_data, no_generation):
    X, y = regression_data
    with pytest.raises(InvalidArgument):
        select(X, y[:-1])


@pytest.mark.parametrize(
    "options",
    [
        {"C": 0},
        {"C": 7},
        {"P": 0},
        {"G": 1.2},
        {"n_splits": 6},
        {"max_iter": -1},
        {"selection": "roulette"},
        {"family": "laplace"},
        {"fit_func": "r2"},
        {"mutation_rate": 2.0},
        {"colour": "red"},
    ],
)
def test_invalid_configuration_fails_early(regression_data, no_generation, options):
    X, y = regression_data
    with pytest.raises(InvalidArgument):
        select(X, y, **options)


def test_invalid_inputs():
    X = pd.DataFrame({"a": [1.0, 2.0, np.nan], "b": [0.0, 1.0, 2.0]})
    with pytest.raises(InvalidArgument):
        prepare_inputs(X, [1.0, 2.0, 3.0])
    X = pd.DataFrame({"a": [1.0, 2.0, 3.0], "b": ["u", "v", "w"]})
    with pytest.raises(InvalidArgument):
        prepare_inputs(X, [1.0, 2.0, 3.0])
    with pytest.raises(InvalidArgument):
        prepare_inputs(np.ones((3, 2)), ["a", "b", "c"])
    with pytest.raises(InvalidArgument):
        prepare_inputs(np.ones(3), [1.0, 2.0, 3.0])


def test_prepare_inputs_names_array_columns():
    data = prepare_inputs(np.arange(6.0).reshape(3, 2), np.array([[1.0], [2.0], [3.0]]))
    assert data.feature_names == ["x0", "x1"]
    assert data.y.shape == (3,)


def test_chromosome_length_limits_candidates(regression_data):
    X, y = regression_data
    result = select(X, y, C=3, max_iter=5, seed=5)
    assert len(result.chromosome) == 3
    assert set(result.survivor) <= {"real1", "noi1", "real2"}


def test_custom_breeding_operator(regression_data):
    calls = []

    def keep_parents(a, b):
        calls.append(1)
        return [a, b]

    X, y = regression_data
    result = select(X, y, P=6, op=keep_parents, max_iter=4, seed=6)
    assert len(calls) == 4 * 3
    # no new chromosomes means nothing beyond the initial population is ever fitted
    assert result.history()["nevals"].iloc[1:].sum() == 0


def test_alternative_criteria(regression_data):
    X, y = regression_data
    by_bic = select(X, y, fit_func="bic", P=8, max_iter=5, seed=7)
    by_callable = select(X, y, fit_func=bic_plus_size, P=8, max_iter=5, seed=7)
    by_aic = select(X, y, fit_func=aic, P=8, max_iter=5, seed=7)
    for result in (by_bic, by_callable, by_aic):
        assert np.isfinite(result.fitness)


def test_binomial_family(binary_data):
    X, y = binary_data
    result = select(X, y, family="binomial", P=6, max_iter=5, seed=8)
    assert np.isfinite(result.fitness)
    assert result.survivor


def test_result_summary(regression_data):
    X, y = regression_data
    result = select(X, y, P=6, max_iter=3, seed=10)
    summary = result.to_dict()
    assert summary["selected_features"] == result.survivor
    assert summary["num_selected"] == len(result.survivor)
    assert summary["total_features"] == 6
    assert summary["cache"]["size"] >= 6
    json.dumps(summary)
    assert {"gen", "nevals", "min", "median", "max", "degenerate", "diversity", "best_ever"} <= set(result.history().columns)


def test_search_state_reaches_terminated(regression_data):
    X, y = regression_data
    search = GeneticSearch(X, y, SearchConfig(P=6, max_iter=2, seed=1))
    assert search.state is SearchState.INITIALIZING
    search.run()
    assert search.state is SearchState.TERMINATED


def test_config_defaults_resolve_from_data():
    cfg = SearchConfig().resolved(6)
    assert (cfg.C, cfg.P, cfg.n_pairs) == (6, 12, 6)
    assert cfg.G == pytest.approx(1 / 12)
    capped = SearchConfig(P=10, n_splits=1).resolved(2)
    assert capped.P == 4


def test_config_overrides_and_json(tmp_path, regression_data):
    path = tmp_path / "ga.json"
    path.write_text(json.dumps({"selection": "proportional", "P": 8, "max_iter": 2, "seed": 3, "unused": 1}))
    cfg = load_config(str(path))
    assert cfg.selection == "proportional" and cfg.P == 8
    X, y = regression_data
    result = select(X, y, config=cfg, max_iter=0)
    assert result.num_iteration == 0
    assert cfg.to_dict()["fit_func"] == "aic"


def test_generations_never_hold_duplicate_chromosomes(regression_data, monkeypatch):
    sizes = []
    real_gap = subset_selection_ga.generation_gap

    def spy(old, new, G):
        out = real_gap(old, new, G)
        sizes.append((len(out), len(set(out.chromosomes))))
        return out

    monkeypatch.setattr(subset_selection_ga, "generation_gap", spy)
    X, y = regression_data
    result = select(X, y, P=12, max_iter=60, seed=0)
    assert all(n == distinct == 12 for n, distinct in sizes)
    assert result.history()["diversity"].iloc[-1] > 0


@pytest.mark.parametrize("init_prob", [0.0, 1.0])
def test_constant_initial_draws_rejected_for_tournaments(regression_data, no_generation, init_prob):
    X, y = regression_data
    with pytest.raises(InvalidArgument):
        select(X, y, init_prob=init_prob)


def test_too_few_distinct_initial_chromosomes_fails_before_ranking(regression_data, monkeypatch):
    ranked = []
    monkeypatch.setattr(
        subset_selection_ga, "initialize_parents", lambda C, P, init_prob=0.5: [Chromosome.from_indices([0], C)] * P
    )
    monkeypatch.setattr(subset_selection_ga, "ranked_models", lambda *args, **kwargs: ranked.append(1))
    X, y = regression_data
    with pytest.raises(InvalidArgument):
        select(X, y, P=6, K=3)
    assert ranked == []


def test_response_outside_family_domain_fails_early(binary_data, no_generation):
    X, y = binary_data
    with pytest.raises(InvalidArgument):
        select(X, y * 2, family="binomial")
    with pytest.raises(InvalidArgument):
        select(X, y - 1, family="poisson")
    with pytest.raises(InvalidArgument):
        select(X, y, family="gamma")


def test_zero_split_crossover_is_accepted(regression_data):
    X, y = regression_data
    result = select(X, y, n_splits=0, P=8, max_iter=3, seed=12)
    assert np.isfinite(result.fitness)
