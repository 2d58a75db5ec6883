import numpy as np
import pandas as pd
import pytest

from gaselect.population import Chromosome, Generation, Individual


FEATURES = ["real1", "noi1", "real2", "noi2", "noi3", "noi4"]


@pytest.fixture
def regression_data():
    """y depends strongly on real1 and real2 only."""
    rng = np.random.RandomState(1)
    n = 150
    X = pd.DataFrame(rng.normal(size=(n, len(FEATURES))), columns=FEATURES)
    y = 3.0 + 4.0 * X["real1"] - 2.5 * X["real2"] + rng.normal(scale=0.5, size=n)
    return X, y.to_numpy()


@pytest.fixture
def wide_data():
    rng = np.random.RandomState(7)
    n = 80
    X = rng.normal(size=(n, 10))
    y = 1.0 + 2.0 * X[:, 1] + X[:, 4] + rng.normal(scale=0.3, size=n)
    return X, y


@pytest.fixture
def binary_data():
    rng = np.random.RandomState(3)
    n = 300
    X = pd.DataFrame(rng.normal(size=(n, 4)), columns=["a", "b", "c", "d"])
    logits = 1.5 * X["a"] - 1.0 * X["c"]
    y = (rng.uniform(size=n) < 1.0 / (1.0 + np.exp(-logits))).astype(int)
    return X, y.to_numpy()


def make_generation(fitness, length=16):
    """Generation whose i-th individual selects feature i and has fitness[i]."""
    return Generation(
        Individual(Chromosome.from_indices([i], length), float(f)) for i, f in enumerate(fitness)
    )
