"""
Pytest configuration file providing shared fixtures.
"""
import numpy as np
import pandas as pd
import pytest


# Fertilizer experiment: 11 plots, 6 treated.
FERTILIZER_W = [0, 0, 1, 1, 0, 1, 1, 1, 0, 0, 1]
FERTILIZER_YIELD = [29.2, 11.4, 26.6, 23.7, 25.3, 28.5, 14.2, 17.9, 16.5, 21.1, 24.3]


@pytest.fixture
def fertilizer_arrays():
    """Treatment and outcome vectors of the fertilizer experiment."""
    return np.array(FERTILIZER_W), np.array(FERTILIZER_YIELD)


@pytest.fixture
def fertilizer_data():
    """Fertilizer experiment as a unit-level DataFrame."""
    return pd.DataFrame({
        'plot': np.arange(1, 12),
        'w': FERTILIZER_W,
        'yield': FERTILIZER_YIELD,
    })


@pytest.fixture
def fertilizer_observed_diff():
    """Difference in mean yields, treated minus control."""
    w = np.array(FERTILIZER_W, dtype=bool)
    y = np.array(FERTILIZER_YIELD)
    return y[w].mean() - y[~w].mean()


@pytest.fixture
def simulated_experiment():
    """Moderately sized experiment with a true effect of 2."""
    rng = np.random.default_rng(20240601)
    n = 30
    d = np.zeros(n, dtype=int)
    d[rng.choice(n, size=12, replace=False)] = 1
    y = 1.0 + 2.0 * d + rng.normal(0, 1, n)
    return d, y
