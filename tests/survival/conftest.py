"""
Shared two-group datasets for survival tests.

Times are in whole months, as in registry follow-up data, so tied event
times are common. Group 1 is the treated group.
"""

import numpy as np
import pytest

from survcompare.survival.design import SurvivalDesign


def _two_group(rng, n_per_group, rates, censor_max):
    group = np.repeat([0.0, 1.0], n_per_group)
    latent = rng.exponential(1.0 / np.repeat(rates, n_per_group))
    censor = rng.uniform(1.0, censor_max, size=len(group))
    time = np.ceil(np.minimum(latent, censor))
    event = (latent <= censor).astype(np.float64)
    return time, event, group


@pytest.fixture
def two_group_data():
    """120 subjects; the treated group has half the untreated hazard."""
    rng = np.random.default_rng(20240611)
    return _two_group(rng, 60, rates=[0.10, 0.05], censor_max=48.0)


@pytest.fixture
def two_group_design(two_group_data):
    time, event, group = two_group_data
    return SurvivalDesign.for_survival(time, event, group, names=["group"])


@pytest.fixture
def cure_data():
    """400 subjects with a cured fraction and long administrative follow-up.

    Cured fractions are 0.5 (untreated) and 0.3 (treated); the uncured
    have exponential event times with mean 10 months; every subject is
    followed for 60 to 120 months unless the event comes first.
    """
    rng = np.random.default_rng(7)
    n_per_group = 200
    group = np.repeat([0.0, 1.0], n_per_group)
    cured = rng.uniform(size=2 * n_per_group) < np.repeat([0.5, 0.3], n_per_group)
    latent = np.where(cured, np.inf, rng.exponential(10.0, size=2 * n_per_group))
    follow_up = rng.uniform(60.0, 120.0, size=2 * n_per_group)
    time = np.ceil(np.minimum(latent, follow_up))
    event = (latent <= follow_up).astype(np.float64)
    return time, event, group


@pytest.fixture
def small_mixed_data():
    """30 subjects with ties, used for derivative checks."""
    rng = np.random.default_rng(99)
    return _two_group(rng, 15, rates=[0.3, 0.15], censor_max=12.0)
