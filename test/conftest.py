# Copyright (c) 2025 Alliance for Sustainable Energy, LLC and Nimish Telang
# SPDX-License-Identifier: BSD-3-Clause

"""Shared fixtures for the smoothing_estimator test suite."""

import matplotlib

matplotlib.use('Agg')

import numpy as np
import pytest

from smoothing_estimator import Series, load_uk_driver_deaths


@pytest.fixture(scope="session")
def uk_series():
    """The bundled 192-month UK driver deaths series."""
    return load_uk_driver_deaths()


@pytest.fixture(scope="session")
def linear_series():
    """A noiseless straight line, reproduced exactly by local linear fits."""
    t = np.arange(1, 61)
    return Series(values=2.0 * t + 1.0, name='line')


@pytest.fixture(scope="session")
def noisy_series():
    """A short seasonal series with noise."""
    rng = np.random.default_rng(42)
    t = np.arange(1, 73)
    values = 100 + 0.5 * t + 10 * np.sin(2 * np.pi * t / 12) + rng.normal(0, 2, size=len(t))
    return Series(values=values, name='noisy')
