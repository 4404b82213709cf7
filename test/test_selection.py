# Copyright (c) 2025 Alliance for Sustainable Energy, LLC and Nimish Telang
# SPDX-License-Identifier: BSD-3-Clause

"""
Test best-configuration selection within one family.

Tests that:
1. The selected fit never exceeds the complexity ceiling
2. Lower error wins, ties go to the lower complexity
3. A preferred configuration wins whenever it is admissible
4. Families without an admissible fit raise NoViableConfigError
"""

import logging
from types import SimpleNamespace

import pytest
from smoothing_estimator import (
    evaluate,
    select,
    FitError,
    NoViableConfigError,
    ScoredFit,
    FamilyTag,
    KernelConfig,
    LoessConfig,
)


def scored_fit(config, mse, complexity):
    return ScoredFit(config=config, model=SimpleNamespace(effective_df=complexity), mse=mse)


def failed_fit(config):
    return ScoredFit(config=config, error=FitError("boom"))


@pytest.fixture(scope="module")
def loess_scores(uk_series):
    configs = [
        LoessConfig(span=span, degree=degree)
        for span in (0.1, 0.25, 0.5, 0.75)
        for degree in (0, 1, 2)
    ]
    return evaluate(uk_series, FamilyTag.LOESS, configs)


@pytest.mark.parametrize("ceiling", [3.0, 5.0, 8.0, 12.0, 30.0, None])
def test_ceiling_never_exceeded(loess_scores, ceiling):
    try:
        result = select(loess_scores, ceiling=ceiling)
    except NoViableConfigError:
        assert all(s.complexity > ceiling for s in loess_scores if s.ok)
        return
    eligible = [s for s in loess_scores if s.ok and (ceiling is None or s.complexity <= ceiling)]
    if ceiling is not None:
        assert result.best.complexity <= ceiling
    assert result.best.mse == min(s.mse for s in eligible)
    assert result.ceiling == ceiling
    assert result.family == FamilyTag.LOESS


def test_lowest_error_wins():
    a, b, c = LoessConfig(span=0.25), LoessConfig(span=0.5), LoessConfig(span=0.75)
    result = select([scored_fit(a, 30.0, 4.0), scored_fit(b, 10.0, 6.0), scored_fit(c, 20.0, 5.0)])
    assert result.best.config == b
    assert [s.config for s in result.ranked] == [b, c, a]


def test_ties_go_to_lower_complexity():
    a, b = LoessConfig(span=0.25), LoessConfig(span=0.5)
    result = select([scored_fit(a, 10.0, 9.0), scored_fit(b, 10.0, 4.0)])
    assert result.best.config == b


def test_failures_ranked_last_in_input_order():
    a, b, c, d = (LoessConfig(span=s) for s in (0.1, 0.25, 0.5, 0.75))
    scored = [failed_fit(a), scored_fit(b, 5.0, 3.0), failed_fit(c), scored_fit(d, 1.0, 3.0)]
    result = select(scored)
    assert [s.config for s in result.ranked] == [d, b, a, c]
    assert [s.config for s in result.viable] == [d, b]
    assert [s.config for s in result.failed] == [a, c]


def test_preferred_wins_when_admissible():
    a, b = LoessConfig(span=0.25), LoessConfig(span=0.5)
    result = select([scored_fit(a, 10.0, 9.0), scored_fit(b, 50.0, 4.0)], ceiling=12.0, preferred=b)
    assert result.best.config == b


def test_preferred_over_ceiling_falls_back(caplog):
    a, b = LoessConfig(span=0.25), LoessConfig(span=0.5)
    with caplog.at_level(logging.WARNING, logger='smoothing_estimator.selection'):
        result = select([scored_fit(a, 10.0, 20.0), scored_fit(b, 50.0, 4.0)], ceiling=12.0, preferred=a)
    assert result.best.config == b
    assert "not available" in caplog.text


def test_all_failed_raises():
    with pytest.raises(NoViableConfigError, match="failed to fit"):
        select([failed_fit(LoessConfig(span=0.25)), failed_fit(LoessConfig(span=0.5))])


def test_nothing_within_ceiling_raises():
    scored = [scored_fit(LoessConfig(span=0.25), 1.0, 20.0), scored_fit(LoessConfig(span=0.5), 2.0, 15.0)]
    with pytest.raises(NoViableConfigError, match="ceiling"):
        select(scored, ceiling=10.0)


def test_empty_input_raises():
    with pytest.raises(ValueError):
        select([])


def test_mixed_families_raise():
    scored = [scored_fit(LoessConfig(), 1.0, 3.0), scored_fit(KernelConfig(), 2.0, 3.0)]
    with pytest.raises(ValueError, match="one family"):
        select(scored)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
