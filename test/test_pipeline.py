# Copyright (c) 2025 Alliance for Sustainable Energy, LLC and Nimish Telang
# SPDX-License-Identifier: BSD-3-Clause

"""
Test the end-to-end grid / select / compare run.
"""

import pytest
from smoothing_estimator import (
    run_analysis,
    default_grids,
    AnalysisConfig,
    AnalysisResult,
    BY_EYE_CHOICES,
    DEFAULT_CEILING,
    NoViableConfigError,
    FamilyTag,
    KernelConfig,
    LoessConfig,
    NaturalSplineConfig,
)


SMALL_GRIDS = {
    FamilyTag.NATURAL_SPLINE: [NaturalSplineConfig(df=df) for df in (3, 5)],
    FamilyTag.LOESS: [LoessConfig(span=0.5, degree=2), LoessConfig(span=0.75, degree=1)],
    FamilyTag.KERNEL: [KernelConfig(bandwidth=0.5), KernelConfig(bandwidth=-1.0)],
}


def test_default_grids():
    grids = default_grids()
    assert set(grids) == set(FamilyTag)
    assert [c.df for c in grids[FamilyTag.NATURAL_SPLINE]] == [3, 4, 5, 6, 7]
    assert len(grids[FamilyTag.SMOOTHING_SPLINE]) == 6
    assert len(grids[FamilyTag.LOESS]) == 12
    assert len(grids[FamilyTag.KERNEL]) == 5
    for family, configs in grids.items():
        assert all(c.family == family for c in configs)
    for family, config in BY_EYE_CHOICES.items():
        assert config in grids[family]


def test_ceiling_for():
    config = AnalysisConfig(ceilings={FamilyTag.LOESS: 8.0})
    assert config.ceiling_for(FamilyTag.LOESS) == 8.0
    assert config.ceiling_for('kernel') == DEFAULT_CEILING
    assert AnalysisConfig(default_ceiling=None).ceiling_for(FamilyTag.KERNEL) is None


def test_small_analysis(uk_series):
    result = run_analysis(uk_series, AnalysisConfig(grids=SMALL_GRIDS))
    assert isinstance(result, AnalysisResult)
    assert set(result.scored) == set(SMALL_GRIDS)
    assert set(result.selections) == set(SMALL_GRIDS)
    assert result.dropped == {}
    assert sum(not s.ok for s in result.scored[FamilyTag.KERNEL]) == 1
    assert result.report.families == list(SMALL_GRIDS)
    for selection in result.selections.values():
        assert selection.best.complexity <= DEFAULT_CEILING


def test_family_without_viable_fit_is_dropped(uk_series):
    config = AnalysisConfig(grids=SMALL_GRIDS, ceilings={FamilyTag.LOESS: 1.0})
    result = run_analysis(uk_series, config)
    assert FamilyTag.LOESS not in result.selections
    assert isinstance(result.dropped[FamilyTag.LOESS], NoViableConfigError)
    assert 'loess' not in result.report.predictions
    assert result.report.families == [FamilyTag.NATURAL_SPLINE, FamilyTag.KERNEL]


def test_every_family_dropped_raises(uk_series):
    with pytest.raises(NoViableConfigError, match="no smoother family"):
        run_analysis(uk_series, AnalysisConfig(grids=SMALL_GRIDS, default_ceiling=1.0))


def test_preferred_configurations(uk_series):
    config = AnalysisConfig(grids=SMALL_GRIDS, preferred=dict(BY_EYE_CHOICES))
    result = run_analysis(uk_series, config)
    for family, preferred in BY_EYE_CHOICES.items():
        assert result.selections[family].best.config == preferred


def test_default_analysis(uk_series):
    result = run_analysis(uk_series)
    assert set(result.scored) == set(FamilyTag)
    assert result.report.predictions.shape[0] == 192
    for family, selection in result.selections.items():
        assert selection.best.complexity <= DEFAULT_CEILING
        assert selection.best.mse == min(s.mse for s in selection.viable if s.complexity <= DEFAULT_CEILING)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
