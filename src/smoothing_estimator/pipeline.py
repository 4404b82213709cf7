# Copyright (c) 2025 Alliance for Sustainable Energy, LLC and Nimish Telang
# SPDX-License-Identifier: BSD-3-Clause

from dataclasses import dataclass, field
import logging

from .comparison import ComparisonReport, compare
from .exceptions import NoViableConfigError
from .grid import ScoredFit, evaluate
from .selection import SelectionResult, select
from .series import Series
from .smoothing_estimator import (
    CvCriterion,
    FamilyTag,
    KernelConfig,
    LoessConfig,
    NaturalSplineConfig,
    SmootherConfig,
    SmoothingSplineConfig,
)

logger = logging.getLogger(__name__)

# Effective degrees of freedom. A 16-year monthly series needs roughly two
# parameters per year before a curve can follow the annual cycle.
DEFAULT_CEILING = 12.0

# Curves picked by eye when the series was first analysed.
BY_EYE_CHOICES = {
    FamilyTag.NATURAL_SPLINE: NaturalSplineConfig(df=5),
    FamilyTag.LOESS: LoessConfig(span=0.5, degree=2),
    FamilyTag.KERNEL: KernelConfig(bandwidth=0.5, relative=True, degree=1),
}


def default_grids() -> dict[FamilyTag, list[SmootherConfig]]:
    """
    Parameter grids explored for the UK driver deaths series.

    Returns
    -------
    grids : dict
        Configurations per family:
        - natural spline: df 3 to 7
        - smoothing spline: LOOCV, GCV and fixed df 4, 6, 8, 10
        - loess: spans 0.1, 0.25, 0.5, 0.75 at degrees 0, 1, 2
        - kernel: relative bandwidths 0.1, 0.25, 0.5, 1.0 at degree 1, plus
          the Silverman plug-in rule
    """
    return {
        FamilyTag.NATURAL_SPLINE: [NaturalSplineConfig(df=df) for df in range(3, 8)],
        FamilyTag.SMOOTHING_SPLINE: (
            [SmoothingSplineConfig(criterion=CvCriterion.LOOCV), SmoothingSplineConfig(criterion=CvCriterion.GCV)]
            + [SmoothingSplineConfig(df=df) for df in (4, 6, 8, 10)]
        ),
        FamilyTag.LOESS: [
            LoessConfig(span=span, degree=degree)
            for span in (0.1, 0.25, 0.5, 0.75)
            for degree in (0, 1, 2)
        ],
        FamilyTag.KERNEL: (
            [KernelConfig(bandwidth=bw, relative=True, degree=1) for bw in (0.1, 0.25, 0.5, 1.0)]
            + [KernelConfig(bandwidth=None, degree=1, rule='silverman')]
        ),
    }


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Configuration for a full grid / select / compare run.

    Parameters
    ----------
    grids : dict of FamilyTag to list of SmootherConfig
        Configurations to evaluate per family. Defaults to ``default_grids()``.
    ceilings : dict of FamilyTag to float
        Complexity ceiling (effective degrees of freedom) per family. Families
        missing from the dict use ``default_ceiling``.
    default_ceiling : float or None, default=12.0
        Ceiling for families not listed in ``ceilings``. None disables it.
    preferred : dict of FamilyTag to SmootherConfig
        Configuration to select per family when it fitted within the ceiling.
    n_jobs : int, default=1
        Worker processes used by the grid evaluation.
    timeout : float or None, default=None
        Seconds allowed per fit.

    Examples
    --------
    >>> config = AnalysisConfig(ceilings={FamilyTag.LOESS: 8.0}, n_jobs=4)
    """
    grids: dict = field(default_factory=default_grids)
    ceilings: dict = field(default_factory=dict)
    default_ceiling: float | None = DEFAULT_CEILING
    preferred: dict = field(default_factory=dict)
    n_jobs: int = 1
    timeout: float | None = None

    def ceiling_for(self, family) -> float | None:
        return self.ceilings.get(FamilyTag(family), self.default_ceiling)


@dataclass
class AnalysisResult:
    """
    Everything produced by ``run_analysis``.

    Attributes
    ----------
    scored : dict of FamilyTag to list of ScoredFit
    selections : dict of FamilyTag to SelectionResult
        Only families with a viable configuration.
    dropped : dict of FamilyTag to NoViableConfigError
        Families without a viable configuration and the reason.
    report : ComparisonReport
    """
    scored: dict[FamilyTag, list[ScoredFit]]
    selections: dict[FamilyTag, SelectionResult]
    dropped: dict[FamilyTag, NoViableConfigError]
    report: ComparisonReport


def run_analysis(series: Series, config: AnalysisConfig | None = None) -> AnalysisResult:
    """
    Evaluate every grid, select a configuration per family and compare them.

    Parameters
    ----------
    series : Series
    config : AnalysisConfig or None, default=None
        Defaults to ``AnalysisConfig()``.

    Returns
    -------
    result : AnalysisResult

    Raises
    ------
    NoViableConfigError
        If no family produced a viable configuration.
    """
    config = config or AnalysisConfig()
    scored = {}
    selections = {}
    dropped = {}
    for family, configs in config.grids.items():
        family = FamilyTag(family)
        scored[family] = evaluate(series, family, configs, n_jobs=config.n_jobs, timeout=config.timeout)
        try:
            selections[family] = select(
                scored[family],
                ceiling=config.ceiling_for(family),
                preferred=config.preferred.get(family),
            )
        except NoViableConfigError as e:
            logger.warning("Dropping %s from the comparison: %s", family, e)
            dropped[family] = e

    if not selections:
        raise NoViableConfigError(
            "no smoother family produced a viable configuration: "
            + "; ".join(f"{family}: {e}" for family, e in dropped.items())
        )
    report = compare(selections, series=series)
    return AnalysisResult(scored=scored, selections=selections, dropped=dropped, report=report)
