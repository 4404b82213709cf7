# Copyright (c) 2025 Alliance for Sustainable Energy, LLC and Nimish Telang
# SPDX-License-Identifier: BSD-3-Clause

"""
Smoother grid evaluation and comparison for a univariate monthly time series.

This package fits several smoother families to a series indexed by time step:
- Natural cubic splines fitted by least squares
- Smoothing splines with the penalty chosen by LOOCV or GCV
- Loess (tri-cube local polynomial regression)
- Gaussian kernel local polynomial regression

and scores every configuration by in-sample mean squared error, selects one
configuration per family under a complexity ceiling and compares the winners.
"""

from .comparison import ComparisonReport, compare
from .exceptions import (
    FitError,
    FitTimeoutError,
    NoViableConfigError,
    PredictionRangeError,
    SmoothingError,
)
from .grid import ScoredFit, evaluate, mean_squared_error
from .pipeline import (
    BY_EYE_CHOICES,
    DEFAULT_CEILING,
    AnalysisConfig,
    AnalysisResult,
    default_grids,
    run_analysis,
)
from .selection import SelectionResult, select
from .series import Series, load_uk_driver_deaths
from .smoothing_estimator import (
    # Adapter entry point and fitted handle
    fit,
    FittedModel,
    # Configuration classes
    NaturalSplineConfig,
    SmoothingSplineConfig,
    LoessConfig,
    KernelConfig,
    SolverConfig,
    SmootherConfig,
    # Enums
    FamilyTag,
    CvCriterion,
    # Estimators
    NaturalSplineEstimator,
    SmoothingSplineEstimator,
    LoessEstimator,
    KernelEstimator,
)

__all__ = [
    "fit",
    "FittedModel",
    "NaturalSplineConfig",
    "SmoothingSplineConfig",
    "LoessConfig",
    "KernelConfig",
    "SolverConfig",
    "SmootherConfig",
    "FamilyTag",
    "CvCriterion",
    "NaturalSplineEstimator",
    "SmoothingSplineEstimator",
    "LoessEstimator",
    "KernelEstimator",
    "Series",
    "load_uk_driver_deaths",
    "ScoredFit",
    "evaluate",
    "mean_squared_error",
    "SelectionResult",
    "select",
    "ComparisonReport",
    "compare",
    "AnalysisConfig",
    "AnalysisResult",
    "default_grids",
    "run_analysis",
    "BY_EYE_CHOICES",
    "DEFAULT_CEILING",
    "SmoothingError",
    "FitError",
    "FitTimeoutError",
    "PredictionRangeError",
    "NoViableConfigError",
]

__version__ = "0.1.0"
