# Copyright (c) 2025 Alliance for Sustainable Energy, LLC and Nimish Telang
# SPDX-License-Identifier: BSD-3-Clause

"""Exceptions raised by the smoothing pipeline."""


class SmoothingError(Exception):
    """Base class for all errors raised by smoothing_estimator."""


class FitError(SmoothingError):
    """
    A smoother configuration could not be fitted.

    Raised for invalid hyperparameters (e.g. non-positive bandwidth, degrees of
    freedom exceeding the number of observations), singular designs and
    solvers that do not reach an optimal status.
    """


class FitTimeoutError(FitError):
    """A single fit did not finish within the evaluation timeout."""


class PredictionRangeError(SmoothingError):
    """A prediction was requested outside the time range the model was fitted on."""


class NoViableConfigError(SmoothingError):
    """No configuration of a family produced a usable fit."""
