# Copyright (c) 2025 Alliance for Sustainable Energy, LLC and Nimish Telang
# SPDX-License-Identifier: BSD-3-Clause

from dataclasses import dataclass, field
from enum import StrEnum
import logging

import cvxpy
import numpy as np
from numpy import ndarray
from scipy import linalg, optimize
from scipy.interpolate import CubicSpline
from scipy.sparse import diags
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.utils.validation import check_array, check_is_fitted, check_X_y
from statsmodels.nonparametric import bandwidths
from statsmodels.nonparametric.kernel_regression import KernelReg

from .exceptions import FitError, PredictionRangeError
from .series import Series

logger = logging.getLogger(__name__)


class FamilyTag(StrEnum):
    NATURAL_SPLINE = 'natural_spline'
    SMOOTHING_SPLINE = 'smoothing_spline'
    LOESS = 'loess'
    KERNEL = 'kernel'


class CvCriterion(StrEnum):
    LOOCV = 'loocv'
    GCV = 'gcv'


@dataclass(frozen=True)
class SolverConfig:
    """
    Configuration for the CVXPY solver used for least-squares fits.

    Parameters
    ----------
    solver : str, default='CLARABEL'
        CVXPY solver name. Common options:
        - 'CLARABEL': Fast, modern solver (recommended)
        - 'ECOS': Reliable, slower
        - 'OSQP': Good for quadratic problems
        - 'SCS': General purpose
    verbose : bool, default=False
        Whether to print solver output during optimization.
    """
    solver: str = 'CLARABEL'
    verbose: bool = False


@dataclass(frozen=True)
class NaturalSplineConfig:
    """
    Natural cubic spline regression on the time index.

    The basis has ``df`` columns: ``df - 1`` interior knots plus the two
    boundary knots. Interior knots sit at quantiles of the time index chosen
    by repeatedly bisecting the widest gap between knots, so the knots for
    ``df`` include those for ``df - 1`` and the fitted spaces are nested. An
    intercept is fitted alongside the basis by ordinary least squares.

    Parameters
    ----------
    df : int
        Degrees of freedom of the spline basis (excluding the intercept).
        Must satisfy ``1 <= df < n_samples``.
    solver_config : SolverConfig, default=SolverConfig()
        Solver used for the least-squares problem.

    Examples
    --------
    >>> config = NaturalSplineConfig(df=5)
    >>> config.label
    'natural spline (df=5)'
    """
    df: int
    solver_config: SolverConfig = field(default_factory=SolverConfig)

    family = FamilyTag.NATURAL_SPLINE

    @property
    def label(self) -> str:
        return f"natural spline (df={self.df})"


@dataclass(frozen=True)
class SmoothingSplineConfig:
    """
    Penalized cubic smoothing spline with an automatically chosen penalty.

    Parameters
    ----------
    criterion : {'loocv', 'gcv'}, default='gcv'
        How the roughness penalty is selected:
        - 'loocv': leave-one-out ("N-fold") cross-validation
        - 'gcv': generalized cross-validation
    df : float or None, default=None
        Target effective degrees of freedom. When given, the penalty is chosen
        so that the trace of the smoother matrix equals ``df`` and
        ``criterion`` is only reported. Must satisfy ``2 < df < n_samples``.
    """
    criterion: CvCriterion = CvCriterion.GCV
    df: float | None = None

    family = FamilyTag.SMOOTHING_SPLINE

    @property
    def label(self) -> str:
        if self.df is not None:
            return f"smoothing spline (df={self.df:g})"
        return f"smoothing spline ({self.criterion})"


@dataclass(frozen=True)
class LoessConfig:
    """
    Locally weighted polynomial regression with a tri-cube kernel.

    Parameters
    ----------
    span : float, default=0.75
        Fraction of the observations in each local neighbourhood, in (0, 1].
    degree : int, default=2
        Degree of the local polynomial, one of 0, 1, 2.
    """
    span: float = 0.75
    degree: int = 2

    family = FamilyTag.LOESS

    @property
    def label(self) -> str:
        return f"loess (span={self.span:g}, degree={self.degree})"


@dataclass(frozen=True)
class KernelConfig:
    """
    Local polynomial regression with a normal (Gaussian) kernel.

    Parameters
    ----------
    bandwidth : float or None, default=0.5
        Standard deviation of the Gaussian kernel. Interpreted as a fraction of
        the time index's sample standard deviation when ``relative`` is True,
        otherwise in time steps. Ignored when ``rule`` is given.
    relative : bool, default=True
        Whether ``bandwidth`` is relative to the time index's standard deviation.
    degree : int, default=1
        Degree of the local polynomial, one of 0, 1, 2.
    rule : str or None, default=None
        Automatic bandwidth selection:
        - 'scott', 'silverman', 'normal_reference': plug-in rules of thumb
        - 'cv_ls': least-squares cross-validation

    Examples
    --------
    >>> KernelConfig(bandwidth=0.5).label
    'kernel (bandwidth=0.5 sd, degree=1)'
    >>> KernelConfig(rule='silverman', degree=0).label
    'kernel (bandwidth=silverman, degree=0)'
    """
    bandwidth: float | None = 0.5
    relative: bool = True
    degree: int = 1
    rule: str | None = None

    family = FamilyTag.KERNEL

    @property
    def label(self) -> str:
        if self.rule is not None:
            bw = self.rule
        elif self.relative:
            bw = f"{self.bandwidth:g} sd"
        else:
            bw = f"{self.bandwidth:g}"
        return f"kernel (bandwidth={bw}, degree={self.degree})"


SmootherConfig = NaturalSplineConfig | SmoothingSplineConfig | LoessConfig | KernelConfig

LOCAL_DEGREES = (0, 1, 2)

BANDWIDTH_RULES = {
    'scott': bandwidths.bw_scott,
    'silverman': bandwidths.bw_silverman,
    'normal_reference': bandwidths.bw_normal_reference,
}

# log10 of the smoothing-spline penalty, on a time axis scaled to [0, 1]
LOG_LAMBDA_BOUNDS = (-12.0, 2.0)
LOG_LAMBDA_STEP = 0.25


def nested_knot_levels(df: int) -> ndarray:
    """
    Quantile levels of the ``df + 1`` natural spline knots, boundaries included.

    Each interior level bisects the widest remaining gap (leftmost on ties),
    so ``nested_knot_levels(df)`` is a subset of ``nested_knot_levels(df + 1)``.

    Examples
    --------
    >>> nested_knot_levels(3)
    array([0.  , 0.25, 0.5 , 1.  ])
    """
    levels = [0.0, 1.0]
    for _ in range(df - 1):
        ix = int(np.argmax(np.diff(levels)))
        levels.insert(ix + 1, (levels[ix] + levels[ix + 1]) / 2)
    return np.array(levels)


def _as_time_column(X):
    X = np.asarray(X, dtype=float)
    if X.ndim == 1:
        X = X[:, None]
    return X


class _TimeIndexSmoother(BaseEstimator, RegressorMixin):
    """
    Shared fit/predict plumbing for smoothers of y on a single time index.

    Subclasses implement ``_fit(x, y)`` and ``_predict(x)``; fitted
    subclasses must set ``fitted_values_`` and ``effective_df_``.
    """
    def __init__(self, config):
        self.config = config

    def fit(self, X, y):
        """
        Fit the smoother.

        Parameters
        ----------
        X : array-like of shape (n_samples,) or (n_samples, 1)
            Strictly increasing time index.
        y : array-like of shape (n_samples,)
            Observations. Must not contain NaN.

        Returns
        -------
        self

        Raises
        ------
        FitError
            If the configuration is invalid for the data or the numerical
            routine fails.
        """
        X, y = check_X_y(_as_time_column(X), y, y_numeric=True)
        if X.shape[1] != 1:
            raise ValueError(f"Expected a single time column, got {X.shape[1]} columns")
        x = X[:, 0]
        if len(x) > 1 and np.any(np.diff(x) <= 0):
            raise ValueError("Time index must be strictly increasing.")
        self.n_features_in_ = 1
        self.x_ = x
        self.y_ = y
        self.domain_ = (float(x[0]), float(x[-1]))
        self._fit(x, y)
        if not np.all(np.isfinite(self.fitted_values_)):
            raise FitError(f"{self.config.label} produced non-finite fitted values")
        return self

    def predict(self, X):
        """
        Predict at time points inside the fitted domain.

        Raises
        ------
        PredictionRangeError
            If any time point is not finite or lies outside ``[x_min, x_max]``
            of the training data.
        """
        check_is_fitted(self, ['x_', 'domain_'])
        X = _as_time_column(X)
        if not np.all(np.isfinite(X)):
            raise PredictionRangeError("time index must be finite")
        X = check_array(X, ensure_min_samples=1)
        x = X[:, 0]
        lo, hi = self.domain_
        outside = (x < lo) | (x > hi)
        if np.any(outside):
            raise PredictionRangeError(
                f"time index {x[outside][0]:g} outside fitted range [{lo:g}, {hi:g}]"
            )
        return self._predict(x)


class NaturalSplineEstimator(_TimeIndexSmoother):
    """
    Natural cubic spline regression fitted by least squares with CVXPY.

    The time axis is scaled to [0, 1] before the basis is built so the
    truncated-power columns stay well conditioned.

    Attributes
    ----------
    knots_ : ndarray
        Knot locations on the scaled time axis (boundaries included).
    coef_ : ndarray
        Intercept followed by basis coefficients.
    status_ : str
        CVXPY problem status.
    fitted_values_ : ndarray
    effective_df_ : float
        Number of fitted coefficients, ``df + 1``.
    """
    def _scale(self, x):
        x_min, x_range = self.scale_
        return (x - x_min) / x_range

    def _make_H(self, x, knots, include_offset=False):
        """
        Create natural cubic spline basis matrix.

        Parameters
        ----------
        x : array-like
            Input values.
        knots : array-like
            Knot locations, boundaries included.
        include_offset : bool, default=False
            Whether to include constant term.

        Returns
        -------
        H : ndarray
            Basis matrix with ``len(knots)`` columns (one fewer without offset).
        """
        def d_func(x, k, k_max):
            n1 = np.clip(np.power(x - k, 3), 0, np.inf)
            n2 = np.clip(np.power(x - k_max, 3), 0, np.inf)
            return (n1 - n2) / (k_max - k)

        nK = len(knots)
        H = np.ones((len(x), nK), dtype=float)
        H[:, 1] = x
        for _i in range(nK - 2):
            H[:, _i + 2] = d_func(x, knots[_i], knots[-1]) - d_func(x, knots[-2], knots[-1])
        if include_offset:
            return H
        return H[:, 1:]

    def _fit(self, x, y):
        df = self.config.df
        if isinstance(df, bool) or not isinstance(df, (int, np.integer)) or df < 1:
            raise FitError(f"natural spline df must be a positive integer, got {df!r}")
        if df >= len(y):
            raise FitError(f"natural spline df={df} needs more than {df} observations, got {len(y)}")

        self.scale_ = (x[0], x[-1] - x[0])
        u = self._scale(x)
        self.knots_ = np.quantile(u, nested_knot_levels(df))
        if np.any(np.diff(self.knots_) <= 0):
            raise FitError(f"natural spline df={df} produced coincident knots")
        H = self._make_H(u, self.knots_, include_offset=True)
        if np.linalg.matrix_rank(H) < H.shape[1]:
            raise FitError(f"natural spline basis with df={df} is singular")

        # solve on a standardized target, then map coefficients back
        y_center = np.mean(y)
        y_scale = np.std(y) or 1.0
        z = (y - y_center) / y_scale
        coef = cvxpy.Variable(H.shape[1])
        problem = cvxpy.Problem(cvxpy.Minimize(cvxpy.sum_squares(z - H @ coef) / len(z)))
        solver_config = self.config.solver_config
        try:
            problem.solve(solver=solver_config.solver, verbose=solver_config.verbose)
        except cvxpy.error.SolverError as e:
            raise FitError(f"{solver_config.solver} failed for {self.config.label}: {e}") from e
        if problem.status not in ["optimal", "optimal_inaccurate"] or coef.value is None:
            raise FitError(f"{solver_config.solver} failed with status: {problem.status}")

        self.status_ = problem.status
        self.coef_ = coef.value * y_scale
        self.coef_[0] += y_center
        self.fitted_values_ = H @ self.coef_
        self.effective_df_ = float(H.shape[1])

    def _predict(self, x):
        H = self._make_H(self._scale(x), self.knots_, include_offset=True)
        return H @ self.coef_


class SmoothingSplineEstimator(_TimeIndexSmoother):
    """
    Cubic smoothing spline with the penalty chosen by cross-validation.

    Minimizes ``sum (y_i - g(x_i))^2 + lambda * integral g''(t)^2 dt`` over
    natural cubic splines with knots at every observation. The fit at the
    knots is ``S y`` with ``S = (I + lambda K)^-1`` and ``K = Q R^-1 Q^T``
    (Reinsch form). ``K`` is diagonalized once, so every candidate penalty
    costs one matrix-vector product.

    Attributes
    ----------
    lambda_ : float
        Selected penalty (time axis scaled to [0, 1]).
    cv_score_ : float
        Value of the configured criterion at ``lambda_``.
    leverage_ : ndarray
        Diagonal of the smoother matrix.
    effective_df_ : float
        Trace of the smoother matrix.
    spline_ : CubicSpline
        Natural cubic interpolant of the fitted values, used for prediction.
    """
    def _penalty_matrix(self, u):
        h = np.diff(u)
        n = len(u)
        Q = diags(
            [1 / h[:-1], -1 / h[:-1] - 1 / h[1:], 1 / h[1:]],
            [0, -1, -2],
            shape=(n, n - 2),
        ).toarray()
        R = diags(
            [h[1:-1] / 6, (h[:-1] + h[1:]) / 3, h[1:-1] / 6],
            [-1, 0, 1],
            shape=(n - 2, n - 2),
        ).toarray()
        K = Q @ linalg.solve(R, Q.T, assume_a='pos')
        return (K + K.T) / 2

    def _smooth(self, log_lambda):
        shrink = 1.0 / (1.0 + 10.0 ** log_lambda * self._eigenvalues)
        fitted = self._eigenvectors @ (shrink * self._projected_y)
        leverage = (self._eigenvectors ** 2) @ shrink
        return fitted, leverage, float(np.sum(shrink))

    def _criterion(self, log_lambda):
        fitted, leverage, trace = self._smooth(log_lambda)
        n = len(self.y_)
        if trace > n - 1:
            return np.inf
        residuals = self.y_ - fitted
        if self.config.criterion == CvCriterion.LOOCV:
            score = np.mean((residuals / (1.0 - leverage)) ** 2)
        else:
            score = np.mean(residuals ** 2) / (1.0 - trace / n) ** 2
        return score if np.isfinite(score) else np.inf

    def _select_by_criterion(self):
        grid = np.arange(LOG_LAMBDA_BOUNDS[0], LOG_LAMBDA_BOUNDS[1] + LOG_LAMBDA_STEP / 2, LOG_LAMBDA_STEP)
        scores = np.array([self._criterion(g) for g in grid])
        if not np.any(np.isfinite(scores)):
            raise FitError(f"{self.config.criterion} criterion is not finite for any penalty")
        ix = int(np.argmin(scores))
        lower = max(grid[ix] - LOG_LAMBDA_STEP, LOG_LAMBDA_BOUNDS[0])
        upper = min(grid[ix] + LOG_LAMBDA_STEP, LOG_LAMBDA_BOUNDS[1])
        result = optimize.minimize_scalar(self._criterion, bounds=(lower, upper), method='bounded')
        if result.success and result.fun <= scores[ix]:
            return float(result.x)
        return float(grid[ix])

    def _select_by_df(self, df):
        n = len(self.y_)
        if not 2 < df < n:
            raise FitError(f"smoothing spline df must lie in (2, {n}), got {df}")

        def excess(log_lambda):
            return self._smooth(log_lambda)[2] - df

        lo, hi = LOG_LAMBDA_BOUNDS
        if excess(lo) < 0 or excess(hi) > 0:
            raise FitError(f"smoothing spline df={df} not reachable within the penalty search range")
        return float(optimize.brentq(excess, lo, hi, xtol=1e-10))

    def _fit(self, x, y):
        if self.config.criterion not in list(CvCriterion):
            raise FitError(f"unknown smoothing spline criterion {self.config.criterion!r}")
        if len(x) < 4:
            raise FitError(f"smoothing spline needs at least 4 observations, got {len(x)}")

        u = (x - x[0]) / (x[-1] - x[0])
        try:
            eigenvalues, eigenvectors = linalg.eigh(self._penalty_matrix(u))
        except linalg.LinAlgError as e:
            raise FitError(f"smoothing spline penalty decomposition failed: {e}") from e
        self._eigenvalues = np.clip(eigenvalues, 0.0, None)
        self._eigenvectors = eigenvectors
        self._projected_y = eigenvectors.T @ y

        if self.config.df is not None:
            log_lambda = self._select_by_df(self.config.df)
        else:
            log_lambda = self._select_by_criterion()

        self.lambda_ = 10.0 ** log_lambda
        self.cv_score_ = float(self._criterion(log_lambda))
        self.fitted_values_, self.leverage_, self.effective_df_ = self._smooth(log_lambda)
        self.spline_ = CubicSpline(x, self.fitted_values_, bc_type='natural')
        logger.debug(
            "%s: lambda=%.3e, effective df=%.2f",
            self.config.label, self.lambda_, self.effective_df_,
        )

    def _predict(self, x):
        return self.spline_(x)


class _LocalPolynomialEstimator(_TimeIndexSmoother):
    """
    Weighted local polynomial regression.

    Every fitted value is a linear combination of the observations; the
    weights for the training points form the hat matrix ``hat_matrix_``
    whose trace is the effective degrees of freedom.
    """
    def _validate_degree(self):
        degree = self.config.degree
        if isinstance(degree, bool) or degree not in LOCAL_DEGREES:
            raise FitError(f"local polynomial degree must be one of {LOCAL_DEGREES}, got {degree!r}")

    def _weights(self, x0) -> tuple[ndarray, float]:
        raise NotImplementedError

    def _local_row(self, x0):
        """Return the row ``l`` with ``fit(x0) = l @ y``."""
        degree = self.config.degree
        w, scale = self._weights(x0)
        support = w > 0
        if np.sum(support) <= degree:
            raise FitError(
                f"{self.config.label}: {np.sum(support)} points in the neighbourhood of "
                f"{x0:g}, need more than {degree}"
            )
        d = (self.x_[support] - x0) / scale
        sw = np.sqrt(w[support])
        A = np.vander(d, degree + 1, increasing=True) * sw[:, None]
        if np.linalg.matrix_rank(A) < degree + 1:
            raise FitError(f"{self.config.label}: singular local design at {x0:g}")
        row = np.zeros(len(self.x_))
        row[support] = np.linalg.pinv(A)[0] * sw
        return row

    def _hat_rows(self, x):
        return np.vstack([self._local_row(x0) for x0 in x])

    def _fit(self, x, y):
        self._validate_degree()
        self._prepare(x, y)
        self.hat_matrix_ = self._hat_rows(x)
        self.fitted_values_ = self.hat_matrix_ @ y
        self.effective_df_ = float(np.trace(self.hat_matrix_))

    def _predict(self, x):
        return self._hat_rows(x) @ self.y_


class LoessEstimator(_LocalPolynomialEstimator):
    """
    Loess with tri-cube weights over the ``floor(span * n)`` nearest neighbours.

    Attributes
    ----------
    n_neighbours_ : int
        Size of each local neighbourhood.
    hat_matrix_ : ndarray of shape (n_samples, n_samples)
    effective_df_ : float
        Trace of the hat matrix (equivalent number of parameters).
    """
    def _prepare(self, x, y):
        span = self.config.span
        if not 0 < span <= 1:
            raise FitError(f"loess span must lie in (0, 1], got {span}")
        self.n_neighbours_ = int(np.floor(span * len(x)))
        if self.n_neighbours_ <= self.config.degree + 1:
            raise FitError(
                f"loess span={span:g} gives {self.n_neighbours_} neighbours, too few "
                f"for a degree {self.config.degree} local fit"
            )

    def _weights(self, x0):
        distance = np.abs(self.x_ - x0)
        radius = np.partition(distance, self.n_neighbours_ - 1)[self.n_neighbours_ - 1]
        if radius <= 0:
            return np.zeros_like(distance), 1.0
        w = np.clip(1 - (distance / radius) ** 3, 0, None) ** 3
        return w, radius


class KernelEstimator(_LocalPolynomialEstimator):
    """
    Gaussian kernel local polynomial regression.

    Attributes
    ----------
    bandwidth_ : float
        Kernel standard deviation in time steps.
    hat_matrix_ : ndarray of shape (n_samples, n_samples)
    effective_df_ : float
        Trace of the hat matrix.
    """
    def _select_bandwidth(self, x, y):
        rule = self.config.rule
        if rule == 'cv_ls':
            reg_type = 'lc' if self.config.degree == 0 else 'll'
            try:
                model = KernelReg(endog=y, exog=x, var_type='c', reg_type=reg_type, bw='cv_ls')
            except (ValueError, np.linalg.LinAlgError) as e:
                raise FitError(f"cv_ls bandwidth selection failed: {e}") from e
            return float(model.bw[0])
        if rule in BANDWIDTH_RULES:
            return float(BANDWIDTH_RULES[rule](x))
        raise FitError(
            f"unknown bandwidth rule {rule!r}, expected one of "
            f"{sorted(BANDWIDTH_RULES) + ['cv_ls']}"
        )

    def _prepare(self, x, y):
        if self.config.rule is not None:
            bandwidth = self._select_bandwidth(x, y)
        else:
            bandwidth = self.config.bandwidth
            if bandwidth is None or not bandwidth > 0:
                raise FitError(f"kernel bandwidth must be positive, got {bandwidth}")
            if self.config.relative:
                bandwidth = bandwidth * np.std(x, ddof=1)
        if not np.isfinite(bandwidth) or bandwidth <= 0:
            raise FitError(f"kernel bandwidth must be positive, got {bandwidth}")
        self.bandwidth_ = float(bandwidth)

    def _weights(self, x0):
        return np.exp(-0.5 * ((self.x_ - x0) / self.bandwidth_) ** 2), self.bandwidth_


ESTIMATORS = {
    FamilyTag.NATURAL_SPLINE: NaturalSplineEstimator,
    FamilyTag.SMOOTHING_SPLINE: SmoothingSplineEstimator,
    FamilyTag.LOESS: LoessEstimator,
    FamilyTag.KERNEL: KernelEstimator,
}


class FittedModel:
    """
    Handle on one smoother fitted to a series.

    Parameters
    ----------
    config : SmootherConfig
        Configuration the model was fitted with.
    estimator : estimator
        The fitted estimator.

    Examples
    --------
    >>> model = fit(series, LoessConfig(span=0.5, degree=2))
    >>> first = model.predict(1)
    >>> model.predict(0)
    Traceback (most recent call last):
    ...
    PredictionRangeError: time index 0 outside fitted range [1, 192]
    """
    def __init__(self, config: SmootherConfig, estimator: _TimeIndexSmoother):
        self.config = config
        self.estimator = estimator

    def __repr__(self):
        return f"FittedModel({self.config.label}, effective_df={self.effective_df:.2f})"

    @property
    def family(self) -> FamilyTag:
        return self.config.family

    @property
    def domain(self) -> tuple[float, float]:
        return self.estimator.domain_

    @property
    def effective_df(self) -> float:
        return self.estimator.effective_df_

    @property
    def fitted_values(self) -> ndarray:
        return self.estimator.fitted_values_

    def predict(self, time_index) -> float:
        return float(self.estimator.predict([time_index])[0])

    def predict_many(self, time_indices) -> ndarray:
        return self.estimator.predict(time_indices)


def fit(series: Series, config: SmootherConfig) -> FittedModel:
    """
    Fit one smoother configuration to a series.

    Parameters
    ----------
    series : Series
        Observations indexed by time step 1..N.
    config : SmootherConfig
        Family-specific configuration.

    Returns
    -------
    model : FittedModel

    Raises
    ------
    FitError
        If the configuration is invalid for the family or the numerical
        routine fails.
    """
    try:
        estimator_cls = ESTIMATORS[config.family]
    except (AttributeError, KeyError):
        raise FitError(f"unsupported smoother configuration {config!r}") from None
    estimator = estimator_cls(config=config)
    try:
        estimator.fit(series.time_index, series.values)
    except (TypeError, ValueError, np.linalg.LinAlgError) as e:
        raise FitError(f"{config.label}: {e}") from e
    logger.debug("Fitted %s (effective df %.2f)", config.label, estimator.effective_df_)
    return FittedModel(config, estimator)
