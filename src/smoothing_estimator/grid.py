# Copyright (c) 2025 Alliance for Sustainable Energy, LLC and Nimish Telang
# SPDX-License-Identifier: BSD-3-Clause

"""
Grid evaluation: fit every configuration of one smoother family and score it.

Each configuration is fitted to the full series and scored by its in-sample
mean squared error. A failing configuration is recorded with its error and
does not stop its siblings.
"""

from dataclasses import dataclass
import logging
import multiprocessing
from multiprocessing import connection
import time

import numpy as np

from .exceptions import FitError, FitTimeoutError
from .series import Series
from .smoothing_estimator import FamilyTag, FittedModel, SmootherConfig, fit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoredFit:
    """
    One configuration's fitted model and score, or the reason it failed.

    Parameters
    ----------
    config : SmootherConfig
        The evaluated configuration.
    model : FittedModel or None
        Fitted model, None if fitting failed.
    mse : float or None
        In-sample mean squared error, None if fitting failed.
    error : FitError or None
        Failure reason, None on success.
    """
    config: SmootherConfig
    model: FittedModel | None = None
    mse: float | None = None
    error: FitError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def complexity(self) -> float | None:
        """Effective degrees of freedom of the fitted model."""
        return self.model.effective_df if self.model is not None else None

    @property
    def label(self) -> str:
        return self.config.label


def mean_squared_error(model: FittedModel, series: Series) -> float:
    """Mean of ``(predict(t) - observed(t))^2`` over every time step, in float64."""
    predictions = np.asarray(model.predict_many(series.time_index), dtype=np.float64)
    return float(np.mean((predictions - series.values) ** 2, dtype=np.float64))


def score_config(series: Series, config: SmootherConfig) -> ScoredFit:
    """
    Fit and score a single configuration.

    Any ``FitError`` is captured in the returned ScoredFit instead of raised.
    """
    try:
        model = fit(series, config)
        mse = mean_squared_error(model, series)
        if not np.isfinite(mse):
            raise FitError(f"{config.label} produced non-finite predictions")
    except FitError as e:
        logger.warning("Fit failed for %s: %s", config.label, e)
        return ScoredFit(config=config, error=e)
    logger.debug("%s: mse=%.4f, effective df=%.2f", config.label, mse, model.effective_df)
    return ScoredFit(config=config, model=model, mse=mse)


def _check_family(family, configs):
    family = FamilyTag(family)
    for config in configs:
        config_family = getattr(config, 'family', None)
        if config_family != family:
            raise ValueError(
                f"Configuration {config!r} belongs to family {config_family!r}, "
                f"expected '{family}'"
            )
    return family


# sent by a worker once its arguments are unpickled; the fit's clock starts here
_STARTED = 'started'


def _run_fit(conn, series, config):
    conn.send(_STARTED)
    try:
        outcome = score_config(series, config)
    except Exception as e:
        outcome = e
    conn.send(outcome)
    conn.close()


def _stop(process, conn):
    if process.is_alive():
        process.terminate()
    process.join()
    conn.close()


def _evaluate_parallel(series, configs, n_jobs, timeout, mp_context=None):
    """
    Fit configurations in at most ``n_jobs`` worker processes, one process per fit.

    A fit still running ``timeout`` seconds after it started is terminated and
    recorded as ``FitTimeoutError``; its slot goes to the next configuration.
    """
    ctx = mp_context or multiprocessing.get_context()
    results: list[ScoredFit | None] = [None] * len(configs)
    queued = list(range(len(configs)))
    running = {}  # ix -> [process, connection, start time or None]
    try:
        while queued or running:
            while queued and len(running) < n_jobs:
                ix = queued.pop(0)
                receiver, sender = ctx.Pipe(duplex=False)
                process = ctx.Process(target=_run_fit, args=(sender, series, configs[ix]), daemon=True)
                process.start()
                sender.close()
                running[ix] = [process, receiver, None]

            wait_for = None
            started = [entry[2] for entry in running.values() if entry[2] is not None]
            if timeout is not None and started:
                wait_for = max(min(started) + timeout - time.monotonic(), 0.0)
            ready = connection.wait([entry[1] for entry in running.values()], timeout=wait_for)

            for ix in [ix for ix, entry in running.items() if entry[1] in ready]:
                process, conn, _ = running[ix]
                try:
                    outcome = conn.recv()
                except EOFError:
                    process.join()
                    outcome = FitError(f"worker for {configs[ix].label} exited with code {process.exitcode}")
                if isinstance(outcome, str) and outcome == _STARTED:
                    running[ix][2] = time.monotonic()
                    continue
                del running[ix]
                _stop(process, conn)
                if isinstance(outcome, ScoredFit):
                    results[ix] = outcome
                elif isinstance(outcome, FitError):
                    logger.warning("Fit failed for %s: %s", configs[ix].label, outcome)
                    results[ix] = ScoredFit(config=configs[ix], error=outcome)
                else:
                    raise outcome

            if timeout is not None:
                now = time.monotonic()
                expired = [
                    ix for ix, (_, _, start) in running.items()
                    if start is not None and now - start >= timeout
                ]
                for ix in expired:
                    process, conn, _ = running.pop(ix)
                    _stop(process, conn)
                    error = FitTimeoutError(f"{configs[ix].label} did not finish within {timeout} s")
                    logger.warning("Fit failed for %s: %s", configs[ix].label, error)
                    results[ix] = ScoredFit(config=configs[ix], error=error)
    finally:
        for process, conn, _ in running.values():
            _stop(process, conn)
    return results


def evaluate(series: Series, family, configs, *, n_jobs: int = 1, timeout: float | None = None,
             mp_context=None) -> list[ScoredFit]:
    """
    Fit and score every configuration of one smoother family.

    Parameters
    ----------
    series : Series
        Observations indexed by time step 1..N.
    family : FamilyTag or str
        Family every configuration must belong to.
    configs : sequence of SmootherConfig
        Configurations to evaluate.
    n_jobs : int, default=1
        Number of worker processes. With 1 and no timeout the configurations
        are fitted in the calling process.
    timeout : float or None, default=None
        Seconds allowed per fit, counted from when its worker process starts
        fitting. A fit that has not finished in time is terminated and
        recorded as ``FitTimeoutError``; the remaining configurations still run.
    mp_context : multiprocessing context or None, default=None
        Context used to start worker processes. Defaults to the platform's
        default start method.

    Returns
    -------
    scored : list of ScoredFit
        One entry per configuration, in the order of ``configs``.

    Raises
    ------
    ValueError
        If a configuration does not belong to ``family`` or ``n_jobs`` < 1.
    """
    configs = list(configs)
    family = _check_family(family, configs)
    if n_jobs < 1:
        raise ValueError(f"n_jobs must be at least 1, got {n_jobs}")

    logger.info("Evaluating %d %s configuration(s)", len(configs), family)
    if n_jobs == 1 and timeout is None:
        scored = [score_config(series, config) for config in configs]
    else:
        scored = _evaluate_parallel(series, configs, n_jobs, timeout, mp_context=mp_context)

    n_failed = sum(not s.ok for s in scored)
    if n_failed:
        logger.info("%d of %d %s configuration(s) failed", n_failed, len(scored), family)
    return scored
