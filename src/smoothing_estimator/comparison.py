# Copyright (c) 2025 Alliance for Sustainable Energy, LLC and Nimish Telang
# SPDX-License-Identifier: BSD-3-Clause

"""Side-by-side assembly of the selected fit of each smoother family."""

from collections.abc import Mapping
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .selection import SelectionResult
from .series import Series
from .smoothing_estimator import FamilyTag

SUMMARY_COLUMNS = ['family', 'label', 'mse', 'effective_df', 'candidates', 'failed']


@dataclass(frozen=True)
class ComparisonReport:
    """
    Predicted curves of the selected configuration of each family.

    Parameters
    ----------
    predictions : DataFrame
        Indexed by time step, one column per family. Has ``observed`` and
        ``date`` columns when built with a series.
    summary : DataFrame
        One row per family with columns ``family``, ``label``, ``mse``,
        ``effective_df``, ``candidates`` and ``failed``.
    selections : dict
        The SelectionResult each row was built from, keyed by family.
    """
    predictions: pd.DataFrame
    summary: pd.DataFrame
    selections: dict

    @property
    def families(self) -> list[FamilyTag]:
        return list(self.selections)

    def curve(self, family) -> pd.Series:
        return self.predictions[str(FamilyTag(family))]


def compare(results: Mapping[FamilyTag, SelectionResult], series: Series | None = None) -> ComparisonReport:
    """
    Collect the selected model of every family over its full time range.

    Parameters
    ----------
    results : mapping of FamilyTag to SelectionResult
    series : Series or None, default=None
        When given, observed values and calendar dates are added to
        ``predictions``.

    Returns
    -------
    report : ComparisonReport

    Raises
    ------
    ValueError
        If ``results`` is empty or the selected models cover different time ranges.
    """
    if not results:
        raise ValueError("Nothing to compare: no selection results given.")

    domains = {tuple(result.best.model.domain) for result in results.values()}
    if len(domains) != 1:
        raise ValueError(f"Selected models were fitted on different time ranges: {sorted(domains)}")
    lo, hi = domains.pop()
    time_index = np.arange(int(lo), int(hi) + 1)

    columns = {}
    rows = []
    for family, result in results.items():
        best = result.best
        columns[str(FamilyTag(family))] = best.model.predict_many(time_index)
        rows.append({
            'family': str(FamilyTag(family)),
            'label': best.label,
            'mse': best.mse,
            'effective_df': best.complexity,
            'candidates': len(result.ranked),
            'failed': len(result.failed),
        })

    predictions = pd.DataFrame(columns, index=pd.Index(time_index, name='time'))
    if series is not None:
        if len(series) != len(time_index):
            raise ValueError(
                f"Series has {len(series)} observations, models cover {len(time_index)} time steps"
            )
        predictions.insert(0, 'observed', series.values)
        predictions.insert(0, 'date', series.dates.to_timestamp())
    summary = pd.DataFrame(rows, columns=SUMMARY_COLUMNS)
    return ComparisonReport(
        predictions=predictions,
        summary=summary,
        selections={FamilyTag(f): r for f, r in results.items()},
    )
