# Copyright (c) 2025 Alliance for Sustainable Energy, LLC and Nimish Telang
# SPDX-License-Identifier: BSD-3-Clause

"""
Immutable monthly time series used as input to every smoother.

The series is indexed by an integer time step ``1..N``. Calendar information
is kept only for reporting (plots, tables).
"""

from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
import logging

import numpy as np
import pandas as pd
from pandas.tseries.frequencies import to_offset
from pandas.tseries.offsets import BusinessMonthBegin, BusinessMonthEnd, MonthBegin, MonthEnd

logger = logging.getLogger(__name__)

UK_DRIVER_DEATHS_FILE = 'uk_driver_deaths.csv'

MONTHLY_OFFSETS = (MonthBegin, MonthEnd, BusinessMonthBegin, BusinessMonthEnd)


@dataclass(frozen=True, eq=False)
class Series:
    """
    Ordered numeric observations indexed by time step 1..N.

    Parameters
    ----------
    values : array-like of shape (n_samples,)
        Observations in time order. Must be finite (no missing values).
    start : pandas.Period, default=Period('1969-01', 'M')
        Calendar period of the first observation.
    name : str, default='value'
        Name of the observed quantity.

    Examples
    --------
    >>> s = Series([3.0, 1.0, 2.0])
    >>> s.time_index
    array([1, 2, 3])
    >>> s.observed(2)
    1.0
    """
    values: np.ndarray
    start: pd.Period = field(default_factory=lambda: pd.Period('1969-01', freq='M'))
    name: str = 'value'

    def __post_init__(self):
        values = np.array(self.values, dtype=float)
        if values.ndim != 1:
            raise ValueError(f"Series values must be one-dimensional, got shape {values.shape}")
        if len(values) == 0:
            raise ValueError("Series must contain at least one observation.")
        if not np.all(np.isfinite(values)):
            raise ValueError("Series values must be finite (no missing values).")
        values.setflags(write=False)
        # frozen dataclass: bypass __setattr__ to store the normalized copy
        object.__setattr__(self, 'values', values)
        if not isinstance(self.start, pd.Period):
            object.__setattr__(self, 'start', pd.Period(self.start, freq='M'))

    def __len__(self):
        return len(self.values)

    @property
    def time_index(self) -> np.ndarray:
        """Integer time steps 1..N."""
        return np.arange(1, len(self.values) + 1)

    @property
    def dates(self) -> pd.PeriodIndex:
        return pd.period_range(start=self.start, periods=len(self.values), freq=self.start.freq)

    def observed(self, time_index: int) -> float:
        """Observed value at a time step in [1, N]."""
        if not 1 <= time_index <= len(self.values):
            raise IndexError(f"time index {time_index} outside [1, {len(self.values)}]")
        return float(self.values[int(time_index) - 1])

    def std(self) -> float:
        """Sample standard deviation of the observations."""
        return float(np.std(self.values, ddof=1))

    def to_frame(self) -> pd.DataFrame:
        """Return a DataFrame with columns ``time``, ``date`` and the series name."""
        return pd.DataFrame({
            'time': self.time_index,
            'date': self.dates.to_timestamp(),
            self.name: self.values,
        })

    @classmethod
    def from_frame(cls, df: pd.DataFrame, column=None, name=None):
        """
        Build a series from a DataFrame with a DatetimeIndex.

        Parameters
        ----------
        df : DataFrame
            Data with a regularly spaced monthly DatetimeIndex.
        column : str or None, default=None
            Column holding the observations. Defaults to the first column.
        name : str or None, default=None
            Series name. Defaults to the column name.

        Raises
        ------
        ValueError
            If the index is not a DatetimeIndex, is not regularly spaced or not
            monthly, or the column contains missing values.
        """
        if not isinstance(df.index, pd.DatetimeIndex):
            raise ValueError(
                "DataFrame must have a DatetimeIndex. "
                f"Got {type(df.index).__name__} instead."
            )
        if len(df) < 3:
            raise ValueError("Need at least 3 timestamps to infer frequency.")
        inferred_freq = pd.infer_freq(df.index)
        if inferred_freq is None:
            raise ValueError(
                "Could not infer frequency from timestamps. "
                "Timestamps must be regularly spaced."
            )
        offset = to_offset(inferred_freq)
        if not isinstance(offset, MONTHLY_OFFSETS) or offset.n != 1:
            raise ValueError(
                f"Series must be monthly, got timestamps with frequency '{inferred_freq}'."
            )
        if column is None:
            column = df.columns[0]
        values = df[column].to_numpy(dtype=float)
        if np.any(np.isnan(values)):
            raise ValueError(f"Column '{column}' contains missing values.")
        start = df.index[0].to_period('M')
        logger.debug("Loaded %d observations of '%s' (freq=%s)", len(values), column, inferred_freq)
        return cls(values=values, start=start, name=name or str(column))

    @classmethod
    def from_csv(cls, path, column=None, name=None):
        """Load a series from a CSV file whose first column holds dates."""
        df = pd.read_csv(path, parse_dates=[0], index_col=0)
        return cls.from_frame(df, column=column, name=name)


def load_uk_driver_deaths() -> Series:
    """
    Load the bundled monthly UK driver deaths series, January 1969 to December 1984.

    Returns
    -------
    series : Series
        192 monthly observations named ``deaths``.
    """
    data_file = resources.files('smoothing_estimator') / 'data' / UK_DRIVER_DEATHS_FILE
    with resources.as_file(data_file) as path:
        return Series.from_csv(Path(path), column='deaths')
