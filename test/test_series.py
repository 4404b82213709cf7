# Copyright (c) 2025 Alliance for Sustainable Energy, LLC and Nimish Telang
# SPDX-License-Identifier: BSD-3-Clause

"""
Test Series construction and loading.

Tests that:
1. The time index runs 1..N and observed(t) maps onto it
2. Missing, non-finite and multi-dimensional values are rejected
3. DataFrames must carry a regularly spaced monthly DatetimeIndex
4. The bundled UK driver deaths series loads with its calendar range
"""

import pytest
import numpy as np
import pandas as pd
from smoothing_estimator import Series, load_uk_driver_deaths


def test_time_index_and_observed():
    s = Series([3.0, 1.0, 2.0])
    np.testing.assert_array_equal(s.time_index, [1, 2, 3])
    assert len(s) == 3
    assert s.observed(1) == 3.0
    assert s.observed(3) == 2.0

    with pytest.raises(IndexError):
        s.observed(0)
    with pytest.raises(IndexError):
        s.observed(4)


def test_values_are_read_only_copy():
    raw = np.array([1.0, 2.0, 3.0])
    s = Series(raw)
    raw[0] = 100.0
    assert s.observed(1) == 1.0
    with pytest.raises(ValueError):
        s.values[0] = 5.0


@pytest.mark.parametrize("values", [
    [1.0, np.nan, 3.0],
    [1.0, np.inf, 3.0],
    [],
    [[1.0, 2.0], [3.0, 4.0]],
])
def test_invalid_values_rejected(values):
    with pytest.raises(ValueError):
        Series(values)


def test_dates_start_from_period():
    s = Series([1.0, 2.0, 3.0], start='1980-11')
    assert s.start == pd.Period('1980-11', freq='M')
    assert list(s.dates.astype(str)) == ['1980-11', '1980-12', '1981-01']


def test_to_frame_columns():
    s = Series([5.0, 6.0], name='deaths')
    df = s.to_frame()
    assert list(df.columns) == ['time', 'date', 'deaths']
    assert df['time'].tolist() == [1, 2]


def test_from_frame_requires_datetime_index():
    df = pd.DataFrame({'deaths': [1.0, 2.0, 3.0]})
    with pytest.raises(ValueError, match="DatetimeIndex"):
        Series.from_frame(df)


def test_from_frame_rejects_irregular_index():
    index = pd.DatetimeIndex(['2020-01-01', '2020-02-01', '2020-02-15', '2020-05-01'])
    df = pd.DataFrame({'deaths': [1.0, 2.0, 3.0, 4.0]}, index=index)
    with pytest.raises(ValueError, match="regularly spaced"):
        Series.from_frame(df)


def test_from_frame_rejects_missing_values():
    index = pd.date_range('2020-01-01', periods=4, freq='MS')
    df = pd.DataFrame({'deaths': [1.0, np.nan, 3.0, 4.0]}, index=index)
    with pytest.raises(ValueError, match="missing"):
        Series.from_frame(df)


@pytest.mark.parametrize("freq", ['W', 'D', 'QS', '2MS'])
def test_from_frame_rejects_non_monthly(freq):
    index = pd.date_range('2020-01-05', periods=6, freq=freq)
    df = pd.DataFrame({'deaths': np.arange(6.0)}, index=index)
    with pytest.raises(ValueError, match="monthly"):
        Series.from_frame(df)


def test_from_frame_accepts_month_end_dates():
    index = pd.DatetimeIndex(['2020-01-31', '2020-02-29', '2020-03-31', '2020-04-30'])
    df = pd.DataFrame({'deaths': [1.0, 2.0, 3.0, 4.0]}, index=index)
    s = Series.from_frame(df)
    assert s.start == pd.Period('2020-01', freq='M')


def test_from_frame_monthly():
    index = pd.date_range('1975-06-01', periods=4, freq='MS')
    df = pd.DataFrame({'other': [0.0] * 4, 'deaths': [1.0, 2.0, 3.0, 4.0]}, index=index)
    s = Series.from_frame(df, column='deaths')
    assert s.name == 'deaths'
    assert s.start == pd.Period('1975-06', freq='M')
    np.testing.assert_array_equal(s.values, [1.0, 2.0, 3.0, 4.0])


def test_from_csv_round_trip(tmp_path, uk_series):
    path = tmp_path / 'series.csv'
    uk_series.to_frame()[['date', 'deaths']].to_csv(path, index=False)
    loaded = Series.from_csv(path)
    assert loaded.name == 'deaths'
    assert loaded.start == uk_series.start
    np.testing.assert_array_equal(loaded.values, uk_series.values)


def test_load_uk_driver_deaths():
    s = load_uk_driver_deaths()
    assert len(s) == 192
    assert s.name == 'deaths'
    assert s.dates[0] == pd.Period('1969-01', freq='M')
    assert s.dates[-1] == pd.Period('1984-12', freq='M')
    assert s.observed(1) == 1687.0
    assert s.observed(192) == 1763.0
    assert s.std() > 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
