"""
Potential outcomes tests.

Validates the imputed science table under constant-effect hypotheses and the
observed design container built from arrays or DataFrames.
"""

import warnings

import numpy as np
import pandas as pd
import pytest
from hypothesis import given, settings, strategies as st

from fisherri.exceptions import (
    DimensionMismatchError,
    InvalidDesignError,
    InvalidParameterError,
    MissingRequiredColumnError,
)
from fisherri.science import Design, ScienceTable
from fisherri.statistics import MeanDifference
from fisherri.warnings_categories import DataWarning


class TestScienceTable:

    def test_imputation_rule(self):
        table = ScienceTable.from_observed([1, 0, 1], [10.0, 4.0, 7.0], tau=3.0)
        # Treated: y1 observed, y0 = y - tau. Control: y0 observed, y1 = y + tau.
        np.testing.assert_array_equal(table.y1, [10.0, 7.0, 7.0])
        np.testing.assert_array_equal(table.y0, [7.0, 4.0, 4.0])
        np.testing.assert_allclose(table.unit_effects, 3.0)
        assert table.ate == pytest.approx(3.0)

    def test_sharp_null(self):
        table = ScienceTable.sharp_null([1.0, 2.0, 3.0])
        np.testing.assert_array_equal(table.y0, table.y1)
        assert table.ate == 0.0

    @settings(max_examples=60, deadline=None)
    @given(
        st.lists(st.floats(-100, 100), min_size=4, max_size=15),
        st.floats(-50, 50),
        st.randoms(use_true_random=False),
    )
    def test_round_trips_observed_assignment(self, y, tau, random):
        n = len(y)
        n_treated = random.randint(1, n - 1)
        d = np.zeros(n, dtype=bool)
        d[random.sample(range(n), n_treated)] = True
        y = np.asarray(y)

        table = ScienceTable.from_observed(d, y, tau)
        np.testing.assert_array_equal(table.observed_outcomes(d), y)

        stat = MeanDifference()
        assert stat(d, table) == stat(d, y)

    def test_fertilizer_round_trip(self, fertilizer_arrays, fertilizer_observed_diff):
        d, y = fertilizer_arrays
        d = d.astype(bool)
        for tau in (-15.0, -5.0, 0.0, 2.5, 9.0):
            table = ScienceTable.from_observed(d, y, tau)
            assert MeanDifference()(d, table) == pytest.approx(fertilizer_observed_diff, abs=1e-12)

    def test_other_assignment_uses_imputed_values(self, fertilizer_arrays):
        d, y = fertilizer_arrays
        d = d.astype(bool)
        flipped = ~d
        flipped[np.flatnonzero(d)[0]] = True  # 6 treated
        t0 = MeanDifference()(flipped, ScienceTable.from_observed(d, y, 0.0))
        t5 = MeanDifference()(flipped, ScienceTable.from_observed(d, y, 5.0))
        assert t5 != pytest.approx(t0)

    def test_length_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            ScienceTable.from_observed([1, 0], [1.0, 2.0, 3.0], tau=1.0)
        with pytest.raises(DimensionMismatchError):
            ScienceTable(y0=[1.0, 2.0], y1=[1.0])

    def test_observed_outcomes_length_mismatch(self):
        table = ScienceTable.sharp_null([1.0, 2.0, 3.0])
        with pytest.raises(DimensionMismatchError):
            table.observed_outcomes([True, False])


class TestDesign:

    def test_from_arrays(self, fertilizer_arrays):
        d, y = fertilizer_arrays
        design = Design.from_arrays(d, y)
        assert design.n_total == 11
        assert design.n_treated == 6
        assert design.n_control == 5
        assert design.treatment.dtype == bool

    def test_immutable(self, fertilizer_arrays):
        design = Design.from_arrays(*fertilizer_arrays)
        with pytest.raises(ValueError):
            design.outcome[0] = 0.0

    def test_does_not_freeze_caller_arrays(self):
        d = np.array([True, False, True, False])
        y = np.array([1.0, 2.0, 3.0, 4.0])
        Design(treatment=d, outcome=y)
        d[0] = False
        y[0] = 9.0

    @pytest.mark.parametrize('d', [[0, 0, 0, 0], [1, 1, 1, 1]])
    def test_requires_both_groups(self, d):
        with pytest.raises(InvalidDesignError):
            Design.from_arrays(d, [1.0, 2.0, 3.0, 4.0])

    def test_non_binary_treatment(self):
        with pytest.raises(InvalidParameterError):
            Design.from_arrays([0, 1, 2, 1], [1.0, 2.0, 3.0, 4.0])

    def test_non_finite_outcome(self):
        with pytest.raises(InvalidParameterError):
            Design.from_arrays([0, 1, 0, 1], [1.0, np.nan, 3.0, 4.0])

    def test_from_dataframe(self, fertilizer_data):
        design = Design.from_dataframe(fertilizer_data, y='yield', d='w', ivar='plot')
        assert list(design.index) == list(range(1, 12))
        assert design.n_treated == 6

    def test_from_dataframe_missing_column(self, fertilizer_data):
        with pytest.raises(MissingRequiredColumnError, match="'harvest'"):
            Design.from_dataframe(fertilizer_data, y='harvest', d='w')

    def test_from_dataframe_drops_missing(self, fertilizer_data):
        data = fertilizer_data.copy()
        data.loc[0, 'yield'] = np.nan
        with pytest.warns(DataWarning, match='Dropping 1 row'):
            design = Design.from_dataframe(data, y='yield', d='w', ivar='plot')
        assert design.n_total == 10
        assert 1 not in design.index

    def test_from_dataframe_duplicate_ids(self, fertilizer_data):
        data = fertilizer_data.copy()
        data.loc[1, 'plot'] = 1
        with pytest.raises(InvalidParameterError, match='not unique'):
            Design.from_dataframe(data, y='yield', d='w', ivar='plot')

    def test_from_dataframe_non_numeric_outcome(self, fertilizer_data):
        data = fertilizer_data.copy()
        data['yield'] = data['yield'].astype(str)
        with pytest.raises(InvalidParameterError, match='numeric'):
            Design.from_dataframe(data, y='yield', d='w')

    def test_from_dataframe_mixed_type_treatment(self, fertilizer_data):
        data = fertilizer_data.copy()
        data['w'] = data['w'].astype(object)
        data.loc[2, 'w'] = 'x'
        with pytest.raises(InvalidParameterError, match='binary'):
            Design.from_dataframe(data, y='yield', d='w')

    def test_from_dataframe_no_warning_when_clean(self, fertilizer_data):
        with warnings.catch_warnings():
            warnings.simplefilter('error', DataWarning)
            Design.from_dataframe(fertilizer_data, y='yield', d='w')

    def test_science_table_shortcut(self, fertilizer_arrays):
        design = Design.from_arrays(*fertilizer_arrays)
        table = design.science_table(2.0)
        assert table.ate == pytest.approx(2.0)

    def test_to_dataframe(self, fertilizer_arrays):
        frame = Design.from_arrays(*fertilizer_arrays).to_dataframe()
        assert list(frame.columns) == ['d', 'y']
        assert isinstance(frame, pd.DataFrame)
        assert frame['d'].sum() == 6
