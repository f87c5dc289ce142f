"""
End-to-end tests for the ri_test DataFrame entry point and RIResults.
"""

import logging

import numpy as np
import pandas as pd
import pytest

import fisherri
from fisherri import RIResults, ri_test
from fisherri.exceptions import (
    CombinatorialOverflowError,
    InvalidParameterError,
    MissingRequiredColumnError,
    NoIntervalError,
)


class TestRiTest:

    def test_sharp_null_only(self, fertilizer_data, fertilizer_observed_diff):
        res = ri_test(fertilizer_data, y='yield', d='w', ivar='plot')
        assert isinstance(res, RIResults)
        assert res.observed_stat == pytest.approx(fertilizer_observed_diff)
        assert res.pvalue == pytest.approx(292 / 462)
        assert res.pvalue_one_sided == pytest.approx(144 / 462)
        assert res.n_assignments == 462
        assert res.ri_method == 'exact'
        assert res.interval is None
        assert res.ci_lower is None
        assert res.ci_upper is None
        assert res.pvalue_function is None

    def test_with_interval(self, fertilizer_data):
        res = ri_test(fertilizer_data, y='yield', d='w',
                      tau_start=-15, tau_end=15, tau_step=1)
        assert (res.ci_lower, res.ci_upper) == (-6.0, 10.0)
        assert res.alpha == 0.05
        assert len(res.pvalue_function) == 31

    def test_design_sizes(self, fertilizer_data):
        res = ri_test(fertilizer_data, y='yield', d='w')
        assert (res.n_units, res.n_treated, res.n_control) == (11, 6, 5)
        assert res.depvar == 'yield'
        assert res.metadata['treatment'] == 'w'

    def test_sampled_reproducible(self, fertilizer_data):
        a = ri_test(fertilizer_data, y='yield', d='w', ri_method='sampled',
                    rireps=300, seed=11)
        b = ri_test(fertilizer_data, y='yield', d='w', ri_method='sampled',
                    rireps=300, seed=11)
        assert a.pvalue == b.pvalue
        assert a.seed == 11
        np.testing.assert_array_equal(a.distribution, b.distribution)

    def test_auto_method_small_design(self, fertilizer_data):
        res = ri_test(fertilizer_data, y='yield', d='w', ri_method='auto')
        assert res.ri_method == 'exact'

    def test_rank_statistic(self, fertilizer_data):
        res = ri_test(fertilizer_data, y='yield', d='w', statistic='rank_sum')
        assert res.statistic == 'rank_sum'

    def test_missing_column(self, fertilizer_data):
        with pytest.raises(MissingRequiredColumnError, match="'treat'"):
            ri_test(fertilizer_data, y='yield', d='treat')

    def test_overflow(self):
        data = pd.DataFrame({'d': [1] * 20 + [0] * 20, 'y': np.arange(40.0)})
        with pytest.raises(CombinatorialOverflowError):
            ri_test(data, y='y', d='d', max_assignments=1000)

    def test_narrow_grid(self, fertilizer_data):
        with pytest.raises(NoIntervalError):
            ri_test(fertilizer_data, y='yield', d='w', tau_start=-1, tau_end=1)

    def test_keyword_only_options(self, fertilizer_data):
        with pytest.raises(TypeError):
            ri_test(fertilizer_data, 'yield', 'w', 'plot', 'mean_difference')

    def test_invalid_method(self, fertilizer_data):
        with pytest.raises(InvalidParameterError):
            ri_test(fertilizer_data, y='yield', d='w', ri_method='permute')

    def test_logs_sharp_null(self, fertilizer_data, caplog):
        with caplog.at_level(logging.INFO, logger='fisherri'):
            ri_test(fertilizer_data, y='yield', d='w')
        assert any('Sharp-null test' in r.getMessage() for r in caplog.records)


class TestRIResults:

    @pytest.fixture
    def results(self, fertilizer_data):
        return ri_test(fertilizer_data, y='yield', d='w', ivar='plot',
                       tau_start=-15, tau_end=15)

    def test_read_only(self, results):
        with pytest.raises(AttributeError):
            results.pvalue = 0.0

    def test_distribution_is_copy(self, results):
        dist = results.distribution
        dist[:] = 0.0
        assert np.any(results.distribution != 0.0)

    def test_summary(self, results):
        text = results.summary()
        assert 'Dependent Variable: yield' in text
        assert 'Number of units: 11' in text
        assert '[-6.0000, 10.0000]' in text
        assert str(results) == text

    def test_summary_without_interval(self, fertilizer_data):
        text = ri_test(fertilizer_data, y='yield', d='w').summary()
        assert 'interval' not in text

    def test_repr(self, results):
        assert repr(results).startswith('RIResults(')
        assert 'N=11' in repr(results)

    def test_to_dict(self, results):
        out = results.to_dict()
        assert out['n_assignments'] == 462
        assert out['ci_lower'] == -6.0
        assert out['ci_upper'] == 10.0
        assert out['grid_step'] == 1.0

    def test_to_dataframe(self, results):
        frame = results.to_dataframe()
        assert len(frame) == 1
        assert frame.loc[0, 'pvalue'] == pytest.approx(results.pvalue)

    @pytest.mark.parametrize('what, n_rows', [
        ('summary', 1),
        ('distribution', 462),
        ('pvalue_function', 31),
    ])
    def test_to_csv(self, results, tmp_path, what, n_rows):
        path = tmp_path / f'{what}.csv'
        results.to_csv(str(path), what=what)
        assert len(pd.read_csv(path)) == n_rows

    def test_to_csv_invalid(self, results, tmp_path):
        with pytest.raises(ValueError):
            results.to_csv(str(tmp_path / 'x.csv'), what='plot')

    def test_to_csv_pvalue_function_unavailable(self, fertilizer_data, tmp_path):
        res = ri_test(fertilizer_data, y='yield', d='w')
        with pytest.raises(ValueError):
            res.to_csv(str(tmp_path / 'x.csv'), what='pvalue_function')


class TestPublicAPI:

    def test_version(self):
        assert fisherri.__version__ == '0.1.0'

    @pytest.mark.parametrize('name', [
        'ri_test', 'sharp_null_test', 'fisher_interval', 'pvalue_function',
        'ate_unbiasedness_check', 'exact_assignments', 'sample_assignments',
        'MeanDifference', 'ScienceTable', 'FisherRIError',
    ])
    def test_exports(self, name):
        assert name in fisherri.__all__
        assert hasattr(fisherri, name)
