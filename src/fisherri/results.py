"""
Results Container Module

Defines the RIResults class for storing, displaying, and exporting
randomization inference results.

"""

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from .inference import InferenceInterval, SharpNullResult


class RIResults:
    """
    Container for ri_test results

    Stores the sharp-null test and, when a tau grid was supplied, the
    test-inversion interval. All core attributes are read-only properties.

    Attributes
    ----------
    observed_stat : float
        Test statistic on the observed data.
    pvalue : float
        Two-sided sharp-null p-value.
    pvalue_one_sided : float
        One-sided (upper) sharp-null p-value.
    distribution : np.ndarray
        Randomization distribution under the sharp null.
    ci_lower, ci_upper : float or None
        Fisher interval bounds (grid points), if computed.
    pvalue_function : pd.DataFrame or None
        Columns ``tau``, ``p_upper``, ``p_lower``, if computed.
    n_units, n_treated, n_control : int
        Design sizes.
    ri_method : str
        'exact' or 'sampled'.
    n_assignments : int
        Size of the randomization distribution.
    seed : int or None
        Seed used in sampled mode.
    """

    def __init__(
        self,
        sharp_null: SharpNullResult,
        metadata: Dict[str, Any],
        interval: Optional[InferenceInterval] = None,
    ):
        self._sharp_null = sharp_null
        self._interval = interval
        self._metadata = dict(metadata)

    @property
    def observed_stat(self) -> float:
        return self._sharp_null.observed_stat

    @property
    def pvalue(self) -> float:
        return self._sharp_null.p_value_two_sided

    @property
    def pvalue_one_sided(self) -> float:
        return self._sharp_null.p_value_one_sided

    @property
    def distribution(self) -> np.ndarray:
        return self._sharp_null.distribution.copy()

    @property
    def sharp_null(self) -> SharpNullResult:
        return self._sharp_null

    @property
    def interval(self) -> Optional[InferenceInterval]:
        return self._interval

    @property
    def ci_lower(self) -> Optional[float]:
        return None if self._interval is None else self._interval.lower

    @property
    def ci_upper(self) -> Optional[float]:
        return None if self._interval is None else self._interval.upper

    @property
    def alpha(self) -> Optional[float]:
        return None if self._interval is None else self._interval.alpha

    @property
    def pvalue_function(self) -> Optional[pd.DataFrame]:
        if self._interval is None or self._interval.pvalue_function is None:
            return None
        return self._interval.pvalue_function.copy()

    @property
    def statistic(self) -> str:
        return self._sharp_null.statistic

    @property
    def ri_method(self) -> str:
        return self._sharp_null.ri_method

    @property
    def n_assignments(self) -> int:
        return self._sharp_null.n_assignments

    @property
    def seed(self) -> Optional[int]:
        return self._sharp_null.seed

    @property
    def n_units(self) -> int:
        return self._metadata['N']

    @property
    def n_treated(self) -> int:
        return self._metadata['N_treated']

    @property
    def n_control(self) -> int:
        return self._metadata['N_control']

    @property
    def depvar(self) -> str:
        return self._metadata.get('depvar', 'y')

    @property
    def metadata(self) -> Dict[str, Any]:
        return dict(self._metadata)

    def summary(self) -> str:
        """Formatted results summary"""
        sep_line = "=" * 64
        sub_line = "-" * 64

        output = []
        output.append(sep_line)
        output.append("                fisherri Randomization Inference")
        output.append(sep_line)
        output.append(f"Dependent Variable: {self.depvar}")
        output.append(f"Number of units: {self.n_units}")
        output.append(f"Number of treated units: {self.n_treated}")
        output.append(f"Number of control units: {self.n_control}")
        seed_str = f", seed={self.seed}" if self.ri_method == 'sampled' else ""
        output.append(
            f"Assignments: {self.n_assignments} ({self.ri_method}{seed_str})"
        )
        output.append("")

        output.append(sub_line)
        output.append("Sharp Null H0: Y_i(1) = Y_i(0) for all i")
        output.append(sub_line)
        output.append(f"Statistic:          {self.statistic}")
        output.append(f"Observed:           {self.observed_stat:>10.4f}")
        output.append(f"P (one-sided):      {self.pvalue_one_sided:>10.4f}")
        output.append(f"P (two-sided):      {self.pvalue:>10.4f}")

        if self._interval is not None:
            level = 100 * (1 - self.alpha)
            output.append("")
            output.append(sub_line)
            output.append(f"Constant-effect interval (test inversion, {level:g}%)")
            output.append(sub_line)
            output.append(
                f"[{self.ci_lower:.4f}, {self.ci_upper:.4f}]  "
                f"(grid resolution {self._interval.grid_step:g})"
            )

        output.append(sep_line)
        return "\n".join(output)

    def __repr__(self) -> str:
        return (
            f"RIResults(observed_stat={self.observed_stat:.4f}, "
            f"pvalue={self.pvalue:.4f}, method='{self.ri_method}', "
            f"N={self.n_units})"
        )

    def __str__(self) -> str:
        return self.summary()

    def to_dict(self) -> Dict[str, Any]:
        out = {
            'observed_stat': self.observed_stat,
            'pvalue': self.pvalue,
            'pvalue_one_sided': self.pvalue_one_sided,
            'statistic': self.statistic,
            'ri_method': self.ri_method,
            'n_assignments': self.n_assignments,
            'seed': self.seed,
            'n_units': self.n_units,
            'n_treated': self.n_treated,
            'n_control': self.n_control,
        }
        if self._interval is not None:
            out.update({
                'ci_lower': self.ci_lower,
                'ci_upper': self.ci_upper,
                'alpha': self.alpha,
                'grid_step': self._interval.grid_step,
            })
        return out

    def to_dataframe(self) -> pd.DataFrame:
        """One-row summary table."""
        return pd.DataFrame([self.to_dict()])

    def to_csv(self, path: str, what: str = 'summary'):
        """
        Export results to CSV.

        Parameters
        ----------
        path : str
            Output file.
        what : {'summary', 'distribution', 'pvalue_function'}
            Which table to write.
        """
        if what == 'summary':
            self.to_dataframe().to_csv(path, index=False)
        elif what == 'distribution':
            pd.DataFrame({'statistic': self._sharp_null.distribution}).to_csv(
                path, index=False
            )
        elif what == 'pvalue_function':
            if self.pvalue_function is None:
                raise ValueError("pvalue_function is not available for CSV export")
            self.pvalue_function.to_csv(path, index=False)
        else:
            raise ValueError(
                f"what must be 'summary', 'distribution' or 'pvalue_function', got '{what}'"
            )
