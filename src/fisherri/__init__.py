"""
fisherri: Fisherian Randomization Inference for Randomized Experiments
=======================================================================

Python implementation of randomization inference for completely randomized
experiments with a fixed number of treated units, following Fisher's approach
to sharp null hypotheses as presented in Imbens and Rubin (2015).

Key Features
------------
- Allocation enumeration: every assignment of the treated labels (exact
  mode) or uniform Monte Carlo draws (sampled mode), lazily generated
- Pluggable test statistics: difference in means (default), difference in
  mean ranks, OLS coefficient with fixed covariates, or any subclass of
  ``TestStatistic``
- Sharp-null test with one- and two-sided p-values
- Interval for a constant treatment effect by inverting sharp nulls
  H_tau: Y_i(1) - Y_i(0) = tau over a grid
- Repeated-randomization check of the unbiasedness of the difference in means
- Optional parallel evaluation with results identical to serial runs

Main Components
---------------
ri_test : function
    DataFrame entry point. See ``help(ri_test)``.
sharp_null_test, fisher_interval, pvalue_function, ate_unbiasedness_check
    Array-level procedures.
RIResults : class
    Results container with ``summary()`` and export methods.
Exception hierarchy : module
    Typed exceptions inheriting from ``FisherRIError``.

Quick Start
-----------
>>> import pandas as pd
>>> from fisherri import ri_test
>>>
>>> data = pd.DataFrame({
...     'w': [0, 0, 1, 1, 0, 1, 1, 1, 0, 0, 1],
...     'yield': [29.2, 11.4, 26.6, 23.7, 25.3, 28.5,
...               14.2, 17.9, 16.5, 21.1, 24.3],
... })
>>> results = ri_test(data, y='yield', d='w', tau_start=-15, tau_end=15)
>>> print(results.summary())

References
----------
Imbens, G. W., and Rubin, D. B. (2015). Causal Inference for Statistics,
Social, and Biomedical Sciences: An Introduction. Cambridge University Press.
"""

# Export main function
from .core import ri_test

# Export results class
from .results import RIResults

# Export array-level procedures
from .allocation import (
    ExactAssignments,
    SampledAssignments,
    count_assignments,
    exact_assignments,
    iter_assignments,
    sample_assignments,
)
from .inference import (
    ATECheckResult,
    InferenceInterval,
    SharpNullResult,
    ate_unbiasedness_check,
    fisher_interval,
    invert_pvalue_function,
    pvalue_function,
    randomization_distribution,
    sharp_null_test,
)
from .science import Design, ScienceTable
from .statistics import (
    MeanDifference,
    OLSCoefficient,
    RankSumDifference,
    TestStatistic,
    evaluate,
    get_statistic,
)

# Export exception classes
from .exceptions import (
    CombinatorialOverflowError,
    DimensionMismatchError,
    EmptyDistributionError,
    FisherRIError,
    InvalidDesignError,
    InvalidParameterError,
    MissingRequiredColumnError,
    NoIntervalError,
)

# Export warning classes
from .warnings_categories import (
    DataWarning,
    FisherRIWarning,
    GridResolutionWarning,
    SmallSampleWarning,
)

__version__ = '0.1.0'

__all__ = [
    # Main function
    'ri_test',
    # Results classes
    'RIResults',
    'SharpNullResult',
    'InferenceInterval',
    'ATECheckResult',
    # Procedures
    'sharp_null_test',
    'fisher_interval',
    'pvalue_function',
    'invert_pvalue_function',
    'randomization_distribution',
    'ate_unbiasedness_check',
    # Allocation
    'ExactAssignments',
    'SampledAssignments',
    'count_assignments',
    'exact_assignments',
    'sample_assignments',
    'iter_assignments',
    # Potential outcomes
    'Design',
    'ScienceTable',
    # Statistics
    'TestStatistic',
    'MeanDifference',
    'RankSumDifference',
    'OLSCoefficient',
    'get_statistic',
    'evaluate',
    # Exception classes
    'FisherRIError',
    'InvalidParameterError',
    'InvalidDesignError',
    'CombinatorialOverflowError',
    'DimensionMismatchError',
    'EmptyDistributionError',
    'NoIntervalError',
    'MissingRequiredColumnError',
    # Warning classes
    'FisherRIWarning',
    'SmallSampleWarning',
    'DataWarning',
    'GridResolutionWarning',
]
