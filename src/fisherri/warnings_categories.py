"""
Warning category hierarchy for the fisherri package.

Provides structured warning categories for randomization inference,
enabling selective filtering via Python's standard
``warnings.filterwarnings()`` mechanism. All warning classes inherit
from :class:`FisherRIWarning`, which itself inherits from :class:`UserWarning`,
preserving backward compatibility with existing filter rules.

Examples
--------
Suppress only small-sample warnings while keeping others visible:

>>> import warnings
>>> from fisherri import SmallSampleWarning
>>> warnings.filterwarnings('ignore', category=SmallSampleWarning)

Suppress all fisherri warnings at once:

>>> warnings.filterwarnings('ignore', category=FisherRIWarning)
"""


class FisherRIWarning(UserWarning):
    """
    Base warning class for all fisherri package warnings.

    Because ``FisherRIWarning`` inherits from ``UserWarning``, existing calls
    to ``warnings.filterwarnings('ignore', category=UserWarning)`` will
    continue to suppress fisherri warnings.
    """
    pass


class SmallSampleWarning(FisherRIWarning):
    """
    Warning raised when the assignment space is too small for the test.

    Triggered when the smallest attainable one-sided p-value, ``1/N_assign``,
    exceeds alpha/2, so no tau on any grid can be rejected.
    """
    pass


class DataWarning(FisherRIWarning):
    """
    Warning raised for data quality issues.

    Triggered by missing values in the outcome or treatment columns, which
    are dropped before the design is built.
    """
    pass


class GridResolutionWarning(FisherRIWarning):
    """
    Warning raised when the tau grid is coarse relative to the interval.

    Interval bounds are only resolved to the grid step. Triggered when the
    resolved interval spans fewer than three grid steps.
    """
    pass
