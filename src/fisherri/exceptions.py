"""
Exception Classes Module

Defines exception hierarchy for the fisherri package.

"""


class FisherRIError(Exception):
    """
    Base exception class for all fisherri package errors.

    All custom exceptions in the fisherri package inherit from this class,
    allowing users to catch any fisherri-specific error with:

        try:
            result = sharp_null_test(d, y)
        except FisherRIError as e:
            # Handle any fisherri error
            print(f"fisherri error: {e}")
    """
    pass


class InvalidParameterError(FisherRIError):
    """
    Exception raised when input parameter validation fails.

    This is a general exception for invalid parameter values that do not
    concern the experimental design itself. Common triggers include:

    - ri_method not one of 'exact', 'sampled', 'auto'
    - alpha outside the open interval (0, 1)
    - Empty, non-finite or non-increasing tau grid
    - n_jobs equal to 0 or below -1
    - Unknown statistic name
    - Treatment indicator that is not binary

    See Also
    --------
    InvalidDesignError : For invalid treated/control counts.
    """
    pass


class InvalidDesignError(FisherRIError):
    """
    Exception raised when the experimental design cannot be randomized.

    Trigger conditions include:

    - n_treated <= 0 (no treated units)
    - n_treated >= n_total (no control units)
    - rireps <= 0 in sampled mode
    - An assignment that leaves the treated or control group empty

    Examples
    --------
    >>> exact_assignments(n_total=11, n_treated=0)  # doctest: +SKIP
    InvalidDesignError: n_treated must satisfy 0 < n_treated < n_total, got n_treated=0, n_total=11
    """
    pass


class CombinatorialOverflowError(InvalidDesignError):
    """
    Exception raised when exact enumeration would exceed the assignment ceiling.

    The number of label-count-preserving assignments is
    ``C(n_total, n_treated)``, which grows quickly (``C(40, 20)`` is about
    1.4e11). When it exceeds ``max_assignments`` the caller must switch to
    ``ri_method='sampled'`` or raise the ceiling explicitly.

    Attributes
    ----------
    n_assignments : int
        Size of the full assignment space.
    max_assignments : int
        Ceiling that was exceeded.
    """

    def __init__(self, message: str, n_assignments: int, max_assignments: int):
        super().__init__(message)
        self.n_assignments = n_assignments
        self.max_assignments = max_assignments


class DimensionMismatchError(FisherRIError):
    """
    Exception raised when an assignment does not fit the outcome source.

    Raised by the statistic evaluator when the assignment length differs from
    the number of outcomes, or when its treated count differs from the
    design's treated count. Also raised when paired potential-outcome vectors
    have different lengths.

    Attributes
    ----------
    expected : int
        Size required by the design or outcome source.
    got : int
        Size that was supplied.
    """

    def __init__(self, message: str, expected: int = None, got: int = None):
        super().__init__(message)
        self.expected = expected
        self.got = got


class EmptyDistributionError(FisherRIError):
    """
    Exception raised when a randomization distribution has no values.

    P-values are undefined for an empty distribution, so no default is
    substituted.
    """
    pass


class NoIntervalError(FisherRIError):
    """
    Exception raised when inverting the p-value function fails.

    The tau grid has to bracket both crossings of alpha/2: the upper p-value
    must be at or below alpha/2 at the smallest grid point and the lower
    p-value must be at or below alpha/2 at the largest grid point.

    Attributes
    ----------
    side : {'lower', 'upper', 'both'}
        Which end of the grid has to be widened.
    """

    def __init__(self, message: str, side: str = 'both'):
        super().__init__(message)
        self.side = side


class MissingRequiredColumnError(FisherRIError):
    """
    Exception raised when input DataFrame is missing required columns.

    Required columns are the outcome ``y``, the treatment indicator ``d`` and,
    when given, the unit identifier ``ivar``.

    Examples
    --------
    >>> ri_test(data, y='yield', d='fertilizer')  # doctest: +SKIP
    MissingRequiredColumnError: Required column 'yield' not found in data
    """
    pass
