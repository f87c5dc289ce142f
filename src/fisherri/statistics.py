"""
Test Statistic Module

Test statistics for randomization inference. A statistic maps one assignment
and one outcome source to a real number. The outcome source is either a plain
vector of outcomes or a :class:`~fisherri.science.ScienceTable`, in which case
units labeled treated by the (hypothetical) assignment contribute ``y1`` and
units labeled control contribute ``y0``.

Alternative statistics subclass :class:`TestStatistic` and implement
``compute``. Subclasses must be picklable so that they can be evaluated in
worker processes.
"""

from abc import ABC, abstractmethod
from typing import Optional, Union

import numpy as np
import statsmodels.api as sm
from scipy.stats import rankdata

from .exceptions import DimensionMismatchError, InvalidDesignError, InvalidParameterError
from .science import ScienceTable


def resolve_outcomes(assignment: np.ndarray, source) -> np.ndarray:
    """
    Outcomes revealed under ``assignment``.

    Parameters
    ----------
    assignment : np.ndarray of bool
        One assignment (1-D) or a stack of assignments (2-D, one per row).
    source : array-like or ScienceTable
        Plain outcome vector, or a science table of potential outcomes.

    Returns
    -------
    np.ndarray
        Same shape as ``assignment``. For a science table, ``y1`` where the
        assignment labels treated and ``y0`` elsewhere; for a plain vector,
        the vector itself broadcast to every row.
    """
    if isinstance(source, ScienceTable):
        return np.where(assignment, source.y1, source.y0)
    y = np.asarray(source, dtype=float)
    return np.broadcast_to(y, np.shape(assignment))


def _source_length(source) -> int:
    if isinstance(source, ScienceTable):
        return len(source)
    return int(np.asarray(source).shape[-1])


class TestStatistic(ABC):
    """
    Interface for randomization test statistics.

    Subclasses implement :meth:`compute` for a single assignment. Those that
    can be vectorized also override :meth:`compute_batch`.
    """

    __test__ = False  # not a pytest class

    name = 'statistic'

    @abstractmethod
    def compute(self, assignment: np.ndarray, outcomes: np.ndarray) -> float:
        """
        Statistic for one assignment.

        Parameters
        ----------
        assignment : np.ndarray of bool, shape (n,)
        outcomes : np.ndarray of float, shape (n,)
            Outcomes already resolved for this assignment.
        """

    def compute_batch(self, assignments: np.ndarray, outcomes: np.ndarray) -> np.ndarray:
        """Statistic for each row of ``assignments``; rows of ``outcomes`` align."""
        return np.array(
            [self.compute(w, y) for w, y in zip(assignments, outcomes)],
            dtype=float,
        )

    def __call__(self, assignment, source) -> Union[float, np.ndarray]:
        w = np.asarray(assignment, dtype=bool)
        outcomes = resolve_outcomes(w, source)
        if w.ndim == 1:
            return float(self.compute(w, outcomes))
        return self.compute_batch(w, outcomes)

    def __repr__(self) -> str:
        return f'{type(self).__name__}()'


def _group_sizes(assignments: np.ndarray):
    n1 = assignments.sum(axis=-1)
    n0 = assignments.shape[-1] - n1
    if np.any(n1 == 0) or np.any(n0 == 0):
        raise InvalidDesignError(
            'Assignment leaves the treated or control group empty'
        )
    return n1, n0


class MeanDifference(TestStatistic):
    """
    Difference in means, treated minus control.

    Antisymmetric in the labeling: swapping treated and control negates it.
    """

    name = 'mean_difference'

    def compute_batch(self, assignments, outcomes):
        assignments = np.atleast_2d(assignments)
        outcomes = np.atleast_2d(outcomes)
        n1, n0 = _group_sizes(assignments)
        sum1 = np.where(assignments, outcomes, 0.0).sum(axis=1)
        sum0 = np.where(assignments, 0.0, outcomes).sum(axis=1)
        return sum1 / n1 - sum0 / n0

    def compute(self, assignment, outcomes):
        return float(self.compute_batch(assignment[None, :], outcomes[None, :])[0])


class RankSumDifference(MeanDifference):
    """
    Difference in mean ranks, treated minus control.

    Ranks are computed over all units for each assignment (ties get the
    average rank), so the statistic is insensitive to outliers.
    """

    name = 'rank_sum'

    def compute_batch(self, assignments, outcomes):
        outcomes = np.atleast_2d(outcomes)
        ranks = rankdata(outcomes, axis=1)
        return super().compute_batch(assignments, ranks)


class OLSCoefficient(TestStatistic):
    """
    OLS coefficient on the treatment indicator.

    Regresses outcomes on a constant, the assignment and optional fixed
    covariates. Covariates are held fixed across assignments; only the
    treatment column is permuted. Without covariates this equals
    :class:`MeanDifference`.

    Parameters
    ----------
    covariates : array-like, shape (n,) or (n, k), optional
        Pre-treatment covariates.
    """

    name = 'ols'

    def __init__(self, covariates=None):
        if covariates is None:
            self.covariates = None
        else:
            x = np.asarray(covariates, dtype=float)
            self.covariates = x.reshape(-1, 1) if x.ndim == 1 else x

    def compute(self, assignment, outcomes):
        _group_sizes(assignment)
        if self.covariates is not None:
            if self.covariates.shape[0] != assignment.shape[0]:
                raise DimensionMismatchError(
                    f'covariates have {self.covariates.shape[0]} rows but '
                    f'assignment has {assignment.shape[0]} units',
                    expected=assignment.shape[0],
                    got=self.covariates.shape[0],
                )
            X = np.column_stack([assignment.astype(float), self.covariates])
        else:
            X = assignment.astype(float)
        X = sm.add_constant(X, has_constant='add')
        results = sm.OLS(outcomes, X).fit()
        return float(results.params[1])

    def __repr__(self) -> str:
        k = 0 if self.covariates is None else self.covariates.shape[1]
        return f'OLSCoefficient(n_covariates={k})'


_STATISTICS = {
    'mean_difference': MeanDifference,
    'rank_sum': RankSumDifference,
    'ols': OLSCoefficient,
}


def get_statistic(statistic: Union[str, TestStatistic, None] = None) -> TestStatistic:
    """
    Resolve a statistic name or instance.

    Parameters
    ----------
    statistic : {'mean_difference', 'rank_sum', 'ols'} or TestStatistic
        ``None`` selects the mean difference.
    """
    if statistic is None:
        return MeanDifference()
    if isinstance(statistic, TestStatistic):
        return statistic
    if isinstance(statistic, str) and statistic.lower() in _STATISTICS:
        return _STATISTICS[statistic.lower()]()
    raise InvalidParameterError(
        f'statistic must be one of {sorted(_STATISTICS)} or a TestStatistic '
        f'instance, got {statistic!r}'
    )


def evaluate(
    statistic: TestStatistic,
    assignment,
    source,
    n_treated: Optional[int] = None,
) -> float:
    """
    Evaluate ``statistic`` on one assignment after checking dimensions.

    Parameters
    ----------
    statistic : TestStatistic
    assignment : array-like of bool, shape (n,)
    source : array-like or ScienceTable
        Outcome source with ``n`` units.
    n_treated : int, optional
        Treated count of the design; when given, the assignment must match it.

    Raises
    ------
    DimensionMismatchError
        If the assignment length differs from the outcome source length, or
        its treated count differs from ``n_treated``.
    InvalidDesignError
        If the assignment leaves a group empty.
    """
    w = np.asarray(assignment, dtype=bool)
    n_source = _source_length(source)
    if w.ndim != 1 or w.shape[0] != n_source:
        raise DimensionMismatchError(
            f'assignment has {w.size} units but outcome source has {n_source}',
            expected=n_source,
            got=w.size,
        )
    if n_treated is not None and int(w.sum()) != int(n_treated):
        raise DimensionMismatchError(
            f'assignment treats {int(w.sum())} units but the design treats {n_treated}',
            expected=int(n_treated),
            got=int(w.sum()),
        )
    return statistic(w, source)
