"""
Allocation Enumerator Module

Generates the treatment assignments that make up the randomization
distribution of a completely randomized experiment with ``n_treated`` of
``n_total`` units treated.

Two modes are provided:

- Exact enumeration of all ``C(n_total, n_treated)`` assignments. The sequence
  is lazy, finite and restartable: iterating an :class:`ExactAssignments`
  object twice yields the same assignments in the same order.
- Monte Carlo sampling of ``rireps`` assignments, each a uniform random
  permutation of the observed treatment labels. Draws are independent, may
  repeat, and come from one explicitly passed ``numpy.random.Generator``.

Notes
-----
Exact enumeration is only practical for small designs (``C(20, 10)`` is
184,756 assignments, ``C(40, 20)`` is about 1.4e11). Requests above
``max_assignments`` raise :class:`CombinatorialOverflowError`.
"""

from itertools import combinations, islice
import logging
from typing import Iterable, Iterator, Union

import numpy as np
from scipy.special import comb

from .exceptions import CombinatorialOverflowError
from .validation import (
    DEFAULT_MAX_ASSIGNMENTS,
    DEFAULT_RIREPS,
    validate_design_counts,
    validate_ri_method,
    validate_rireps,
)

logger = logging.getLogger(__name__)

SeedLike = Union[int, np.random.Generator, np.random.SeedSequence, None]


def count_assignments(n_total: int, n_treated: int) -> int:
    """
    Number of label-count-preserving assignments, ``C(n_total, n_treated)``.

    Computed with exact integer arithmetic.
    """
    validate_design_counts(n_total, n_treated)
    return int(comb(n_total, n_treated, exact=True))


class ExactAssignments:
    """
    All assignments of ``n_treated`` treated labels to ``n_total`` units.

    Assignments are produced in lexicographic order of the treated-unit
    index combinations. Each is a fresh boolean array.

    Parameters
    ----------
    n_total : int
        Number of units.
    n_treated : int
        Number of treated units.
    max_assignments : int, default DEFAULT_MAX_ASSIGNMENTS
        Ceiling on the size of the assignment space.

    Raises
    ------
    InvalidDesignError
        If ``n_treated <= 0`` or ``n_treated >= n_total``.
    CombinatorialOverflowError
        If ``C(n_total, n_treated) > max_assignments``.
    """

    ri_method = 'exact'

    def __init__(
        self,
        n_total: int,
        n_treated: int,
        max_assignments: int = DEFAULT_MAX_ASSIGNMENTS,
    ):
        n_assignments = count_assignments(n_total, n_treated)
        if n_assignments > max_assignments:
            raise CombinatorialOverflowError(
                f'Exact enumeration of C({n_total}, {n_treated}) = '
                f'{n_assignments:,} assignments exceeds max_assignments='
                f'{max_assignments:,}. Use ri_method="sampled" or raise '
                f'max_assignments.',
                n_assignments=n_assignments,
                max_assignments=max_assignments,
            )
        self.n_total = int(n_total)
        self.n_treated = int(n_treated)
        self.n_assignments = n_assignments

    def __len__(self) -> int:
        return self.n_assignments

    def __iter__(self) -> Iterator[np.ndarray]:
        for treated_idx in combinations(range(self.n_total), self.n_treated):
            w = np.zeros(self.n_total, dtype=bool)
            w[list(treated_idx)] = True
            yield w

    def __repr__(self) -> str:
        return (
            f'ExactAssignments(n_total={self.n_total}, '
            f'n_treated={self.n_treated}, n_assignments={self.n_assignments})'
        )


class SampledAssignments:
    """
    ``rireps`` assignments drawn uniformly at random with replacement.

    Each draw is ``rng.permutation`` of the base vector with ``n_treated``
    treated labels, i.e. a uniform draw from the ``C(n_total, n_treated)``
    assignment space. Draws consume the generator, so iterating a second time
    continues the random stream instead of replaying it. To replay, build a
    new object from the same integer seed.

    Parameters
    ----------
    n_total : int
        Number of units.
    n_treated : int
        Number of treated units.
    rireps : int
        Number of assignments to draw.
    seed : int, Generator, SeedSequence or None
        Seed or generator. A ``Generator`` is used as is and shared with the
        caller.
    """

    ri_method = 'sampled'

    def __init__(
        self,
        n_total: int,
        n_treated: int,
        rireps: int = DEFAULT_RIREPS,
        seed: SeedLike = None,
    ):
        validate_design_counts(n_total, n_treated)
        self.n_total = int(n_total)
        self.n_treated = int(n_treated)
        self.n_assignments = validate_rireps(rireps)
        self.rng = np.random.default_rng(seed)
        self._base = np.zeros(self.n_total, dtype=bool)
        self._base[:self.n_treated] = True

    def __len__(self) -> int:
        return self.n_assignments

    def __iter__(self) -> Iterator[np.ndarray]:
        for _ in range(self.n_assignments):
            yield self.rng.permutation(self._base)

    def __repr__(self) -> str:
        return (
            f'SampledAssignments(n_total={self.n_total}, '
            f'n_treated={self.n_treated}, rireps={self.n_assignments})'
        )


def exact_assignments(
    n_total: int,
    n_treated: int,
    max_assignments: int = DEFAULT_MAX_ASSIGNMENTS,
) -> ExactAssignments:
    """Every label-count-preserving assignment. See :class:`ExactAssignments`."""
    return ExactAssignments(n_total, n_treated, max_assignments=max_assignments)


def sample_assignments(
    n_total: int,
    n_treated: int,
    rireps: int = DEFAULT_RIREPS,
    seed: SeedLike = None,
) -> SampledAssignments:
    """``rireps`` uniform random assignments. See :class:`SampledAssignments`."""
    return SampledAssignments(n_total, n_treated, rireps=rireps, seed=seed)


def iter_assignments(
    n_total: int,
    n_treated: int,
    ri_method: str = 'exact',
    rireps: int = DEFAULT_RIREPS,
    seed: SeedLike = None,
    max_assignments: int = DEFAULT_MAX_ASSIGNMENTS,
):
    """
    Build the assignment sequence for the requested mode.

    Parameters
    ----------
    ri_method : {'exact', 'sampled', 'auto'}, default 'exact'
        'auto' enumerates exactly when ``C(n_total, n_treated)`` fits under
        ``max_assignments`` and samples ``rireps`` assignments otherwise.

    Returns
    -------
    ExactAssignments or SampledAssignments
    """
    ri_method = validate_ri_method(ri_method)

    if ri_method == 'auto':
        n_assignments = count_assignments(n_total, n_treated)
        ri_method = 'exact' if n_assignments <= max_assignments else 'sampled'
        logger.info(
            "ri_method='auto' resolved to '%s' (C(%d, %d) = %d assignments)",
            ri_method, n_total, n_treated, n_assignments,
        )

    if ri_method == 'exact':
        return exact_assignments(n_total, n_treated, max_assignments=max_assignments)
    return sample_assignments(n_total, n_treated, rireps=rireps, seed=seed)


def batched(assignments: Iterable[np.ndarray], batch_size: int) -> Iterator[np.ndarray]:
    """
    Group a lazy assignment sequence into 2-D arrays of up to ``batch_size`` rows.

    The order of assignments is preserved.
    """
    if batch_size <= 0:
        raise ValueError(f'batch_size must be positive, got {batch_size}')
    iterator = iter(assignments)
    while True:
        chunk = list(islice(iterator, batch_size))
        if not chunk:
            return
        yield np.vstack(chunk)
