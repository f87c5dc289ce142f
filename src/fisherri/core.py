"""
Fisherian Randomization Inference

DataFrame entry point for randomization inference in completely randomized
experiments.
"""

from typing import List, Optional, Union
import logging

import numpy as np
import pandas as pd

from .allocation import SeedLike
from .inference import fisher_interval, sharp_null_test
from .results import RIResults
from .science import Design
from .statistics import TestStatistic
from .validation import DEFAULT_MAX_ASSIGNMENTS, DEFAULT_RIREPS

# Configure logging
logger = logging.getLogger('fisherri')


def ri_test(
    data: pd.DataFrame,
    y: str,
    d: str,
    ivar: Optional[str] = None,
    *,
    statistic: Union[str, TestStatistic] = 'mean_difference',
    ri_method: str = 'exact',
    rireps: int = DEFAULT_RIREPS,
    seed: SeedLike = None,
    alpha: float = 0.05,
    tau_grid: Optional[Union[List[float], np.ndarray]] = None,
    tau_start: Optional[float] = None,
    tau_end: Optional[float] = None,
    tau_step: float = 1.0,
    max_assignments: int = DEFAULT_MAX_ASSIGNMENTS,
    n_jobs: Optional[int] = None,
) -> RIResults:
    """
    Randomization inference for a completely randomized experiment

    Tests Fisher's sharp null of no effect for any unit and, when a grid of
    hypothesized constant effects is supplied, inverts the family of sharp
    nulls H_tau: Y_i(1) - Y_i(0) = tau into an interval.

    Parameters
    ----------
    data : pd.DataFrame
        One row per unit.
    y : str
        Outcome column.
    d : str
        Binary treatment indicator column.
    ivar : str, optional
        Unit identifier column; must be unique.
    statistic : str or TestStatistic, default 'mean_difference'
        'mean_difference', 'rank_sum', 'ols' or a custom statistic.
    ri_method : {'exact', 'sampled', 'auto'}, default 'exact'
        Enumerate every assignment, sample ``rireps`` of them, or choose
        by the size of the assignment space.
    rireps : int, default 1000
        Draws in sampled mode.
    seed : int, Generator or None
        Seed for sampled mode.
    alpha : float, default 0.05
        Significance level of the interval.
    tau_grid : array-like, optional
        Hypothesized effects. Alternatively ``tau_start``/``tau_end``/
        ``tau_step``. Without a grid no interval is computed.
    max_assignments : int, default 1_000_000
        Ceiling on exact enumeration.
    n_jobs : int, optional
        Worker processes for evaluating the statistic.

    Returns
    -------
    RIResults

    Raises
    ------
    MissingRequiredColumnError
        If ``y``, ``d`` or ``ivar`` is not a column of ``data``.
    InvalidParameterError
        For a non-binary treatment or invalid options.
    InvalidDesignError
        If no unit is treated or no unit is control.
    CombinatorialOverflowError
        If exact enumeration exceeds ``max_assignments``.
    NoIntervalError
        If the tau grid does not bracket the interval.

    Examples
    --------
    >>> data = pd.DataFrame({
    ...     'w': [0, 0, 1, 1, 0, 1, 1, 1, 0, 0, 1],
    ...     'yield': [29.2, 11.4, 26.6, 23.7, 25.3, 28.5,
    ...               14.2, 17.9, 16.5, 21.1, 24.3],
    ... })
    >>> res = ri_test(data, y='yield', d='w', tau_start=-15, tau_end=15)  # doctest: +SKIP
    >>> print(res.summary())  # doctest: +SKIP
    """
    design = Design.from_dataframe(data, y=y, d=d, ivar=ivar)
    logger.debug(
        'ri_test: N=%d, N_treated=%d, ri_method=%s',
        design.n_total, design.n_treated, ri_method,
    )

    sharp = sharp_null_test(
        design.treatment, design.outcome,
        statistic=statistic, ri_method=ri_method, rireps=rireps, seed=seed,
        max_assignments=max_assignments, n_jobs=n_jobs,
    )

    interval = None
    if tau_grid is not None or (tau_start is not None and tau_end is not None):
        interval = fisher_interval(
            design.treatment, design.outcome,
            tau_grid=tau_grid, tau_start=tau_start, tau_end=tau_end,
            tau_step=tau_step, alpha=alpha,
            statistic=statistic, ri_method=ri_method, rireps=rireps, seed=seed,
            max_assignments=max_assignments, n_jobs=n_jobs,
        )

    metadata = {
        'N': design.n_total,
        'N_treated': design.n_treated,
        'N_control': design.n_control,
        'depvar': y,
        'treatment': d,
        'ivar': ivar,
    }
    return RIResults(sharp_null=sharp, metadata=metadata, interval=interval)
