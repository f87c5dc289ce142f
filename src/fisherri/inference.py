"""
Randomization Inference Module

Implements Fisherian randomization inference for completely randomized
experiments: sharp-null tests, confidence intervals for a constant treatment
effect by test inversion, and a simulation check of the unbiasedness of the
difference-in-means estimator.

Key concepts:
- The randomization distribution holds potential outcomes fixed and
  re-randomizes treatment labels over all (or sampled) assignments
- Under H_tau every missing potential outcome is imputed, so the
  distribution of the statistic under H_tau is known exactly
- The interval collects the tau values on a grid that are not rejected at
  level alpha by either one-sided test

Reference:
    Imbens & Rubin (2015) Causal Inference for Statistics, Social, and
    Biomedical Sciences, Chapter 5
"""

from collections import deque
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
import logging
from typing import Optional, Tuple, Union
import warnings

import numpy as np
import pandas as pd

from .allocation import (
    SeedLike,
    batched,
    count_assignments,
    iter_assignments,
    sample_assignments,
)
from .exceptions import (
    DimensionMismatchError,
    EmptyDistributionError,
    InvalidParameterError,
    NoIntervalError,
)
from .science import Design, ScienceTable
from .statistics import TestStatistic, _source_length, evaluate, get_statistic
from .validation import (
    DEFAULT_MAX_ASSIGNMENTS,
    DEFAULT_RIREPS,
    PVALUE_TIE_TOLERANCE,
    validate_alpha,
    validate_design_counts,
    validate_n_jobs,
    validate_ri_method,
    validate_tau_grid,
)
from .warnings_categories import GridResolutionWarning, SmallSampleWarning

logger = logging.getLogger(__name__)

# Rows per evaluation batch. Serial and parallel runs use the same batches,
# so both produce bit-identical distributions.
BATCH_SIZE = 2048


@dataclass
class SharpNullResult:
    """
    Sharp-null randomization test result.

    Attributes
    ----------
    observed_stat : float
        Statistic on the observed assignment and outcomes.
    distribution : np.ndarray
        Randomization distribution, one value per assignment evaluated.
    p_value_one_sided : float
        Share of the distribution at or above ``observed_stat``.
    p_value_two_sided : float
        Share of the distribution with absolute value at or above
        ``|observed_stat|``.
    ri_method : str
        'exact' or 'sampled'.
    n_assignments : int
        Size of the randomization distribution.
    seed : int or None
        Integer seed used in sampled mode, if one was given.
    statistic : str
        Name of the test statistic.
    """
    observed_stat: float
    distribution: np.ndarray
    p_value_one_sided: float
    p_value_two_sided: float
    ri_method: str
    n_assignments: int
    seed: Optional[int] = None
    statistic: str = 'mean_difference'

    def __repr__(self) -> str:
        return (
            f"SharpNullResult(observed_stat={self.observed_stat:.4f}, "
            f"p_value_two_sided={self.p_value_two_sided:.4f}, "
            f"method='{self.ri_method}', n_assignments={self.n_assignments})"
        )

    def summary(self) -> str:
        return (
            f"Fisher Sharp-Null Randomization Test\n"
            f"{'='*50}\n"
            f"Statistic: {self.statistic}\n"
            f"Observed statistic: {self.observed_stat:.4f}\n"
            f"One-sided p-value: {self.p_value_one_sided:.4f}\n"
            f"Two-sided p-value: {self.p_value_two_sided:.4f}\n"
            f"Method: {self.ri_method} ({self.n_assignments} assignments)\n"
            f"{'='*50}"
        )


@dataclass(frozen=True)
class InferenceInterval:
    """
    Interval for a constant treatment effect obtained by test inversion.

    The bounds are grid points: ``lower`` is the smallest grid tau whose upper
    p-value exceeds alpha/2 and ``upper`` is the largest grid tau whose lower
    p-value exceeds alpha/2. The true interval endpoints lie within one
    ``grid_step`` of the reported bounds; refine the grid near a bound for
    more precision.

    Attributes
    ----------
    lower, upper : float
        Interval bounds (grid points).
    alpha : float
        Significance level; the interval has nominal coverage 1 - alpha.
    grid_step : float
        Largest spacing of the tau grid, i.e. the resolution of the bounds.
    grid_min, grid_max : float
        Range of the tau grid.
    pvalue_function : pd.DataFrame
        Columns ``tau``, ``p_upper``, ``p_lower``.
    """
    lower: float
    upper: float
    alpha: float
    grid_step: float
    grid_min: float
    grid_max: float
    pvalue_function: pd.DataFrame = field(repr=False, compare=False, default=None)

    @property
    def width(self) -> float:
        return self.upper - self.lower

    def contains(self, tau: float) -> bool:
        return self.lower <= tau <= self.upper

    def summary(self) -> str:
        level = 100 * (1 - self.alpha)
        return (
            f"{level:g}% Fisher interval: [{self.lower:.4f}, {self.upper:.4f}]\n"
            f"  grid [{self.grid_min:g}, {self.grid_max:g}], "
            f"bounds resolved to +/- {self.grid_step:g}"
        )


@dataclass
class ATECheckResult:
    """
    Repeated-randomization check of the difference-in-means estimator.

    Attributes
    ----------
    estimates : np.ndarray
        One estimate per simulated randomization.
    true_ate : float
        Average of ``y1 - y0`` over all units.
    """
    estimates: np.ndarray
    true_ate: float

    @property
    def n_trials(self) -> int:
        return int(len(self.estimates))

    @property
    def mean_estimate(self) -> float:
        return float(np.mean(self.estimates))

    @property
    def bias(self) -> float:
        return self.mean_estimate - self.true_ate

    @property
    def mc_se(self) -> float:
        """Monte Carlo standard error of ``mean_estimate``."""
        if self.n_trials < 2:
            return float('nan')
        return float(np.std(self.estimates, ddof=1) / np.sqrt(self.n_trials))

    def summary(self) -> str:
        return (
            f"ATE Unbiasedness Check\n"
            f"{'='*50}\n"
            f"Trials: {self.n_trials}\n"
            f"True ATE: {self.true_ate:.4f}\n"
            f"Mean estimate: {self.mean_estimate:.4f} (MC SE {self.mc_se:.4f})\n"
            f"Bias: {self.bias:.4f}\n"
            f"{'='*50}"
        )


def _tie_tolerance(observed: float) -> float:
    return PVALUE_TIE_TOLERANCE * max(1.0, abs(observed))


def _checked_assignments(assignments, n_units: int, n_treated: Optional[int] = None):
    """
    Yield boolean assignments after checking their length and treated count.

    Without ``n_treated`` every assignment must treat as many units as the
    first one.
    """
    for assignment in assignments:
        w = np.asarray(assignment, dtype=bool)
        if w.shape != (n_units,):
            raise DimensionMismatchError(
                f'assignment has {w.size} units but outcome source has {n_units}',
                expected=n_units,
                got=w.size,
            )
        count = int(w.sum())
        if n_treated is None:
            n_treated = count
        elif count != n_treated:
            raise DimensionMismatchError(
                f'assignment treats {count} units but the design treats {n_treated}',
                expected=n_treated,
                got=count,
            )
        yield w


def _evaluate_serial(assignments, statistic, source) -> list:
    return [statistic(batch, source) for batch in batched(assignments, BATCH_SIZE)]


def _evaluate_parallel(assignments, statistic, source, n_workers: int) -> list:
    # Assignments come from a single generator in this process; workers only
    # evaluate. Results are gathered in submission order.
    chunks = []
    pending = deque()
    with ProcessPoolExecutor(max_workers=n_workers) as executor:
        for batch in batched(assignments, BATCH_SIZE):
            pending.append(executor.submit(statistic, batch, source))
            if len(pending) >= 2 * n_workers:
                chunks.append(pending.popleft().result())
        while pending:
            chunks.append(pending.popleft().result())
    return chunks


def randomization_distribution(
    assignments,
    source,
    statistic: Union[str, TestStatistic, None] = None,
    n_jobs: Optional[int] = None,
    n_treated: Optional[int] = None,
) -> np.ndarray:
    """
    Evaluate ``statistic`` on every assignment against a fixed outcome source.

    Parameters
    ----------
    assignments : iterable of np.ndarray
        Assignments from :func:`~fisherri.allocation.iter_assignments` or any
        iterable of boolean vectors of equal length.
    source : array-like or ScienceTable
        Outcome vector (sharp null of no effect) or imputed science table.
    statistic : str or TestStatistic, optional
        Defaults to the difference in means.
    n_jobs : int, optional
        Worker processes. ``None`` or 1 evaluates serially, -1 uses all CPUs.
    n_treated : int, optional
        Treated count every assignment must have. Defaults to the count of
        the first assignment.

    Returns
    -------
    np.ndarray
        Statistic values in assignment order.

    Raises
    ------
    DimensionMismatchError
        If an assignment's length differs from the outcome source or its
        treated count differs from the others.
    EmptyDistributionError
        If ``assignments`` is empty.
    """
    statistic = get_statistic(statistic)
    n_workers = validate_n_jobs(n_jobs)
    assignments = _checked_assignments(assignments, _source_length(source), n_treated)

    if n_workers > 1:
        chunks = _evaluate_parallel(assignments, statistic, source, n_workers)
    else:
        chunks = _evaluate_serial(assignments, statistic, source)

    if not chunks:
        raise EmptyDistributionError(
            'Randomization distribution is empty: no assignments were evaluated'
        )
    distribution = np.concatenate([np.atleast_1d(c) for c in chunks]).astype(float)
    logger.debug(
        'Evaluated %s on %d assignments (n_jobs=%d)',
        getattr(statistic, 'name', type(statistic).__name__),
        distribution.size, n_workers,
    )
    return distribution


def randomization_pvalues(distribution, observed: float) -> Tuple[float, float]:
    """
    One- and two-sided p-values with inclusive tie-breaking.

    Returns
    -------
    p_one_sided : float
        ``mean(distribution >= observed)``.
    p_two_sided : float
        ``mean(|distribution| >= |observed|)``.
    """
    dist = np.asarray(distribution, dtype=float)
    if dist.size == 0:
        raise EmptyDistributionError('Cannot compute p-values from an empty distribution')
    tol = _tie_tolerance(observed)
    p_one = float(np.mean(dist >= observed - tol))
    p_two = float(np.mean(np.abs(dist) >= abs(observed) - tol))
    return p_one, p_two


def directional_pvalues(distribution, observed: float) -> Tuple[float, float]:
    """
    Strict upper and lower tail shares used for test inversion.

    Returns
    -------
    p_upper : float
        ``mean(distribution > observed)``.
    p_lower : float
        ``mean(distribution < observed)``.
    """
    dist = np.asarray(distribution, dtype=float)
    if dist.size == 0:
        raise EmptyDistributionError('Cannot compute p-values from an empty distribution')
    tol = _tie_tolerance(observed)
    return float(np.mean(dist > observed + tol)), float(np.mean(dist < observed - tol))


def _uses_sampling(ri_method: str, n_total: int, n_treated: int, max_assignments: int) -> bool:
    """Whether ``ri_method`` ('auto' resolved by the ceiling) draws assignments."""
    if ri_method == 'auto':
        return count_assignments(n_total, n_treated) > max_assignments
    return ri_method == 'sampled'


def _check_nonempty(sampling: bool, rireps: int) -> None:
    if sampling and rireps is not None and int(rireps) == 0:
        raise EmptyDistributionError(
            'rireps=0: the randomization distribution would be empty'
        )


def _common_seed(seed: SeedLike):
    """
    Seed from which identical draws can be replayed any number of times.

    A ``Generator`` is advanced once to derive the seed, so the caller's
    stream still moves forward.
    """
    if isinstance(seed, np.random.Generator):
        return np.random.SeedSequence(int(seed.integers(0, 2**63 - 1)))
    if isinstance(seed, np.random.SeedSequence):
        return seed
    return np.random.SeedSequence(seed)


def sharp_null_test(
    treatment,
    outcome,
    statistic: Union[str, TestStatistic, None] = None,
    ri_method: str = 'exact',
    rireps: int = DEFAULT_RIREPS,
    seed: SeedLike = None,
    max_assignments: int = DEFAULT_MAX_ASSIGNMENTS,
    n_jobs: Optional[int] = None,
) -> SharpNullResult:
    """
    Fisher randomization test of H0: Y_i(1) = Y_i(0) for every unit.

    Parameters
    ----------
    treatment : array-like
        Observed treatment indicator (0/1 or bool).
    outcome : array-like
        Observed outcomes.
    statistic : str or TestStatistic, optional
        'mean_difference' (default), 'rank_sum', 'ols' or a custom statistic.
    ri_method : {'exact', 'sampled', 'auto'}, default 'exact'
        Enumerate every assignment or draw ``rireps`` of them.
    rireps : int, default 1000
        Number of draws in sampled mode. ``rireps=0`` raises
        ``EmptyDistributionError``.
    seed : int, Generator or None
        Seed for sampled mode. The same integer seed replays the same
        distribution.
    max_assignments : int
        Ceiling on exact enumeration.
    n_jobs : int, optional
        Worker processes for evaluation.

    Returns
    -------
    SharpNullResult

    Notes
    -----
    Comparisons are inclusive, so in exact mode the observed assignment
    always counts and the p-values are at least ``1/C(N, N1)``.
    """
    design = Design.from_arrays(treatment, outcome)
    statistic = get_statistic(statistic)
    ri_method = validate_ri_method(ri_method)
    sampling = _uses_sampling(ri_method, design.n_total, design.n_treated, max_assignments)
    _check_nonempty(sampling, rireps)

    observed = evaluate(statistic, design.treatment, design.outcome, design.n_treated)
    assignments = iter_assignments(
        design.n_total, design.n_treated,
        ri_method=ri_method, rireps=rireps, seed=seed,
        max_assignments=max_assignments,
    )
    distribution = randomization_distribution(
        assignments, design.outcome, statistic=statistic, n_jobs=n_jobs,
        n_treated=design.n_treated,
    )
    p_one, p_two = randomization_pvalues(distribution, observed)

    logger.info(
        'Sharp-null test: T_obs=%.6g, p_one=%.4f, p_two=%.4f (%s, %d assignments)',
        observed, p_one, p_two, assignments.ri_method, distribution.size,
    )
    return SharpNullResult(
        observed_stat=observed,
        distribution=distribution,
        p_value_one_sided=p_one,
        p_value_two_sided=p_two,
        ri_method=assignments.ri_method,
        n_assignments=int(distribution.size),
        seed=seed if isinstance(seed, (int, np.integer)) else None,
        statistic=getattr(statistic, 'name', type(statistic).__name__),
    )


def pvalue_function(
    treatment,
    outcome,
    tau_grid,
    statistic: Union[str, TestStatistic, None] = None,
    ri_method: str = 'exact',
    rireps: int = DEFAULT_RIREPS,
    seed: SeedLike = None,
    max_assignments: int = DEFAULT_MAX_ASSIGNMENTS,
    n_jobs: Optional[int] = None,
) -> pd.DataFrame:
    """
    Upper and lower p-values of H_tau: Y_i(1) - Y_i(0) = tau over a grid.

    For each tau the science table is imputed from the observed data, its
    randomization distribution is built, and the distribution is compared
    with the observed statistic, which does not depend on tau.

    Parameters
    ----------
    treatment, outcome : array-like
        Observed data.
    tau_grid : array-like
        Strictly increasing hypothesized effects.
    statistic, ri_method, rireps, seed, max_assignments, n_jobs
        As in :func:`sharp_null_test`. In sampled mode every tau is evaluated
        on the same ``rireps`` draws.

    Returns
    -------
    pd.DataFrame
        Columns ``tau``, ``p_upper`` (share strictly above the observed
        statistic) and ``p_lower`` (share strictly below), one row per grid
        point in increasing order.
    """
    design = Design.from_arrays(treatment, outcome)
    statistic = get_statistic(statistic)
    grid = validate_tau_grid(tau_grid)
    ri_method = validate_ri_method(ri_method)
    sampling = _uses_sampling(ri_method, design.n_total, design.n_treated, max_assignments)
    _check_nonempty(sampling, rireps)

    observed = evaluate(statistic, design.treatment, design.outcome, design.n_treated)
    common_seed = _common_seed(seed) if sampling else None

    rows = []
    for tau in grid:
        table = design.science_table(tau)
        assignments = iter_assignments(
            design.n_total, design.n_treated,
            ri_method=ri_method, rireps=rireps, seed=common_seed,
            max_assignments=max_assignments,
        )
        distribution = randomization_distribution(
            assignments, table, statistic=statistic, n_jobs=n_jobs,
            n_treated=design.n_treated,
        )
        p_upper, p_lower = directional_pvalues(distribution, observed)
        rows.append({'tau': float(tau), 'p_upper': p_upper, 'p_lower': p_lower})

    logger.debug('Computed p-value function on %d grid points', len(rows))
    return pd.DataFrame(rows, columns=['tau', 'p_upper', 'p_lower'])


def invert_pvalue_function(pfunc: pd.DataFrame, alpha: float = 0.05) -> InferenceInterval:
    """
    Read the interval off a p-value function.

    ``lower`` is the smallest tau with ``p_upper > alpha/2`` and ``upper`` the
    largest tau with ``p_lower > alpha/2``.

    Raises
    ------
    NoIntervalError
        If the grid does not bracket alpha/2: ``p_upper`` at the smallest grid
        point or ``p_lower`` at the largest grid point is above alpha/2, or no
        grid point is accepted.
    """
    alpha = validate_alpha(alpha)
    half = alpha / 2
    pfunc = pfunc.sort_values('tau').reset_index(drop=True)
    taus = pfunc['tau'].to_numpy(dtype=float)
    p_upper = pfunc['p_upper'].to_numpy(dtype=float)
    p_lower = pfunc['p_lower'].to_numpy(dtype=float)

    if taus.size == 0:
        raise NoIntervalError('p-value function is empty', side='both')

    lower_open = p_upper[0] > half
    upper_open = p_lower[-1] > half
    if lower_open or upper_open:
        side = 'both' if lower_open and upper_open else ('lower' if lower_open else 'upper')
        raise NoIntervalError(
            f'tau grid [{taus[0]:g}, {taus[-1]:g}] does not bracket alpha/2={half:g} '
            f'on the {side} side (p_upper({taus[0]:g})={p_upper[0]:.4f}, '
            f'p_lower({taus[-1]:g})={p_lower[-1]:.4f}); widen the grid',
            side=side,
        )

    lower_ok = taus[p_upper > half]
    upper_ok = taus[p_lower > half]
    if lower_ok.size == 0 or upper_ok.size == 0:
        raise NoIntervalError(
            f'No grid point has both p-values above alpha/2={half:g}; '
            f'refine the tau grid',
            side='both',
        )
    lower = float(lower_ok.min())
    upper = float(upper_ok.max())
    if lower > upper:
        raise NoIntervalError(
            f'Lower crossing ({lower:g}) lies above upper crossing ({upper:g}); '
            f'refine the tau grid',
            side='both',
        )

    grid_step = float(np.max(np.diff(taus))) if taus.size > 1 else float('nan')
    if taus.size > 1 and (upper - lower) < 3 * grid_step:
        warnings.warn(
            f'Interval [{lower:g}, {upper:g}] spans fewer than three grid steps '
            f'(step={grid_step:g}); bounds are only resolved to the grid step.',
            GridResolutionWarning,
            stacklevel=2,
        )

    return InferenceInterval(
        lower=lower,
        upper=upper,
        alpha=alpha,
        grid_step=grid_step,
        grid_min=float(taus[0]),
        grid_max=float(taus[-1]),
        pvalue_function=pfunc,
    )


def fisher_interval(
    treatment,
    outcome,
    tau_grid=None,
    tau_start: Optional[float] = None,
    tau_end: Optional[float] = None,
    tau_step: float = 1.0,
    alpha: float = 0.05,
    statistic: Union[str, TestStatistic, None] = None,
    ri_method: str = 'exact',
    rireps: int = DEFAULT_RIREPS,
    seed: SeedLike = None,
    max_assignments: int = DEFAULT_MAX_ASSIGNMENTS,
    n_jobs: Optional[int] = None,
) -> InferenceInterval:
    """
    Fisherian interval for a constant treatment effect by test inversion.

    Parameters
    ----------
    treatment, outcome : array-like
        Observed data.
    tau_grid : array-like, optional
        Hypothesized effects. Alternatively give ``tau_start``, ``tau_end``
        and ``tau_step`` (both ends included).
    alpha : float, default 0.05
        Significance level.
    statistic, ri_method, rireps, seed, max_assignments, n_jobs
        As in :func:`sharp_null_test`.

    Returns
    -------
    InferenceInterval
        Bounds, grid resolution and the full p-value function.

    Notes
    -----
    tau is only evaluated on the grid, so each bound is accurate to one grid
    step. The reported bounds are never interpolated.

    Examples
    --------
    >>> w = [0, 0, 1, 1, 0, 1, 1, 1, 0, 0, 1]
    >>> y = [29.2, 11.4, 26.6, 23.7, 25.3, 28.5, 14.2, 17.9, 16.5, 21.1, 24.3]
    >>> ci = fisher_interval(w, y, tau_start=-15, tau_end=15)  # doctest: +SKIP
    """
    alpha = validate_alpha(alpha)
    grid = validate_tau_grid(tau_grid, tau_start, tau_end, tau_step)
    d = np.asarray(treatment)
    n_total, n_treated = len(d), int(np.sum(d == 1))
    validate_design_counts(n_total, n_treated)

    method = validate_ri_method(ri_method)
    sampling = _uses_sampling(method, n_total, n_treated, max_assignments)
    _check_nonempty(sampling, rireps)
    if sampling:
        n_assignments = int(rireps)
    else:
        n_assignments = len(iter_assignments(
            n_total, n_treated, ri_method='exact', max_assignments=max_assignments,
        ))
    if n_assignments > 0 and 1.0 / n_assignments > alpha / 2:
        warnings.warn(
            f'Only {n_assignments} assignments: the smallest attainable one-sided '
            f'p-value 1/{n_assignments} exceeds alpha/2={alpha / 2:g}.',
            SmallSampleWarning,
            stacklevel=2,
        )

    pfunc = pvalue_function(
        treatment, outcome, grid,
        statistic=statistic, ri_method=ri_method, rireps=rireps, seed=seed,
        max_assignments=max_assignments, n_jobs=n_jobs,
    )
    return invert_pvalue_function(pfunc, alpha=alpha)


def ate_unbiasedness_check(
    y0,
    y1,
    m: int,
    n_treated: Optional[int] = None,
    seed: SeedLike = None,
    statistic: Union[str, TestStatistic, None] = None,
) -> ATECheckResult:
    """
    Repeatedly randomize a known science table and record the estimates.

    Parameters
    ----------
    y0, y1 : array-like
        Potential outcomes of every unit under control and treatment.
    m : int
        Number of simulated randomizations.
    n_treated : int, optional
        Units treated in each trial. Defaults to ``len(y0) // 2``.
    seed : int, Generator or None
        All trials draw from one generator built from ``seed``.
    statistic : str or TestStatistic, optional
        Defaults to the difference in means.

    Returns
    -------
    ATECheckResult
        All ``m`` estimates and the true ATE. For the difference in means
        under complete randomization the mean of the estimates converges to
        the true ATE.
    """
    table = ScienceTable(y0=y0, y1=y1)
    n_total = len(table)
    if n_treated is None:
        n_treated = n_total // 2
    validate_design_counts(n_total, n_treated)
    if m is None or int(m) <= 0:
        raise InvalidParameterError(f'm must be a positive integer, got {m}')
    statistic = get_statistic(statistic)

    rng = np.random.default_rng(seed)
    estimates = np.empty(int(m), dtype=float)
    for trial in range(int(m)):
        w = next(iter(sample_assignments(n_total, n_treated, rireps=1, seed=rng)))
        y_obs = table.observed_outcomes(w)
        estimates[trial] = evaluate(statistic, w, y_obs, n_treated)

    result = ATECheckResult(estimates=estimates, true_ate=table.ate)
    logger.info(
        'ATE check: %d trials, true ATE=%.6g, mean estimate=%.6g',
        result.n_trials, result.true_ate, result.mean_estimate,
    )
    return result
