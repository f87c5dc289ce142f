"""
Validation Module

Implements input validation and design preparation for randomization
inference, together with the package-wide default settings.

"""

import os
import warnings
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from .exceptions import (
    DimensionMismatchError,
    InvalidDesignError,
    InvalidParameterError,
    MissingRequiredColumnError,
)
from .warnings_categories import DataWarning

# Ceiling on the number of assignments generated in exact mode.
DEFAULT_MAX_ASSIGNMENTS = 1_000_000

# Number of draws in sampled mode.
DEFAULT_RIREPS = 1000

# Absolute tolerance (scaled by max(1, |T_obs|)) used when comparing
# randomization statistics against the observed statistic.
PVALUE_TIE_TOLERANCE = 1e-10

VALID_RI_METHODS = ('exact', 'sampled', 'auto')


def validate_design_counts(n_total: int, n_treated: int) -> None:
    """
    Check that a design with ``n_treated`` of ``n_total`` units can be randomized.

    Raises
    ------
    InvalidDesignError
        If ``n_treated <= 0`` or ``n_treated >= n_total``.
    """
    if n_total is None or n_treated is None:
        raise InvalidDesignError('n_total and n_treated are required')
    if not (0 < n_treated < n_total):
        raise InvalidDesignError(
            f'n_treated must satisfy 0 < n_treated < n_total, '
            f'got n_treated={n_treated}, n_total={n_total}'
        )


def validate_ri_method(ri_method: str) -> str:
    """Normalize and check the enumeration mode."""
    if not isinstance(ri_method, str) or ri_method.lower() not in VALID_RI_METHODS:
        raise InvalidParameterError(
            f"ri_method must be one of {list(VALID_RI_METHODS)}, got '{ri_method}'"
        )
    return ri_method.lower()


def validate_rireps(rireps: int) -> int:
    if rireps is None or int(rireps) <= 0:
        raise InvalidDesignError(f'rireps must be positive, got {rireps}')
    return int(rireps)


def validate_alpha(alpha: float) -> float:
    """Check that ``alpha`` lies in the open interval (0, 1)."""
    if alpha is None or not np.isfinite(alpha) or not (0 < alpha < 1):
        raise InvalidParameterError(f'alpha must be in (0, 1), got {alpha}')
    return float(alpha)


def validate_n_jobs(n_jobs: Optional[int]) -> int:
    """
    Resolve ``n_jobs`` to a concrete worker count.

    ``None`` and ``1`` mean serial execution; ``-1`` means all CPUs.
    """
    if n_jobs is None:
        return 1
    if n_jobs == 0 or n_jobs < -1:
        raise InvalidParameterError(
            f'n_jobs must be a positive integer or -1, got {n_jobs}'
        )
    if n_jobs == -1:
        return os.cpu_count() or 1
    return int(n_jobs)


def validate_treatment_outcome(treatment, outcome) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert a treatment vector and an outcome vector to validated arrays.

    Parameters
    ----------
    treatment : array-like
        Treatment indicator, values in {0, 1} or {False, True}.
    outcome : array-like
        Real-valued outcomes, same length as ``treatment``.

    Returns
    -------
    treatment : np.ndarray of bool
    outcome : np.ndarray of float

    Raises
    ------
    DimensionMismatchError
        If the two vectors have different lengths or are not 1-D.
    InvalidParameterError
        If the treatment is not binary or outcomes are not finite.
    InvalidDesignError
        If there are no treated or no control units.
    """
    d = np.asarray(treatment)
    y = np.asarray(outcome, dtype=float)

    if d.ndim != 1 or y.ndim != 1:
        raise DimensionMismatchError(
            'treatment and outcome must be one-dimensional'
        )
    if len(d) != len(y):
        raise DimensionMismatchError(
            f'treatment has {len(d)} units but outcome has {len(y)}',
            expected=len(d),
            got=len(y),
        )

    if d.dtype != bool:
        values = np.unique(d)
        if not np.all(np.isin(values, [0, 1])):
            raise InvalidParameterError(
                f'treatment must be binary (0/1), found values {values.tolist()}'
            )
        d = d.astype(bool)

    if not np.all(np.isfinite(y)):
        raise InvalidParameterError('outcome contains missing or infinite values')

    validate_design_counts(len(d), int(d.sum()))
    return d, y


def validate_tau_grid(
    tau_grid=None,
    tau_start: Optional[float] = None,
    tau_end: Optional[float] = None,
    tau_step: float = 1.0,
) -> np.ndarray:
    """
    Build and check the grid of hypothesized constant effects.

    Either ``tau_grid`` is given explicitly or it is generated from
    ``tau_start``, ``tau_end`` and ``tau_step`` (both ends included).

    Returns
    -------
    np.ndarray
        Strictly increasing, finite grid.
    """
    if tau_grid is None:
        if tau_start is None or tau_end is None:
            raise InvalidParameterError(
                'Provide either tau_grid or both tau_start and tau_end'
            )
        if tau_step is None or not tau_step > 0:
            raise InvalidParameterError(f'tau_step must be positive, got {tau_step}')
        if tau_end < tau_start:
            raise InvalidParameterError(
                f'tau_end ({tau_end}) must not be smaller than tau_start ({tau_start})'
            )
        n_points = int(np.floor((tau_end - tau_start) / tau_step + 1e-9)) + 1
        grid = tau_start + tau_step * np.arange(n_points)
    else:
        grid = np.asarray(tau_grid, dtype=float).ravel()

    if grid.size == 0:
        raise InvalidParameterError('tau grid is empty')
    if not np.all(np.isfinite(grid)):
        raise InvalidParameterError('tau grid contains non-finite values')
    if grid.size > 1 and not np.all(np.diff(grid) > 0):
        raise InvalidParameterError('tau grid must be strictly increasing')
    return grid


def validate_and_prepare_data(
    data: pd.DataFrame,
    y: str,
    d: str,
    ivar: Optional[str] = None,
) -> pd.DataFrame:
    """
    Validate a unit-level DataFrame and return the cleaned cross-section.

    Pipeline Steps
    --------------
    1. DataFrame type and required columns check.
    2. Outcome numeric type check.
    3. Rows with missing outcome or treatment are dropped (``DataWarning``).
    4. Treatment binarity check.
    5. Unit identifier uniqueness check (if ``ivar`` is given).

    Parameters
    ----------
    data : pd.DataFrame
        One row per unit.
    y : str
        Outcome column name. Must be numeric.
    d : str
        Treatment indicator column name. Values 0/1 or boolean.
    ivar : str, optional
        Unit identifier column name.

    Returns
    -------
    pd.DataFrame
        Copy of the relevant rows, in original order.
    """
    if not isinstance(data, pd.DataFrame):
        raise InvalidParameterError(
            f'data must be a pandas DataFrame, got {type(data).__name__}'
        )

    required = [y, d] + ([ivar] if ivar is not None else [])
    for col in required:
        if col not in data.columns:
            raise MissingRequiredColumnError(
                f"Required column '{col}' not found in data"
            )

    if not pd.api.types.is_numeric_dtype(data[y]):
        raise InvalidParameterError(
            f"Outcome column '{y}' must be numeric, got dtype {data[y].dtype}"
        )

    missing = data[y].isna() | data[d].isna()
    n_missing = int(missing.sum())
    if n_missing > 0:
        warnings.warn(
            f'Dropping {n_missing} row(s) with missing values in '
            f"'{y}' or '{d}'.",
            DataWarning,
            stacklevel=3,
        )
    clean = data.loc[~missing].copy()

    d_values = pd.unique(clean[d])
    if not set(d_values.tolist()) <= {0, 1, True, False}:
        raise InvalidParameterError(
            f"Treatment column '{d}' must be binary (0/1), "
            f'found values {sorted(map(repr, d_values.tolist()))}'
        )

    if ivar is not None and clean[ivar].duplicated().any():
        raise InvalidParameterError(
            f"Unit identifier '{ivar}' is not unique; expected one row per unit"
        )

    return clean
