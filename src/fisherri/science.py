"""
Potential Outcomes Module

Defines the observed experimental design and the imputed science table used
to test sharp null hypotheses of a constant treatment effect.

Under the sharp null H_tau: Y_i(1) - Y_i(0) = tau for every unit, the missing
potential outcome of each unit is known:

- treated units:  Y_i(1) = Y_i^obs,       Y_i(0) = Y_i^obs - tau
- control units:  Y_i(0) = Y_i^obs,       Y_i(1) = Y_i^obs + tau

"""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import pandas as pd

from .exceptions import DimensionMismatchError
from .validation import validate_and_prepare_data, validate_treatment_outcome


@dataclass(frozen=True)
class Design:
    """
    Observed completely randomized experiment.

    Attributes
    ----------
    treatment : np.ndarray of bool
        Observed treatment indicator, one entry per unit.
    outcome : np.ndarray of float
        Observed outcome, one entry per unit.
    index : pd.Index
        Unit labels, in the order of ``treatment`` and ``outcome``.
    """
    treatment: np.ndarray
    outcome: np.ndarray
    index: pd.Index = field(default=None)

    def __post_init__(self):
        d, y = validate_treatment_outcome(
            np.array(self.treatment, copy=True),
            np.array(self.outcome, copy=True),
        )
        d.setflags(write=False)
        y.setflags(write=False)
        object.__setattr__(self, 'treatment', d)
        object.__setattr__(self, 'outcome', y)
        if self.index is None:
            object.__setattr__(self, 'index', pd.RangeIndex(len(d)))
        elif len(self.index) != len(d):
            raise DimensionMismatchError(
                f'index has {len(self.index)} labels but design has {len(d)} units',
                expected=len(d),
                got=len(self.index),
            )

    @classmethod
    def from_arrays(cls, treatment, outcome, index=None) -> 'Design':
        return cls(
            treatment=np.asarray(treatment),
            outcome=np.asarray(outcome, dtype=float),
            index=None if index is None else pd.Index(index),
        )

    @classmethod
    def from_dataframe(
        cls,
        data: pd.DataFrame,
        y: str,
        d: str,
        ivar: Optional[str] = None,
    ) -> 'Design':
        """
        Build a design from a unit-level DataFrame.

        Rows with missing ``y`` or ``d`` are dropped with a ``DataWarning``.
        """
        clean = validate_and_prepare_data(data, y=y, d=d, ivar=ivar)
        index = pd.Index(clean[ivar]) if ivar is not None else clean.index
        return cls.from_arrays(
            clean[d].astype(int).values,
            clean[y].astype(float).values,
            index=index,
        )

    @property
    def n_total(self) -> int:
        return int(len(self.treatment))

    @property
    def n_treated(self) -> int:
        return int(self.treatment.sum())

    @property
    def n_control(self) -> int:
        return self.n_total - self.n_treated

    def science_table(self, tau: float = 0.0) -> 'ScienceTable':
        """Imputed science table under the constant-effect hypothesis ``tau``."""
        return ScienceTable.from_observed(self.treatment, self.outcome, tau)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            {'d': self.treatment.astype(int), 'y': self.outcome},
            index=self.index,
        )


@dataclass(frozen=True)
class ScienceTable:
    """
    Complete table of potential outcomes.

    Attributes
    ----------
    y0 : np.ndarray
        Outcome of each unit under control.
    y1 : np.ndarray
        Outcome of each unit under treatment.
    """
    y0: np.ndarray
    y1: np.ndarray

    def __post_init__(self):
        y0 = np.asarray(self.y0, dtype=float)
        y1 = np.asarray(self.y1, dtype=float)
        if y0.ndim != 1 or y1.shape != y0.shape:
            raise DimensionMismatchError(
                f'y0 and y1 must be 1-D with equal length, got shapes '
                f'{y0.shape} and {y1.shape}',
                expected=len(y0),
                got=len(y1),
            )
        object.__setattr__(self, 'y0', y0)
        object.__setattr__(self, 'y1', y1)

    def __len__(self) -> int:
        return len(self.y0)

    @classmethod
    def from_observed(cls, treatment, outcome, tau: float) -> 'ScienceTable':
        """
        Impute the missing potential outcomes under a constant effect ``tau``.

        Treated units keep their observed outcome as ``y1`` and get
        ``y0 = y - tau``; control units keep theirs as ``y0`` and get
        ``y1 = y + tau``.
        """
        d = np.asarray(treatment, dtype=bool)
        y = np.asarray(outcome, dtype=float)
        if d.shape != y.shape:
            raise DimensionMismatchError(
                f'treatment has {d.size} units but outcome has {y.size}',
                expected=d.size,
                got=y.size,
            )
        tau = float(tau)
        y0 = np.where(d, y - tau, y)
        y1 = np.where(d, y, y + tau)
        return cls(y0=y0, y1=y1)

    @classmethod
    def sharp_null(cls, outcome) -> 'ScienceTable':
        """Science table under Fisher's sharp null of no effect for any unit."""
        y = np.asarray(outcome, dtype=float)
        return cls(y0=y.copy(), y1=y.copy())

    def observed_outcomes(self, assignment) -> np.ndarray:
        """Outcomes revealed by ``assignment``: ``y1`` if treated else ``y0``."""
        w = np.asarray(assignment, dtype=bool)
        if w.shape != self.y0.shape:
            raise DimensionMismatchError(
                f'assignment has {w.size} units but science table has {len(self)}',
                expected=len(self),
                got=w.size,
            )
        return np.where(w, self.y1, self.y0)

    @property
    def unit_effects(self) -> np.ndarray:
        return self.y1 - self.y0

    @property
    def ate(self) -> float:
        return float(np.mean(self.y1 - self.y0))
