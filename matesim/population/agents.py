"""
Agent and pool data structures.

An agent carries a trait vector (self-ratings) and a preference vector
(ideal-partner ratings) on the same fixed scale. A pool is an ordered,
fixed-size collection of same-sex agents stored column-wise as arrays so
attraction and investment matrices can be built without per-agent loops.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Dict, Any, List, Iterator

import numpy as np
import pandas as pd

MALE = 0
FEMALE = 1

SEX_LABELS = {MALE: "male", FEMALE: "female"}


@dataclass(frozen=True, eq=False)
class Agent:
    """
    A single synthetic agent.

    Attributes:
        pin: Identifier unique across all pools of one trial
        sex: 0 = male, 1 = female
        traits: Self-rating vector
        preferences: Ideal-partner rating vector
        modelguess: PIN of the assigned partner, None until matching completes
    """
    pin: int
    sex: int
    traits: np.ndarray
    preferences: np.ndarray
    modelguess: Optional[int] = None

    def with_partner(self, partner_pin: Optional[int]) -> "Agent":
        """Return a copy of this agent with its assigned partner set."""
        if self.modelguess is not None:
            raise ValueError(f"Agent {self.pin} already has partner {self.modelguess}")
        return replace(self, modelguess=partner_pin)


@dataclass(eq=False)
class Pool:
    """
    Ordered collection of same-sex agents.

    Attributes:
        sex: Sex label shared by every agent in the pool
        pins: Agent identifiers (n,)
        traits: Trait matrix (n x d)
        preferences: Preference matrix (n x d)
        dimensions: Names of the d rated dimensions
    """
    sex: int
    pins: np.ndarray
    traits: np.ndarray
    preferences: np.ndarray
    dimensions: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.sex not in SEX_LABELS:
            raise ValueError(f"sex must be 0 or 1, got {self.sex}")

        # Private read-only copies: agents hand out row views of these arrays
        self.pins = np.array(self.pins, dtype=int)
        self.traits = np.array(self.traits, dtype=float)
        self.preferences = np.array(self.preferences, dtype=float)
        for values in (self.pins, self.traits, self.preferences):
            values.setflags(write=False)

        n = len(self.pins)
        if self.traits.ndim != 2 or self.traits.shape[0] != n:
            raise ValueError(f"traits must be ({n} x d), got {self.traits.shape}")
        if self.preferences.shape != self.traits.shape:
            raise ValueError(
                f"preferences shape {self.preferences.shape} does not match "
                f"traits shape {self.traits.shape}"
            )
        if len(np.unique(self.pins)) != n:
            raise ValueError("PINs must be unique within a pool")

        if not self.dimensions:
            self.dimensions = [f"dim{i + 1}" for i in range(self.traits.shape[1])]
        elif len(self.dimensions) != self.traits.shape[1]:
            raise ValueError(
                f"Expected {self.traits.shape[1]} dimension names, got {len(self.dimensions)}"
            )

        self._index = {int(pin): i for i, pin in enumerate(self.pins)}

    def __len__(self) -> int:
        return len(self.pins)

    def __contains__(self, pin) -> bool:
        return pin in self._index

    def __iter__(self) -> Iterator[Agent]:
        for i in range(len(self)):
            yield self.agent(i)

    def index_of(self, pin: int) -> int:
        """Row index of the agent with this PIN."""
        try:
            return self._index[int(pin)]
        except KeyError:
            raise KeyError(f"PIN {pin} not in {SEX_LABELS[self.sex]} pool") from None

    def agent(self, i: int) -> Agent:
        """Read-only agent view of row i."""
        return Agent(
            pin=int(self.pins[i]),
            sex=self.sex,
            traits=self.traits[i],
            preferences=self.preferences[i]
        )

    def subset(self, indices) -> "Pool":
        """Pool restricted to the given row indices, order preserved."""
        indices = np.asarray(indices, dtype=int)
        return Pool(
            sex=self.sex,
            pins=self.pins[indices],
            traits=self.traits[indices],
            preferences=self.preferences[indices],
            dimensions=list(self.dimensions)
        )

    def to_frame(self, partners: Optional[Dict[int, Optional[int]]] = None) -> pd.DataFrame:
        """
        Convert to a DataFrame with one row per agent.

        Args:
            partners: Optional PIN -> partner PIN mapping for the modelguess column

        Returns:
            DataFrame with columns pin, sex, trait_*, pref_* and modelguess
        """
        df = pd.DataFrame({"pin": self.pins, "sex": self.sex})
        traits = pd.DataFrame(self.traits, columns=[f"trait_{d}" for d in self.dimensions])
        prefs = pd.DataFrame(self.preferences, columns=[f"pref_{d}" for d in self.dimensions])
        df = pd.concat([df, traits, prefs], axis=1)

        if partners is not None:
            df["modelguess"] = pd.array(
                [partners.get(int(pin)) for pin in self.pins], dtype="Int64"
            )
        return df

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sex": SEX_LABELS[self.sex],
            "size": len(self),
            "dimensions": list(self.dimensions)
        }
