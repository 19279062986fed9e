"""
Per-individual biomarker observations.

An :class:`Observation` is the immutable, already-parsed time series of one
individual. How the data was read (CSV, database, simulation) is not the
concern of this module.
"""

from dataclasses import dataclass
from typing import Hashable, Iterable, List, Sequence, Tuple

import numpy as np


class InvalidDataset(ValueError):
    """Raised when the supplied observations cannot be sampled."""


@dataclass(frozen=True, eq=False)
class Observation:
    """
    Measured biomarker trajectory of a single individual.

    Parameters
    ----------
    individual_id : hashable
        Identifier of the individual (unique within a dataset).
    times : array_like
        Sampling times, finite and strictly increasing.
    values : array_like
        Measured biomarker values, one per sampling time.

    Examples
    --------
    >>> obs = Observation("ID1", times=[0.0, 6.0, 12.0], values=[2.0, 3.5, 3.5])
    >>> obs.n_measurements
    3
    """

    individual_id: Hashable
    times: np.ndarray
    values: np.ndarray

    def __post_init__(self):
        times = np.array(self.times, dtype=float).reshape(-1)
        values = np.array(self.values, dtype=float).reshape(-1)

        if times.size < 1:
            raise InvalidDataset(
                f"Individual '{self.individual_id}' has no measurements"
            )
        if times.shape != values.shape:
            raise InvalidDataset(
                f"Individual '{self.individual_id}': {times.size} times "
                f"but {values.size} values"
            )
        if not (np.all(np.isfinite(times)) and np.all(np.isfinite(values))):
            raise InvalidDataset(
                f"Individual '{self.individual_id}' has non-finite measurements"
            )
        if np.any(np.diff(times) <= 0):
            raise InvalidDataset(
                f"Sampling times of individual '{self.individual_id}' "
                f"must be strictly increasing"
            )

        times.flags.writeable = False
        values.flags.writeable = False
        # Frozen dataclass: bypass __setattr__ to store the normalized arrays
        object.__setattr__(self, "times", times)
        object.__setattr__(self, "values", values)

    @property
    def n_measurements(self) -> int:
        return int(self.times.size)

    def pairs(self) -> List[Tuple[float, float]]:
        """Return the measurements as ``(time, value)`` tuples."""
        return list(zip(self.times.tolist(), self.values.tolist()))

    @classmethod
    def from_pairs(cls, individual_id: Hashable,
                   pairs: Iterable[Tuple[float, float]]) -> 'Observation':
        """
        Build an observation from ``(time, value)`` pairs.

        Parameters
        ----------
        individual_id : hashable
            Identifier of the individual.
        pairs : iterable of (float, float)
            Measurements in time order.
        """
        pairs = list(pairs)
        times = [p[0] for p in pairs]
        values = [p[1] for p in pairs]
        return cls(individual_id, times, values)

    def __repr__(self) -> str:
        return (f"Observation(individual_id={self.individual_id!r}, "
                f"n_measurements={self.n_measurements})")


def validate_observations(observations: Sequence[Observation]) -> Tuple[Observation, ...]:
    """
    Check a dataset before sampling.

    Parameters
    ----------
    observations : sequence of Observation
        One entry per individual.

    Returns
    -------
    tuple of Observation
        The observations, in the order supplied.

    Raises
    ------
    InvalidDataset
        If the dataset is empty, contains something other than
        :class:`Observation`, or repeats an individual identifier.
    """
    observations = tuple(observations)
    if not observations:
        raise InvalidDataset("At least one individual is required")

    seen = set()
    for obs in observations:
        if not isinstance(obs, Observation):
            raise InvalidDataset(
                f"Expected Observation instances, got {type(obs).__name__}"
            )
        if obs.n_measurements < 1:
            raise InvalidDataset(
                f"Individual '{obs.individual_id}' has no measurements"
            )
        if obs.individual_id in seen:
            raise InvalidDataset(
                f"Duplicate individual identifier '{obs.individual_id}'"
            )
        seen.add(obs.individual_id)

    return observations
