"""
Equilibrium frequency placeholder for repeat-length models.
"""

import numpy as np


class Frequencies:
    """
    State frequency vector supplied alongside a substitution model.

    The Sainudiin model derives its stationary distribution from the rate
    matrix, so this vector only needs the right dimension; it is the starting
    value for frequency-based root priors.

    Parameters
    ----------
    freqs : array_like
        Frequencies (normalized on construction)
    """

    def __init__(self, freqs):
        freqs = np.asarray(freqs, dtype=float)
        if freqs.ndim != 1 or len(freqs) == 0:
            raise ValueError(f"Frequencies must be a non-empty vector, got shape {freqs.shape}")
        if np.any(freqs < 0):
            raise ValueError("Frequencies must be non-negative")
        self._freqs = freqs / freqs.sum()

    @classmethod
    def uniform(cls, n_states: int) -> "Frequencies":
        """Uniform frequencies over ``n_states`` states."""
        return cls(np.ones(n_states) / n_states)

    def get_freqs(self) -> np.ndarray:
        """Return a copy of the frequency vector."""
        return self._freqs.copy()

    def assign_from(self, other: "Frequencies"):
        """Take over the values (and dimension) of another frequency vector."""
        self._freqs = other.get_freqs()

    def __len__(self) -> int:
        return len(self._freqs)
