"""
Matrix operations for repeat-length transition probabilities.

This module provides the spectral machinery shared by the substitution
models: eigendecomposition of a (generally non-reversible) rate matrix,
extraction of the stationary distribution from the decomposition, and
reconstruction of transition probability matrices P(t) = exp(Qt).
"""

import warnings
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from scipy.linalg import expm, null_space


# Entries of P(t) this far outside [0, 1] are treated as round-off and clipped
PROBABILITY_TOLERANCE = 1e-8

# Maximum deviation of a row sum of P(t) from 1
ROW_SUM_TOLERANCE = 1e-6

# Eigenvalue magnitude (relative to the spectral radius) above which the
# "zero" eigenvalue is considered suspicious
STATIONARY_EIGENVALUE_TOLERANCE = 1e-8

# Residual |pi @ Q| (relative to max |Q|) above which the eigenvector row is
# replaced by the null space of Q^T
STATIONARY_RESIDUAL_TOLERANCE = 1e-10

# Total negative mass clipped from pi without a warning
STATIONARY_NEGATIVE_TOLERANCE = 1e-8

# Eigenvector condition numbers above this lose more than ~1e-10 of accuracy
# in V @ diag(exp) @ V^-1; such systems use the matrix exponential instead
EIGENVECTOR_CONDITION_LIMIT = 1e6


class TransitionProbabilityError(ArithmeticError, ValueError):
    """Raised when a computed P(t) is not stochastic within tolerance."""


class StationaryDistributionWarning(UserWarning):
    """Emitted when the stationary distribution cannot be extracted cleanly."""


@dataclass(frozen=True)
class EigenDecomposition:
    """
    Spectral decomposition Q = V @ diag(eigenvalues) @ V^-1.

    The arrays are made read-only on construction so a published
    decomposition can be shared between threads. Use :meth:`copy` to get an
    independent value.

    Attributes
    ----------
    eigenvalues : ndarray, shape (n,)
        Eigenvalues of Q, in solver order (no ordering is guaranteed)
    eigenvectors : ndarray, shape (n, n)
        Right eigenvectors, one per column
    inverse_eigenvectors : ndarray, shape (n, n)
        Inverse of the eigenvector matrix; row k is the left eigenvector
        belonging to eigenvalues[k]
    condition_number : float
        2-norm condition number of the eigenvector matrix, computed on
        construction if not given
    """

    eigenvalues: np.ndarray
    eigenvectors: np.ndarray
    inverse_eigenvectors: np.ndarray
    condition_number: Optional[float] = field(default=None)

    def __post_init__(self):
        for array in (self.eigenvalues, self.eigenvectors, self.inverse_eigenvectors):
            array.setflags(write=False)
        if self.condition_number is None:
            object.__setattr__(
                self, "condition_number", float(np.linalg.cond(self.eigenvectors))
            )

    @property
    def is_well_conditioned(self) -> bool:
        """True if P can be reconstructed from the factors to ~1e-10."""
        return self.condition_number <= EIGENVECTOR_CONDITION_LIMIT

    @property
    def n_states(self) -> int:
        """Dimension of the decomposed matrix."""
        return len(self.eigenvalues)

    def copy(self) -> "EigenDecomposition":
        """Return a deep copy of the decomposition."""
        return EigenDecomposition(
            eigenvalues=self.eigenvalues.copy(),
            eigenvectors=self.eigenvectors.copy(),
            inverse_eigenvectors=self.inverse_eigenvectors.copy(),
            condition_number=self.condition_number,
        )

    def reconstruct(self) -> np.ndarray:
        """Rebuild Q from its spectral factors (real part)."""
        Q = (self.eigenvectors * self.eigenvalues[np.newaxis, :]) @ self.inverse_eigenvectors
        return np.real(Q)


def matrix_exponential(Q: np.ndarray, t: float) -> np.ndarray:
    """
    Compute transition probability matrix P(t) = exp(Q*t).

    Uses scipy's Padé approximation with scaling and squaring. This is the
    reference implementation the eigensystem-based path is checked against.

    Parameters
    ----------
    Q : ndarray, shape (n, n)
        Rate matrix (instantaneous mutation rate matrix)
    t : float
        Evolutionary distance

    Returns
    -------
    P : ndarray, shape (n, n)
        Transition probability matrix
    """
    return expm(Q * t)


def eigen_decompose(Q: np.ndarray) -> EigenDecomposition:
    """
    Eigendecompose a general real rate matrix Q = V @ diag(eigenvalues) @ V^-1.

    Repeat-length rate matrices are not time-reversible, so the symmetrization
    trick used for reversible models does not apply and a general eigensolver
    is used instead. Asymmetric real matrices may have complex conjugate
    eigenpairs; these are kept complex. When every imaginary part is
    negligible the factors are returned as real arrays.

    Parameters
    ----------
    Q : ndarray, shape (n, n)
        Rate matrix

    Returns
    -------
    EigenDecomposition
        Eigenvalues, right eigenvectors and inverse eigenvectors

    Raises
    ------
    numpy.linalg.LinAlgError
        If the eigenvector matrix is singular (Q is defective)

    Examples
    --------
    >>> Q = np.array([[-1.0, 1.0], [2.0, -2.0]])
    >>> decomposition = eigen_decompose(Q)
    >>> np.allclose(decomposition.reconstruct(), Q)
    True
    """
    Q = np.asarray(Q, dtype=float)
    if Q.ndim != 2 or Q.shape[0] != Q.shape[1]:
        raise ValueError(f"Rate matrix must be square, got shape {Q.shape}")

    eigenvalues, eigenvectors = np.linalg.eig(Q)
    inverse_eigenvectors = np.linalg.inv(eigenvectors)

    # Drop imaginary parts only if all three factors are effectively real
    if np.iscomplexobj(eigenvalues) and all(
        np.isrealobj(np.real_if_close(factor))
        for factor in (eigenvalues, eigenvectors, inverse_eigenvectors)
    ):
        eigenvalues = np.real(eigenvalues)
        eigenvectors = np.real(eigenvectors)
        inverse_eigenvectors = np.real(inverse_eigenvectors)

    return EigenDecomposition(
        eigenvalues=np.array(eigenvalues),
        eigenvectors=np.array(eigenvectors),
        inverse_eigenvectors=np.array(inverse_eigenvectors),
    )


def find_stationary_distribution(
    eigenvalues: np.ndarray,
    inverse_eigenvectors: np.ndarray,
    Q: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Extract the stationary distribution from an eigensystem.

    The left eigenvector belonging to the eigenvalue of smallest magnitude
    (row k of V^-1) is normalized to sum to one. Ties are broken by the first
    occurrence.

    Non-reversible rate matrices with strong drift have badly conditioned
    eigenvectors, and the row of V^-1 can then carry visible error. If ``Q``
    is given and the row has negative entries or ``pi @ Q`` is not
    numerically zero, pi is recomputed from the null space of Q^T. Remaining
    round-off below zero is clipped and the vector renormalized.

    Parameters
    ----------
    eigenvalues : ndarray, shape (n,)
        Eigenvalues of Q
    inverse_eigenvectors : ndarray, shape (n, n)
        Inverse eigenvector matrix
    Q : ndarray, shape (n, n), optional
        Rate matrix, used to verify and if needed replace the eigenvector row

    Returns
    -------
    pi : ndarray, shape (n,)
        Stationary distribution; non-negative and summing to one

    Warns
    -----
    StationaryDistributionWarning
        If the rate matrix looks invalid: without ``Q``, when the smallest
        eigenvalue magnitude is not numerically zero; with ``Q``, when Q^T
        has no null space. Also if more than STATIONARY_NEGATIVE_TOLERANCE of
        negative mass had to be clipped.
    """
    magnitudes = np.abs(eigenvalues)
    # argmin returns the first index on ties
    index = int(np.argmin(magnitudes))

    row = inverse_eigenvectors[index, :]
    pi = np.real(row / row.sum())

    if Q is not None:
        if not _is_stationary(pi, Q):
            pi = _null_space_distribution(Q, fallback=pi)
        return _clip_distribution(pi)

    threshold = STATIONARY_EIGENVALUE_TOLERANCE * max(1.0, float(magnitudes.max()))
    if magnitudes[index] > threshold:
        warnings.warn(
            f"Smallest eigenvalue has magnitude {magnitudes[index]:.3e}; "
            f"the rate matrix may not be a valid generator",
            StationaryDistributionWarning,
        )

    return _clip_distribution(pi)


def _is_stationary(pi: np.ndarray, Q: np.ndarray) -> bool:
    scale = max(1.0, float(np.abs(Q).max()))
    residual = float(np.abs(pi @ Q).max())
    return pi.min() >= 0.0 and residual <= STATIONARY_RESIDUAL_TOLERANCE * scale


def _null_space_distribution(Q: np.ndarray, fallback: np.ndarray) -> np.ndarray:
    """Left null vector of Q normalized to sum one (first basis vector)."""
    basis = null_space(np.asarray(Q, dtype=float).T)
    if basis.shape[1] == 0:
        warnings.warn(
            "Rate matrix has no left null space; it may not be a valid generator",
            StationaryDistributionWarning,
        )
        return fallback
    v = basis[:, 0]
    return v / v.sum()


def _clip_distribution(pi: np.ndarray) -> np.ndarray:
    negative_mass = float(-pi[pi < 0.0].sum())
    if negative_mass == 0.0:
        return pi
    if negative_mass > STATIONARY_NEGATIVE_TOLERANCE:
        warnings.warn(
            f"Clipped negative stationary mass {negative_mass:.3e}; "
            f"the rate matrix may be numerically degenerate",
            StationaryDistributionWarning,
        )
    pi = np.clip(pi, 0.0, None)
    return pi / pi.sum()


def transition_probabilities(
    decomposition: EigenDecomposition,
    pi: np.ndarray,
    row_sum2: np.ndarray,
    start_time: float,
    end_time: float,
    rate: float,
    smoothing: str = "clip",
    Q: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Compute P(d) = V @ diag(exp(d * eigenvalues)) @ V^-1 for a branch.

    The branch distance ``(start_time - end_time) * rate`` is divided by the
    stationary-weighted mean step size ``sum_i pi[i] * row_sum2[i]`` so that
    one unit of branch length corresponds to one expected repeat unit of
    mutational change.

    Parameters
    ----------
    decomposition : EigenDecomposition
        Spectral decomposition of the rate matrix
    pi : ndarray, shape (n,)
        Stationary distribution of the rate matrix
    row_sum2 : ndarray, shape (n,)
        Per-state sum of rate times step distance
    start_time, end_time : float
        Heights of the parent and child node of the branch
    rate : float
        Branch rate multiplier
    smoothing : {'clip', 'abs'}
        'clip' (default) clips round-off outside [0, 1] and raises if the
        result is not stochastic within tolerance; 'abs' takes the entrywise
        absolute value of the eigensystem reconstruction without any check.
    Q : ndarray, shape (n, n), optional
        Rate matrix. With 'clip', P is computed as expm(Q d) instead when the
        eigenvectors are badly conditioned or the reconstruction fails the
        stochastic check.

    Returns
    -------
    P : ndarray, shape (n, n)
        Transition probability matrix

    Raises
    ------
    ValueError
        If the rate matrix has no mutational events (zero normalization) or
        ``smoothing`` is unknown
    TransitionProbabilityError
        If the result is not stochastic within tolerance

    Notes
    -----
    For a distance of zero the result is the identity matrix; for any positive
    distance rows sum to one and every entry lies in [0, 1].
    """
    if smoothing not in ("clip", "abs"):
        raise ValueError(f"Unknown smoothing mode: {smoothing}")

    distance = (start_time - end_time) * rate

    normalization = float(np.dot(pi, row_sum2))
    if not normalization > 0.0:
        raise ValueError(
            f"Rate matrix normalization must be positive, got {normalization}: "
            f"the stationary distribution lies on states with zero mutation "
            f"rate (with one_on_a1 = 0, every state at or below the linear "
            f"regime has zero mutation rate)"
        )
    distance /= normalization

    if smoothing == "clip" and Q is not None and not decomposition.is_well_conditioned:
        return _clip_probabilities(matrix_exponential(Q, distance))

    temp = np.exp(distance * decomposition.eigenvalues)
    iexp = decomposition.inverse_eigenvectors * temp[:, np.newaxis]
    P = np.real(decomposition.eigenvectors @ iexp)

    if smoothing == "abs":
        return np.abs(P)

    try:
        return _clip_probabilities(P)
    except TransitionProbabilityError:
        if Q is None:
            raise
        return _clip_probabilities(matrix_exponential(Q, distance))


def _clip_probabilities(P: np.ndarray) -> np.ndarray:
    """Clip round-off outside [0, 1] and verify P is stochastic."""
    lowest = P.min()
    highest = P.max()
    if lowest < -PROBABILITY_TOLERANCE or highest > 1.0 + PROBABILITY_TOLERANCE:
        raise TransitionProbabilityError(
            f"Transition probabilities outside [0, 1] beyond tolerance: "
            f"min={lowest:.3e}, max={highest:.3e}"
        )

    P = np.clip(P, 0.0, 1.0)

    row_error = np.abs(P.sum(axis=1) - 1.0).max()
    if row_error > ROW_SUM_TOLERANCE:
        raise TransitionProbabilityError(
            f"Transition probability rows deviate from 1 by {row_error:.3e}"
        )

    return P
