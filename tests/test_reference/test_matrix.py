"""
Reference tests for matrix operations.

These tests validate the eigensystem-based transition probabilities against
scipy's matrix exponential and known properties of rate matrices.
"""

import warnings

import numpy as np
import pytest
from vntrml.core.matrix import (
    EigenDecomposition,
    StationaryDistributionWarning,
    TransitionProbabilityError,
    eigen_decompose,
    find_stationary_distribution,
    matrix_exponential,
    transition_probabilities,
)


def _jc_rate_matrix(alpha: float = 0.25) -> np.ndarray:
    Q = np.full((4, 4), alpha)
    np.fill_diagonal(Q, -3 * alpha)
    return Q


def _random_generator(n: int, seed: int = 42) -> np.ndarray:
    """Create a random non-reversible rate matrix."""
    rng = np.random.default_rng(seed)
    Q = rng.uniform(0.1, 1.0, (n, n))
    np.fill_diagonal(Q, 0.0)
    np.fill_diagonal(Q, -Q.sum(axis=1))
    return Q


class TestMatrixExponential:
    """Test the scipy reference exponential."""

    def test_jc69_analytical(self):
        """Test matrix exponential against analytical JC69 solution."""
        alpha = 0.25
        Q = _jc_rate_matrix(alpha)
        t = 0.1

        P = matrix_exponential(Q, t)

        e_term = np.exp(-4 * alpha * t)
        np.testing.assert_allclose(np.diag(P), 0.25 + 0.75 * e_term, rtol=1e-10)
        np.testing.assert_allclose(P[0, 1], 0.25 - 0.25 * e_term, rtol=1e-10)

    def test_identity_at_zero(self):
        """Test P(0) = I."""
        P0 = matrix_exponential(_random_generator(4), 0.0)
        np.testing.assert_allclose(P0, np.eye(4), atol=1e-14)


class TestEigenDecomposition:
    """Test eigendecomposition of general rate matrices."""

    def test_reconstruction(self):
        """Test Q = V @ diag(eigenvalues) @ V^-1 for a non-reversible matrix."""
        Q = _random_generator(5)
        decomposition = eigen_decompose(Q)

        np.testing.assert_allclose(decomposition.reconstruct(), Q, atol=1e-12)

    def test_symmetric_matrix_is_real(self):
        """Test that real spectra are returned as real arrays."""
        decomposition = eigen_decompose(_jc_rate_matrix())

        assert not np.iscomplexobj(decomposition.eigenvalues)
        assert not np.iscomplexobj(decomposition.eigenvectors)
        assert not np.iscomplexobj(decomposition.inverse_eigenvectors)

    def test_complex_pairs_kept(self):
        """Test a cyclic generator with complex conjugate eigenvalues."""
        Q = np.array([[-1.0, 1.0, 0.0], [0.0, -1.0, 1.0], [1.0, 0.0, -1.0]])
        decomposition = eigen_decompose(Q)

        assert np.iscomplexobj(decomposition.eigenvalues)
        np.testing.assert_allclose(decomposition.reconstruct(), Q, atol=1e-12)

    def test_not_square(self):
        """Test that a non-square matrix is rejected."""
        with pytest.raises(ValueError, match="must be square"):
            eigen_decompose(np.zeros((2, 3)))

    def test_read_only(self):
        """Test that published arrays cannot be modified in place."""
        decomposition = eigen_decompose(_random_generator(3))

        with pytest.raises(ValueError):
            decomposition.eigenvalues[0] = 1.0
        with pytest.raises(ValueError):
            decomposition.inverse_eigenvectors[0, 0] = 1.0

    def test_copy_is_independent(self):
        """Test that copy() returns equal but distinct arrays."""
        decomposition = eigen_decompose(_random_generator(3))
        duplicate = decomposition.copy()

        assert duplicate.eigenvalues is not decomposition.eigenvalues
        np.testing.assert_array_equal(duplicate.eigenvalues, decomposition.eigenvalues)
        np.testing.assert_array_equal(duplicate.eigenvectors, decomposition.eigenvectors)
        np.testing.assert_array_equal(
            duplicate.inverse_eigenvectors, decomposition.inverse_eigenvectors
        )
        assert duplicate.n_states == 3


class TestStationaryDistribution:
    """Test extraction of the stationary distribution."""

    def test_invariant_under_generator(self):
        """Test pi @ Q = 0 and sum(pi) = 1."""
        Q = _random_generator(6)
        decomposition = eigen_decompose(Q)

        pi = find_stationary_distribution(
            decomposition.eigenvalues, decomposition.inverse_eigenvectors
        )

        assert pi.sum() == pytest.approx(1.0, abs=1e-12)
        assert np.all(pi >= 0)
        np.testing.assert_allclose(pi @ Q, 0.0, atol=1e-12)

    def test_uniform_for_symmetric(self):
        """Test that a symmetric generator has uniform stationary distribution."""
        decomposition = eigen_decompose(_jc_rate_matrix())
        pi = find_stationary_distribution(
            decomposition.eigenvalues, decomposition.inverse_eigenvectors
        )
        np.testing.assert_allclose(pi, 0.25, atol=1e-12)

    def test_ties_take_first_index(self):
        """Test that the first eigenvalue of smallest magnitude is used."""
        eigenvalues = np.array([-1.0, 0.0, 0.0])
        inverse = np.array([[1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 0.0, 2.0]])

        pi = find_stationary_distribution(eigenvalues, inverse)

        np.testing.assert_allclose(pi, [0.5, 0.5, 0.0])

    def test_warns_on_nonzero_eigenvalue(self):
        """Test that a matrix without a zero eigenvalue triggers a warning."""
        eigenvalues = np.array([-1.0, -2.0])
        inverse = np.eye(2)

        with pytest.warns(StationaryDistributionWarning, match="not be a valid generator"):
            find_stationary_distribution(eigenvalues, inverse)

    def test_no_warning_for_valid_generator(self):
        """Test that a valid generator extracts silently."""
        decomposition = eigen_decompose(_random_generator(5))
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            find_stationary_distribution(
                decomposition.eigenvalues, decomposition.inverse_eigenvectors
            )

    def test_mixed_sign_row_replaced_from_rate_matrix(self):
        """Test that an inaccurate eigenvector row is recomputed from Q."""
        Q = _random_generator(3)
        expected = eigen_decompose(Q)
        expected_pi = find_stationary_distribution(
            expected.eigenvalues, expected.inverse_eigenvectors
        )
        eigenvalues = np.array([0.0, -1.0, -2.0])
        inverse = np.array([[1.0, -0.1, 0.5], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])

        pi = find_stationary_distribution(eigenvalues, inverse, Q)

        assert np.all(pi >= 0)
        np.testing.assert_allclose(pi, expected_pi, atol=1e-12)
        np.testing.assert_allclose(pi @ Q, 0.0, atol=1e-12)

    def test_round_off_clipped_silently(self):
        """Test that negligible negative entries are set to zero."""
        eigenvalues = np.array([0.0, -1.0])
        inverse = np.array([[1.0, -1e-12], [0.0, 1.0]])

        with warnings.catch_warnings():
            warnings.simplefilter("error")
            pi = find_stationary_distribution(eigenvalues, inverse)

        np.testing.assert_array_equal(pi, [1.0, 0.0])

    def test_large_negative_mass_warns(self):
        """Test that clipping visible negative mass is reported."""
        eigenvalues = np.array([0.0, -1.0])
        inverse = np.array([[1.0, -0.1], [0.0, 1.0]])

        with pytest.warns(StationaryDistributionWarning, match="negative stationary mass"):
            pi = find_stationary_distribution(eigenvalues, inverse)

        np.testing.assert_array_equal(pi, [1.0, 0.0])


class TestTransitionProbabilities:
    """Test reconstruction of P(t) from the eigensystem."""

    @staticmethod
    def _setup(Q):
        decomposition = eigen_decompose(Q)
        pi = find_stationary_distribution(
            decomposition.eigenvalues, decomposition.inverse_eigenvectors
        )
        return decomposition, pi

    def test_matches_expm(self):
        """Test P(t) against scipy's expm for a non-reversible matrix."""
        Q = _random_generator(5)
        decomposition, pi = self._setup(Q)
        # Unit step sizes make the normalization the mean total rate
        row_sum2 = -np.diag(Q)
        normalization = pi @ row_sum2

        P = transition_probabilities(decomposition, pi, row_sum2, 0.7, 0.2, 2.0)

        expected = matrix_exponential(Q, (0.7 - 0.2) * 2.0 / normalization)
        np.testing.assert_allclose(P, expected, atol=1e-10)

    def test_complex_spectrum_matches_expm(self):
        """Test that complex eigenpairs reconstruct a real stochastic matrix."""
        Q = np.array([[-1.0, 1.0, 0.0], [0.0, -1.0, 1.0], [1.0, 0.0, -1.0]])
        decomposition, pi = self._setup(Q)
        row_sum2 = np.ones(3)

        P = transition_probabilities(decomposition, pi, row_sum2, 1.3, 0.0, 1.0)

        assert not np.iscomplexobj(P)
        np.testing.assert_allclose(P, matrix_exponential(Q, 1.3), atol=1e-10)

    def test_identity_at_zero_distance(self):
        """Test P = I when start and end times coincide."""
        Q = _random_generator(4)
        decomposition, pi = self._setup(Q)

        P = transition_probabilities(decomposition, pi, np.ones(4), 0.5, 0.5, 1.0)

        np.testing.assert_allclose(P, np.eye(4), atol=1e-10)

    def test_large_distance_converges_to_stationary(self):
        """Test that every row approaches pi at large distance."""
        Q = _random_generator(4)
        decomposition, pi = self._setup(Q)

        P = transition_probabilities(decomposition, pi, np.ones(4), 200.0, 0.0, 1.0)

        for i in range(4):
            np.testing.assert_allclose(P[i], pi, atol=1e-8)

    def test_zero_normalization(self):
        """Test that a rate matrix without events is rejected."""
        Q = _random_generator(3)
        decomposition, pi = self._setup(Q)

        with pytest.raises(ValueError, match="normalization must be positive"):
            transition_probabilities(decomposition, pi, np.zeros(3), 1.0, 0.0, 1.0)

    def test_not_stochastic_raises(self):
        """Test that a non-generator eigensystem is detected."""
        decomposition = EigenDecomposition(
            eigenvalues=np.array([0.0, 1.0]),
            eigenvectors=np.eye(2),
            inverse_eigenvectors=np.eye(2),
        )
        pi = np.array([0.5, 0.5])

        with pytest.raises(TransitionProbabilityError):
            transition_probabilities(decomposition, pi, np.ones(2), 1.0, 0.0, 1.0)

    def test_abs_smoothing_skips_checks(self):
        """Test that 'abs' smoothing returns the absolute value unchecked."""
        decomposition = EigenDecomposition(
            eigenvalues=np.array([0.0, 1.0]),
            eigenvectors=np.eye(2),
            inverse_eigenvectors=np.eye(2),
        )
        pi = np.array([0.5, 0.5])

        P = transition_probabilities(
            decomposition, pi, np.ones(2), 1.0, 0.0, 1.0, smoothing="abs"
        )

        np.testing.assert_allclose(P, np.diag([1.0, np.e]))

    def test_unknown_smoothing(self):
        """Test that unknown smoothing modes are rejected."""
        Q = _random_generator(3)
        decomposition, pi = self._setup(Q)

        with pytest.raises(ValueError, match="Unknown smoothing"):
            transition_probabilities(
                decomposition, pi, np.ones(3), 1.0, 0.0, 1.0, smoothing="round"
            )

    def test_ill_conditioned_uses_matrix_exponential(self):
        """Test that badly conditioned eigenvectors defer to expm(Q d)."""
        Q = _random_generator(4)
        decomposition, pi = self._setup(Q)
        # Corrupted factors flagged as ill-conditioned must not be used
        flagged = EigenDecomposition(
            eigenvalues=decomposition.eigenvalues.copy(),
            eigenvectors=decomposition.eigenvectors.copy(),
            inverse_eigenvectors=decomposition.inverse_eigenvectors * 1.05,
            condition_number=1e12,
        )
        row_sum2 = np.ones(4)

        P = transition_probabilities(flagged, pi, row_sum2, 0.8, 0.0, 1.0, Q=Q)

        np.testing.assert_allclose(P, matrix_exponential(Q, 0.8), atol=1e-12)

    def test_failed_reconstruction_falls_back(self):
        """Test that a non-stochastic reconstruction is recomputed from Q."""
        Q = _random_generator(4)
        decomposition, pi = self._setup(Q)
        corrupted = EigenDecomposition(
            eigenvalues=decomposition.eigenvalues.copy(),
            eigenvectors=decomposition.eigenvectors.copy(),
            inverse_eigenvectors=decomposition.inverse_eigenvectors * 1.05,
        )
        row_sum2 = np.ones(4)

        with pytest.raises(TransitionProbabilityError):
            transition_probabilities(corrupted, pi, row_sum2, 0.8, 0.0, 1.0)

        P = transition_probabilities(corrupted, pi, row_sum2, 0.8, 0.0, 1.0, Q=Q)
        np.testing.assert_allclose(P, matrix_exponential(Q, 0.8), atol=1e-12)

    def test_condition_number_recorded(self):
        """Test that decompositions carry the eigenvector condition number."""
        decomposition = eigen_decompose(_random_generator(4))

        assert decomposition.condition_number >= 1.0
        assert decomposition.is_well_conditioned
        assert decomposition.copy().condition_number == decomposition.condition_number
