"""
Core algorithms for repeat-length likelihood calculation.

This module provides low-level computational routines:

- **Matrix operations**: Eigendecomposition, stationary distribution and
  transition probabilities for non-reversible rate matrices
- **Likelihood calculation**: Felsenstein's pruning algorithm over loci

These are expert-level functions typically not needed by end users.
"""

from vntrml.core.likelihood import LikelihoodCalculator
from vntrml.core.matrix import (
    EigenDecomposition,
    StationaryDistributionWarning,
    TransitionProbabilityError,
    eigen_decompose,
    find_stationary_distribution,
    matrix_exponential,
    transition_probabilities,
)

__all__ = [
    "LikelihoodCalculator",
    "EigenDecomposition",
    "StationaryDistributionWarning",
    "TransitionProbabilityError",
    "eigen_decompose",
    "find_stationary_distribution",
    "matrix_exponential",
    "transition_probabilities",
]
