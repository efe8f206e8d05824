"""
Repeat-length mutation models.

This module provides the Sainudiin microsatellite model and its building
blocks:

- **Rate matrix builder**: geometric step sizes, drift toward an equilibrium
  repeat length, piecewise-linear rate-length dependence
- **SainudiinModel**: cached eigensystem with store/restore checkpointing
- **Parameters**: bounded parameter handles that invalidate the cache
"""

from vntrml.models.frequencies import Frequencies
from vntrml.models.parameters import IntegerParameter, Parameter, RealParameter
from vntrml.models.sainudiin import (
    RateSystem,
    SainudiinModel,
    build_sainudiin_Q_matrix,
)

__all__ = [
    "Frequencies",
    "IntegerParameter",
    "Parameter",
    "RealParameter",
    "RateSystem",
    "SainudiinModel",
    "build_sainudiin_Q_matrix",
]
