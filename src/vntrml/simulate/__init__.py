"""
Repeat-length simulation module for vntrml.

This module provides tools for simulating VNTR / microsatellite repeat counts
under the Sainudiin mutation model. Useful for:
- Validating parameter estimation methods
- Generating test datasets

Available simulators:
- VNTRSimulator: Independent loci evolving under a SainudiinModel
"""

from .base import TreeSimulator
from .output import SimulationOutput
from .vntr import VNTRSimulator

__all__ = [
    'TreeSimulator',
    'SimulationOutput',
    'VNTRSimulator',
]
