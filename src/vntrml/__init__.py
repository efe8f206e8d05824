"""
vntrml: repeat-length mutation models for phylogenetic likelihood.

A continuous-time Markov chain engine for VNTR / microsatellite evolution
under the Sainudiin model: it builds the rate matrix, caches its
eigendecomposition, and computes branch transition probabilities for a
likelihood evaluator or simulator.

Quick Start
-----------
Transition probabilities for one branch:

>>> from vntrml import SainudiinModel
>>> model = SainudiinModel(rb=0.5, ieq=10, g=0.7, one_on_a1=1.0,
...                        start_lin_regime=10, n_states=5, min_repeat=8)
>>> P = model.get_transition_probabilities(start_time=0.5, end_time=0.0, rate=1.0)

Likelihood of repeat data on a tree:

>>> from vntrml import RepeatAlignment, Tree, LikelihoodCalculator
>>> aln = RepeatAlignment.from_table("repeats.txt")
>>> tree = Tree.from_newick("((A:0.1,B:0.2):0.15,C:0.3);")
>>> model = SainudiinModel(rb=0.5, ieq=10, g=0.7, one_on_a1=1.0,
...                        start_lin_regime=10, data=aln)
>>> LikelihoodCalculator(aln, tree).compute_log_likelihood(model)

Checkpointing around a proposal:

>>> model.store()
>>> model.g.value = 0.5
>>> # ... evaluate, reject ...
>>> model.restore()
"""

__version__ = "0.1.0"

from .core.likelihood import LikelihoodCalculator
from .core.matrix import (
    EigenDecomposition,
    StationaryDistributionWarning,
    TransitionProbabilityError,
)
from .io.repeats import RepeatAlignment
from .io.trees import Tree
from .models.frequencies import Frequencies
from .models.parameters import IntegerParameter, RealParameter
from .models.sainudiin import SainudiinModel, build_sainudiin_Q_matrix
from .simulate.vntr import VNTRSimulator

__all__ = [
    # Model
    "SainudiinModel",
    "build_sainudiin_Q_matrix",
    "RealParameter",
    "IntegerParameter",
    "Frequencies",

    # Numerics
    "EigenDecomposition",
    "TransitionProbabilityError",
    "StationaryDistributionWarning",

    # Data
    "RepeatAlignment",
    "Tree",

    # Likelihood and simulation
    "LikelihoodCalculator",
    "VNTRSimulator",

    # Version
    "__version__",
]
