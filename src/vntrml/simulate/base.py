"""
Base class for tree simulators.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

import numpy as np

from ..io.trees import Tree, TreeNode


class TreeSimulator(ABC):
    """
    Abstract base class for simulating character states down a tree.

    Subclasses supply the root distribution and the per-branch evolution
    step; this class handles validation and traversal.

    Parameters
    ----------
    tree : Tree
        Phylogenetic tree with branch lengths
    n_loci : int
        Number of independent loci to simulate
    seed : int, optional
        Random seed for reproducibility

    Attributes
    ----------
    tree : Tree
        The phylogenetic tree
    n_loci : int
        Number of loci
    rng : numpy.random.Generator
        Random number generator (seeded for reproducibility)
    """

    def __init__(
        self,
        tree: Tree,
        n_loci: int,
        seed: Optional[int] = None
    ):
        if n_loci < 1:
            raise ValueError(f"n_loci must be positive, got {n_loci}")

        self.tree = tree
        self.n_loci = n_loci
        self.rng = np.random.default_rng(seed)

        self._validate_tree()

    def _validate_tree(self):
        """Ensure tree is suitable for simulation."""
        if self.tree.root is None:
            raise ValueError("Tree must be rooted for simulation")

        if self.tree.root.is_leaf:
            raise ValueError("Tree must have at least one branch")

    @abstractmethod
    def _generate_ancestral_states(self) -> np.ndarray:
        """
        Draw states at the root node.

        Returns
        -------
        np.ndarray, shape (n_loci,)
            Root states
        """

    @abstractmethod
    def _evolve_states(
        self,
        parent_states: np.ndarray,
        parent: TreeNode,
        child: TreeNode,
    ) -> np.ndarray:
        """
        Evolve states along the branch from ``parent`` to ``child``.

        Returns
        -------
        np.ndarray, shape (n_loci,)
            Child states
        """

    def simulate(self, include_ancestral: bool = False) -> Dict[str, np.ndarray]:
        """
        Simulate states on the tree.

        1. Draw root states
        2. Traverse the tree from root to tips
        3. Evolve states along each branch

        Parameters
        ----------
        include_ancestral : bool
            Also return internal node states, keyed 'node_<id>'

        Returns
        -------
        dict
            Mapping from taxon name to state array
        """
        states = {self.tree.root.id: self._generate_ancestral_states()}

        for parent, child in self.tree.get_branches():
            states[child.id] = self._evolve_states(states[parent.id], parent, child)

        result = {}
        for node in self.tree.postorder():
            if node.is_leaf:
                name = node.name if node.name else str(node.id)
                result[name] = states[node.id]
            elif include_ancestral:
                result[f"node_{node.id}"] = states[node.id]

        return result

    @abstractmethod
    def get_parameters(self) -> Dict:
        """
        Get simulation parameters for output metadata.

        Returns
        -------
        dict
            Dictionary of model parameters
        """
