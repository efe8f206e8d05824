"""
Likelihood calculation for repeat-length data.

This module implements Felsenstein's pruning algorithm over VNTR loci, using a
substitution model's transition probabilities for every branch.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import numpy as np

from ..io.repeats import MISSING_STATE, RepeatAlignment
from ..io.trees import Tree


class LikelihoodCalculator:
    """
    Compute phylogenetic likelihood using Felsenstein's pruning algorithm.

    Branch transition matrices are requested from the model concurrently,
    one task per branch, mirroring a threaded tree likelihood. The model is
    responsible for rebuilding its eigensystem only once per change.

    Attributes
    ----------
    alignment : RepeatAlignment
        Repeat counts
    tree : Tree
        Phylogenetic tree with node heights
    n_states : int
        Number of repeat-length states
    n_loci : int
        Number of loci
    n_threads : int, optional
        Worker threads for branch matrices (None: executor default)
    """

    def __init__(
        self,
        alignment: RepeatAlignment,
        tree: Tree,
        n_threads: Optional[int] = None,
    ):
        """
        Initialize likelihood calculator.

        Parameters
        ----------
        alignment : RepeatAlignment
            Repeat counts
        tree : Tree
            Phylogenetic tree
        n_threads : int, optional
            Number of worker threads
        """
        self.alignment = alignment
        self.tree = tree
        self.n_threads = n_threads

        if len(alignment.names) != tree.n_leaves:
            raise ValueError(
                f"Alignment has {len(alignment.names)} taxa but tree has "
                f"{tree.n_leaves} leaves"
            )

        alignment_names_set = set(alignment.names)
        tree_names_set = set(tree.leaf_names)
        if alignment_names_set != tree_names_set:
            raise ValueError(
                "Alignment and tree have different taxa. "
                f"In alignment but not tree: {alignment_names_set - tree_names_set}. "
                f"In tree but not alignment: {tree_names_set - alignment_names_set}"
            )

        self.n_states = alignment.n_states
        self.n_loci = alignment.n_loci
        self.leaf_to_row = {name: i for i, name in enumerate(alignment.names)}
        self._states = alignment.states

    def compute_branch_matrices(self, model, rate: float = 1.0) -> dict[int, np.ndarray]:
        """
        Transition matrices for every branch, keyed by child node id.

        Parameters
        ----------
        model : SainudiinModel
            Substitution model
        rate : float
            Clock rate applied to all branches

        Returns
        -------
        dict
            Child node id -> P matrix
        """
        branches = self.tree.get_branches()
        with ThreadPoolExecutor(max_workers=self.n_threads) as executor:
            futures = {
                child.id: executor.submit(
                    model.get_transition_probabilities, parent.height, child.height, rate
                )
                for parent, child in branches
            }
            return {node_id: future.result() for node_id, future in futures.items()}

    def _leaf_partials(self, name: str) -> np.ndarray:
        observed = self._states[self.leaf_to_row[name]]
        partials = np.zeros((self.n_loci, self.n_states))
        known = observed != MISSING_STATE
        partials[np.flatnonzero(known), observed[known]] = 1.0
        # Missing data - all states equally likely
        partials[~known, :] = 1.0
        return partials

    def compute_site_log_likelihoods(
        self,
        model,
        rate: float = 1.0,
        root_frequencies: str = "stationary",
    ) -> np.ndarray:
        """
        Compute per-locus log-likelihoods.

        Parameters
        ----------
        model : SainudiinModel
            Substitution model; its state bounds must match the alignment
        rate : float
            Clock rate applied to all branches
        root_frequencies : {'stationary', 'model'}
            Root state prior: the model's stationary distribution or its
            frequency vector

        Returns
        -------
        ndarray, shape (n_loci,)
            Log-likelihood of each locus
        """
        if model.n_states != self.n_states or model.min_repeat != self.alignment.min_repeat:
            raise ValueError(
                f"Model has {model.n_states} states from repeat {model.min_repeat}, "
                f"alignment has {self.n_states} states from repeat "
                f"{self.alignment.min_repeat}"
            )

        if root_frequencies == "stationary":
            pi = model.stationary_distribution
        elif root_frequencies == "model":
            pi = model.frequencies.get_freqs()
        else:
            raise ValueError(f"Unknown root_frequencies: {root_frequencies}")

        P_matrices = self.compute_branch_matrices(model, rate)

        # L[node_id][locus, state] = P(data below node | state at node)
        L = {}
        log_scale = np.zeros(self.n_loci)

        for node in self.tree.postorder():
            if node.is_leaf:
                L[node.id] = self._leaf_partials(node.name if node.name else str(node.id))
                continue

            partials = np.ones((self.n_loci, self.n_states))
            for child in node.children:
                partials *= L[child.id] @ P_matrices[child.id].T

            # Rescale to avoid underflow on deep trees
            scale = partials.max(axis=1)
            scale = np.where(scale > 0, scale, 1.0)
            partials /= scale[:, np.newaxis]
            log_scale += np.log(scale)
            L[node.id] = partials

        site_likelihoods = L[self.tree.root.id] @ pi
        return np.log(site_likelihoods) + log_scale

    def compute_log_likelihood(
        self,
        model,
        rate: float = 1.0,
        root_frequencies: str = "stationary",
    ) -> float:
        """
        Compute the total log-likelihood over loci.

        Returns
        -------
        float
            Log-likelihood value
        """
        return float(np.sum(self.compute_site_log_likelihoods(model, rate, root_frequencies)))
