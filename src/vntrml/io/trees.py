"""
Phylogenetic tree parsing with node heights.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class TreeNode:
    """
    Phylogenetic tree node.

    Attributes
    ----------
    id : int
        Node identifier
    name : Optional[str]
        Node name (for leaves)
    parent : Optional[TreeNode]
        Parent node
    children : list[TreeNode]
        Child nodes
    branch_length : float
        Branch length to parent
    height : float
        Distance from the youngest tip, filled in by Tree.compute_heights
    """

    id: int
    name: Optional[str] = None
    parent: Optional["TreeNode"] = None
    children: list["TreeNode"] = field(default_factory=list)
    branch_length: float = 0.0
    height: float = 0.0

    @property
    def is_leaf(self) -> bool:
        """Check if node is a leaf."""
        return len(self.children) == 0


@dataclass
class Tree:
    """
    Phylogenetic tree.

    Attributes
    ----------
    root : TreeNode
        Root node of the tree
    n_nodes : int
        Total number of nodes
    n_leaves : int
        Number of leaf nodes
    leaf_names : list[str]
        Names of leaf nodes
    """

    root: TreeNode
    n_nodes: int
    n_leaves: int
    leaf_names: list[str]

    @classmethod
    def from_file(cls, filepath: Path | str) -> "Tree":
        """Read the first Newick tree from a file."""
        return cls.from_newick(Path(filepath).read_text())

    @classmethod
    def from_newick(cls, newick_string: str) -> "Tree":
        """
        Parse Newick format tree string.

        Bracketed comments ([&...]) are ignored. Node heights are computed
        after parsing.

        Parameters
        ----------
        newick_string : str
            Newick format tree

        Returns
        -------
        Tree
            Parsed tree

        Examples
        --------
        >>> tree = Tree.from_newick("((A:0.5,B:0.5):0.25,C:0.75);")
        >>> tree.root.height
        0.75
        """
        newick = re.sub(r"\[[^\]]*\]", "", newick_string).strip()
        if ";" not in newick:
            raise ValueError("Invalid Newick format: missing semicolon")
        newick = newick[: newick.index(";")]
        newick = re.sub(r"\s+", "", newick)
        if not newick:
            raise ValueError("Invalid Newick format: no tree found")

        node_id_counter = [0]

        def parse_node(s: str, start: int, parent: Optional[TreeNode] = None) -> tuple[TreeNode, int]:
            """Parse a node from position start in string s."""
            node = TreeNode(id=node_id_counter[0], parent=parent)
            node_id_counter[0] += 1
            pos = start

            if pos < len(s) and s[pos] == "(":
                pos += 1
                while True:
                    child, pos = parse_node(s, pos, node)
                    node.children.append(child)
                    if pos < len(s) and s[pos] == ",":
                        pos += 1
                    elif pos < len(s) and s[pos] == ")":
                        pos += 1
                        break
                    else:
                        raise ValueError(f"Expected ',' or ')' at position {pos}")

            name_start = pos
            while pos < len(s) and s[pos] not in ",:()":
                pos += 1
            if pos > name_start:
                node.name = s[name_start:pos]

            if pos < len(s) and s[pos] == ":":
                pos += 1
                length_start = pos
                while pos < len(s) and s[pos] not in ",()":
                    pos += 1
                try:
                    node.branch_length = float(s[length_start:pos])
                except ValueError:
                    raise ValueError(f"Invalid branch length: {s[length_start:pos]}")
                if node.branch_length < 0:
                    raise ValueError(f"Negative branch length: {node.branch_length}")

            return node, pos

        root, pos = parse_node(newick, 0, None)
        if pos != len(newick):
            raise ValueError(f"Unexpected character '{newick[pos]}' at position {pos}")

        nodes = []

        def collect(node: TreeNode) -> None:
            for child in node.children:
                collect(child)
            nodes.append(node)

        collect(root)
        leaves = [node for node in nodes if node.is_leaf]
        leaf_names = [node.name if node.name else str(node.id) for node in leaves]
        if len(set(leaf_names)) != len(leaf_names):
            raise ValueError("Duplicate leaf names in tree")

        tree = cls(
            root=root,
            n_nodes=len(nodes),
            n_leaves=len(leaves),
            leaf_names=leaf_names,
        )
        tree.compute_heights()
        return tree

    def compute_heights(self) -> None:
        """
        Set node heights from branch lengths.

        The root sits at the largest root-to-tip distance; the deepest tip
        is at height 0, so height(parent) - height(child) equals the branch
        length for every branch.
        """
        depths = {}

        def assign_depth(node: TreeNode, depth: float) -> None:
            depths[node.id] = depth
            for child in node.children:
                assign_depth(child, depth + child.branch_length)

        assign_depth(self.root, 0.0)
        tree_height = max(depths.values())

        for node in self.postorder():
            node.height = tree_height - depths[node.id]

    def postorder(self) -> list[TreeNode]:
        """
        Return nodes in post-order traversal (leaves to root).

        Returns
        -------
        list[TreeNode]
            Nodes in post-order
        """
        result = []

        def traverse(node: TreeNode) -> None:
            for child in node.children:
                traverse(child)
            result.append(node)

        traverse(self.root)
        return result

    def get_branches(self) -> list[tuple[TreeNode, TreeNode]]:
        """
        Get all branches as (parent, child) pairs, in pre-order.

        Returns
        -------
        list[tuple[TreeNode, TreeNode]]
            List of (parent, child) tuples for each branch
        """
        branches = []

        def traverse(node: TreeNode) -> None:
            for child in node.children:
                branches.append((node, child))
                traverse(child)

        traverse(self.root)
        return branches
