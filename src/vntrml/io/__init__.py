"""
Input/Output modules for repeat-length data and phylogenetic trees.

This module provides classes for reading and working with:

- **Repeat-length tables**: VNTR / microsatellite repeat counts per taxon
- **Phylogenetic trees**: Newick format, with node heights

The main classes handle file parsing and data validation.
"""

from vntrml.io.repeats import RepeatAlignment
from vntrml.io.trees import Tree, TreeNode

__all__ = ["RepeatAlignment", "Tree", "TreeNode"]
