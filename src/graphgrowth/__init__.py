"""
Pangenome Graph Coverage and Growth Analysis

Counts how many samples cover each node, edge or basepair of a pangenome
graph and derives growth curves from those coverage counts.
"""

__version__ = "1.0.0"
