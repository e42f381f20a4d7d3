"""
reposlice — Slice component repositories and mirror the result.

Computes the closure of components needed from a set of seeds, then
mirrors it into a destination repository while leaving out whatever
referenced repositories already provide.
"""

__version__ = "0.4.0"
