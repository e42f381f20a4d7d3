"""
Mirror — Configuration and orchestration of mirror runs.

A mirror run slices the source repositories from a set of seeds and
writes the result, with its repository references, to a destination.
"""
