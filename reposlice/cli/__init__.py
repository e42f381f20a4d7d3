"""
CLI commands — registered on the group in reposlice.main.
"""
