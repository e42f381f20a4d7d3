"""
Component Model — Versions, filters and the entity records.
"""
