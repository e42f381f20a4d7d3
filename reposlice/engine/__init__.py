"""
Engine — Closure computation, source augmentation and provided-content filtering.
"""
