"""
Repository Module — Repository abstraction, snapshots, file store and loader.
"""

from .base import Repository
from .loader import RepositoryLoader, normalize_location
from .memory import CompositeRepository, InMemoryRepository
from .snapshot import GraphSnapshot
from .store import load_repository, save_repository

__all__ = [
    "Repository",
    "InMemoryRepository",
    "CompositeRepository",
    "GraphSnapshot",
    "RepositoryLoader",
    "normalize_location",
    "load_repository",
    "save_repository",
]
