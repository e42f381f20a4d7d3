"""
Repository Loader — Open repositories by location, once per session.

Locations are URIs. Bare paths are turned into absolute ``file:`` URIs,
``http(s):`` locations are fetched with requests. Every location is
opened at most once per loader, so a mirror run keeps one loader and
hands it to each filtering pass.

## Usage

    loader = RepositoryLoader(timeout=30)
    repo = loader.load("https://example.org/releases/2024-06")
    again = loader.load("https://example.org/releases/2024-06/")  # cached
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit
from urllib.request import url2pathname

import requests

from ..validation import ConfigurationError, ReferenceLoadError
from .base import Repository
from .store import REPOSITORY_FILE, load_repository, parse_repository

logger = logging.getLogger(__name__)

REMOTE_SCHEMES = ("http", "https")


def normalize_location(location: str) -> str:
    """
    Canonical form of a repository location.

    Raises ConfigurationError for locations that cannot be parsed or use
    an unsupported scheme.
    """
    raw = (location or "").strip()
    if not raw:
        raise ConfigurationError("Empty repository location")

    try:
        parts = urlsplit(raw)
    except ValueError as e:
        raise ConfigurationError(f"Can't parse referenced URI {raw!r}: {e}")

    scheme = parts.scheme.lower()
    # No scheme, or a Windows drive letter: a filesystem path
    if not scheme or len(scheme) == 1:
        return Path(raw).expanduser().resolve().as_uri()

    if scheme == "file":
        path = url2pathname(parts.path)
        return Path(path).resolve().as_uri()

    if scheme in REMOTE_SCHEMES:
        if not parts.netloc:
            raise ConfigurationError(f"Can't parse referenced URI {raw!r}: missing host")
        path = parts.path.rstrip("/")
        return urlunsplit((scheme, parts.netloc.lower(), path, parts.query, ""))

    raise ConfigurationError(f"Unsupported repository location scheme {scheme!r}: {raw}")


def location_to_path(location: str) -> Path:
    """Filesystem path of a ``file:`` location."""
    parts = urlsplit(normalize_location(location))
    if parts.scheme != "file":
        raise ConfigurationError(f"Not a local repository location: {location}")
    return Path(url2pathname(parts.path))


def is_remote(location: str) -> bool:
    return urlsplit(location).scheme.lower() in REMOTE_SCHEMES


class RepositoryLoader:
    """
    Session-scoped repository cache.

    Failures to open a repository raise ReferenceLoadError; nothing is
    retried.
    """

    def __init__(self, timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()
        self._cache: Dict[str, Repository] = {}

    def __len__(self) -> int:
        return len(self._cache)

    @property
    def loaded_locations(self) -> List[str]:
        return list(self._cache)

    def put(self, repository: Repository) -> None:
        """Seed the cache with an already open repository."""
        self._cache[normalize_location(repository.location)] = repository

    def load(self, location: str) -> Repository:
        normalized = normalize_location(location)
        cached = self._cache.get(normalized)
        if cached is not None:
            return cached

        if is_remote(normalized):
            repository = self._fetch(normalized)
        else:
            repository = self._read(normalized)

        self._cache[normalized] = repository
        logger.info(
            f"Loaded repository {normalized} "
            f"[components={len(repository.query())}, artifacts={len(repository.query_artifact_keys())}]"
        )
        return repository

    def _read(self, location: str) -> Repository:
        path = location_to_path(location)
        try:
            return load_repository(path, location=location)
        except FileNotFoundError:
            raise ReferenceLoadError(location, f"no repository at {path}")
        except (OSError, ValueError) as e:
            raise ReferenceLoadError(location, str(e))

    def _fetch(self, location: str) -> Repository:
        url = location if location.endswith(".json") else f"{location}/{REPOSITORY_FILE}"
        logger.debug(f"Fetching {url}")
        try:
            resp = self.session.get(
                url,
                timeout=self.timeout,
                headers={"Accept": "application/json", "User-Agent": "reposlice/1.0"},
            )
        except requests.RequestException as e:
            raise ReferenceLoadError(location, f"request failed: {e}")

        if resp.status_code != 200:
            raise ReferenceLoadError(location, f"HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            raise ReferenceLoadError(location, f"invalid JSON: {e}")

        try:
            return parse_repository(data, location)
        except ValueError as e:
            raise ReferenceLoadError(location, f"invalid repository document: {e}")
