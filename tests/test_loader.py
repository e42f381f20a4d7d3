"""
Tests for location normalisation and the session-scoped repository loader.
"""

from unittest import mock

import pytest
import requests

from reposlice.repository.loader import (
    RepositoryLoader,
    is_remote,
    location_to_path,
    normalize_location,
)
from reposlice.validation import ConfigurationError, ReferenceLoadError

DOCUMENT = {
    "name": "Remote",
    "components": [{"id": "org.example.a", "version": "1.0.0"}],
    "artifacts": [{"id": "org.example.a", "version": "1.0.0"}],
}


def _response(status=200, payload=None, json_error=False):
    resp = mock.Mock()
    resp.status_code = status
    if json_error:
        resp.json.side_effect = ValueError("not json")
    else:
        resp.json.return_value = payload
    return resp


class TestNormalizeLocation:
    """Tests for normalize_location."""

    def test_bare_path_becomes_file_uri(self, tmp_path):
        assert normalize_location(str(tmp_path)) == tmp_path.resolve().as_uri()

    def test_file_uri_resolved(self, tmp_path):
        assert normalize_location(tmp_path.as_uri() + "/") == tmp_path.resolve().as_uri()

    def test_http_trailing_slash_and_host_case(self):
        assert normalize_location("https://Updates.Example.org/r1/") == "https://updates.example.org/r1"

    def test_unsupported_scheme(self):
        with pytest.raises(ConfigurationError) as exc_info:
            normalize_location("ftp://example.org/repo")
        assert "Unsupported" in str(exc_info.value)

    def test_missing_host(self):
        with pytest.raises(ConfigurationError):
            normalize_location("https:///repo")

    def test_unparsable(self):
        with pytest.raises(ConfigurationError) as exc_info:
            normalize_location("http://[::1")
        assert "Can't parse referenced URI" in str(exc_info.value)

    def test_empty(self):
        with pytest.raises(ConfigurationError):
            normalize_location("  ")

    def test_helpers(self, tmp_path):
        assert is_remote("https://example.org/r")
        assert not is_remote(tmp_path.as_uri())
        assert location_to_path(tmp_path.as_uri()) == tmp_path.resolve()
        with pytest.raises(ConfigurationError):
            location_to_path("https://example.org/r")


class TestLocalLoading:
    """Tests for loading file: locations."""

    def test_loads_from_disk(self, write_repo, comp):
        path = write_repo("release", [comp("a"), comp("b")])
        repo = RepositoryLoader().load(str(path))
        assert {c.id for c in repo.query()} == {"a", "b"}
        assert repo.location == path.resolve().as_uri()

    def test_cached_per_location(self, write_repo, comp):
        path = write_repo("release", [comp("a")])
        loader = RepositoryLoader()
        first = loader.load(str(path))
        second = loader.load(path.resolve().as_uri() + "/")
        assert first is second
        assert len(loader) == 1
        assert loader.loaded_locations == [path.resolve().as_uri()]

    def test_missing_repository(self, tmp_path):
        with pytest.raises(ReferenceLoadError) as exc_info:
            RepositoryLoader().load(str(tmp_path / "absent"))
        assert exc_info.value.location == (tmp_path / "absent").resolve().as_uri()

    def test_invalid_json(self, tmp_path):
        (tmp_path / "repository.json").write_text("{not json")
        with pytest.raises(ReferenceLoadError):
            RepositoryLoader().load(str(tmp_path))


class TestRemoteLoading:
    """Tests for loading http(s): locations with requests."""

    def test_fetches_repository_json(self):
        session = mock.Mock()
        session.get.return_value = _response(payload=DOCUMENT)
        loader = RepositoryLoader(timeout=5, session=session)

        repo = loader.load("https://updates.example.org/r1/")

        session.get.assert_called_once()
        args, kwargs = session.get.call_args
        assert args[0] == "https://updates.example.org/r1/repository.json"
        assert kwargs["timeout"] == 5
        assert repo.name == "Remote"
        assert repo.location == "https://updates.example.org/r1"

    def test_fetched_once(self):
        session = mock.Mock()
        session.get.return_value = _response(payload=DOCUMENT)
        loader = RepositoryLoader(session=session)
        loader.load("https://updates.example.org/r1")
        loader.load("https://updates.example.org/r1/")
        assert session.get.call_count == 1

    def test_http_error(self):
        session = mock.Mock()
        session.get.return_value = _response(status=404)
        with pytest.raises(ReferenceLoadError) as exc_info:
            RepositoryLoader(session=session).load("https://updates.example.org/r1")
        assert "HTTP 404" in str(exc_info.value)

    def test_connection_error(self):
        session = mock.Mock()
        session.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(ReferenceLoadError):
            RepositoryLoader(session=session).load("https://updates.example.org/r1")

    def test_invalid_payload(self):
        session = mock.Mock()
        session.get.return_value = _response(json_error=True)
        with pytest.raises(ReferenceLoadError):
            RepositoryLoader(session=session).load("https://updates.example.org/r1")

    def test_schema_violation(self):
        session = mock.Mock()
        session.get.return_value = _response(payload={"components": [{"id": "a"}]})
        with pytest.raises(ReferenceLoadError):
            RepositoryLoader(session=session).load("https://updates.example.org/r1")
