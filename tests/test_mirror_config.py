"""
Tests for mirror configuration loading and selection contexts.
"""

import logging

import pytest

from reposlice.mirror.config import (
    DestinationDescriptor,
    EnvironmentConfig,
    MirrorConfigFile,
    apply_env_overrides,
    build_selection_contexts,
    load_mirror_config,
    parse_mirror_config,
    running_environment,
)
from reposlice.models.component import DEFAULT_CONTEXT_PROPERTY
from reposlice.validation import ConfigurationError


def _minimal(**extra):
    data = {"source": ["repos/release"], "destination": {"location": "out/site"}}
    data.update(extra)
    return data


class TestLoadMirrorConfig:
    """Tests for load_mirror_config."""

    def test_minimal(self, write_config, tmp_path):
        config = load_mirror_config(write_config(_minimal()), environ={})
        assert config.source == [str((tmp_path / "repos" / "release").resolve())]
        assert config.destination.location == str((tmp_path / "out" / "site").resolve())
        assert config.options.filter_provided is False
        assert config.slicing.include_optional_dependencies is True
        assert config.http_timeout == 30.0

    def test_single_source_string(self, write_config):
        data = _minimal()
        data["source"] = "repos/release"
        config = load_mirror_config(write_config(data), environ={})
        assert len(config.source) == 1

    def test_remote_locations_untouched(self, write_config):
        data = _minimal(target_platform="https://updates.example.org/platform")
        data["destination"]["repository_references"] = [{"location": "https://updates.example.org/base"}]
        config = load_mirror_config(write_config(data), environ={})
        assert config.target_platform.location == "https://updates.example.org/platform"
        assert config.destination.repository_references[0].location == "https://updates.example.org/base"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_mirror_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("source: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load_mirror_config(path, environ={})

    def test_unknown_key_rejected(self, write_config):
        with pytest.raises(ConfigurationError) as exc_info:
            load_mirror_config(write_config(_minimal(optionz={})), environ={})
        assert "optionz" in str(exc_info.value)

    def test_empty_source_rejected(self):
        with pytest.raises(ConfigurationError):
            parse_mirror_config({"source": [], "destination": {"location": "out"}})

    def test_not_a_mapping(self):
        with pytest.raises(ConfigurationError):
            parse_mirror_config(["source"])


class TestEnvOverrides:
    """Tests for REPOSLICE_* overrides."""

    def test_flags_and_timeout(self):
        config = parse_mirror_config(_minimal())
        updated = apply_env_overrides(
            config,
            {
                "REPOSLICE_FILTER_PROVIDED": "true",
                "REPOSLICE_INCLUDE_ALL_SOURCE": "1",
                "REPOSLICE_HTTP_TIMEOUT": "2.5",
            },
        )
        assert updated.options.filter_provided is True
        assert updated.options.include_all_source is True
        assert updated.http_timeout == 2.5
        assert config.options.filter_provided is False

    def test_no_overrides_returns_same_config(self):
        config = parse_mirror_config(_minimal())
        assert apply_env_overrides(config, {}) is config

    def test_invalid_boolean(self):
        with pytest.raises(ConfigurationError) as exc_info:
            apply_env_overrides(parse_mirror_config(_minimal()), {"REPOSLICE_FILTER_PROVIDED": "maybe"})
        assert exc_info.value.field == "REPOSLICE_FILTER_PROVIDED"

    def test_invalid_timeout(self):
        with pytest.raises(ConfigurationError):
            apply_env_overrides(parse_mirror_config(_minimal()), {"REPOSLICE_HTTP_TIMEOUT": "soon"})


class TestDestinationDescriptor:
    """Tests for DestinationDescriptor."""

    def test_all_references_deduplicated(self):
        descriptor = DestinationDescriptor(
            location="out",
            repository_references=[{"location": "https://a.example.org/r"}],
            filterable_repository_references=[
                {"location": "https://a.example.org/r/"},
                {"location": "https://b.example.org/r"},
            ],
        )
        assert [r.location for r in descriptor.all_references()] == [
            "https://a.example.org/r",
            "https://b.example.org/r",
        ]


class TestSelectionContexts:
    """Tests for build_selection_contexts."""

    def test_one_context_per_environment(self):
        config = parse_mirror_config(_minimal(environments=[
            {"os": "linux", "ws": "gtk", "arch": "x86_64"},
            {"os": "win32", "ws": "win32", "arch": "x86_64"},
        ]))
        contexts = build_selection_contexts(config)
        assert [c.properties["os"] for c in contexts] == ["linux", "win32"]
        assert all(c.properties[DEFAULT_CONTEXT_PROPERTY] == "true" for c in contexts)

    def test_context_properties_merged(self):
        config = parse_mirror_config(_minimal(environments=[{"os": "linux"}], context={"edition": "pro"}))
        [ctx] = build_selection_contexts(config)
        assert ctx.properties["edition"] == "pro"
        assert ctx.properties["os"] == "linux"

    def test_explicit_empty_environments_disable_filtering(self):
        config = parse_mirror_config(_minimal(environments=[]))
        [ctx] = build_selection_contexts(config)
        assert not ctx.is_discriminating

    def test_deprecated_environment_warns(self, caplog):
        config = parse_mirror_config(_minimal(environment={"os": "linux"}))
        with caplog.at_level(logging.WARNING):
            [ctx] = build_selection_contexts(config)
        assert ctx.properties["os"] == "linux"
        assert "deprecated" in caplog.text

    def test_environment_and_environments_conflict(self):
        config = parse_mirror_config(_minimal(environment={"os": "linux"}, environments=[{"os": "win32"}]))
        with pytest.raises(ConfigurationError):
            build_selection_contexts(config)

    def test_implicit_platform_environment(self, caplog):
        config = parse_mirror_config(_minimal())
        with caplog.at_level(logging.WARNING):
            [ctx] = build_selection_contexts(config)
        assert "Build is platform dependent" in caplog.text
        assert ctx.properties["os"] == running_environment().os


class TestMirrorConfigFile:
    """Tests for derived settings."""

    def test_effective_slicing_folds_extension_flags(self):
        config = MirrorConfigFile(
            source=["a"],
            destination={"location": "out"},
            options={"include_required_bundles": True},
        )
        slicing = config.effective_slicing()
        assert slicing.include_required_bundles is True
        assert slicing.include_required_features is False
        assert config.slicing.include_required_bundles is False

    def test_environment_str(self):
        assert str(EnvironmentConfig(os="linux", arch="x86_64")) == "linux/x86_64"
        assert str(EnvironmentConfig()) == "(any)"
