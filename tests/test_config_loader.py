"""Tests for wiki_sync.config_loader -- discovery, interpolation, merge."""

import textwrap

import pytest
import yaml

from wiki_sync.config_loader import (
    discover_config_files,
    interpolate_env_vars,
    load_hierarchical_config,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """CWD and HOME inside tmp_path, no WIKI_SYNC_CONFIG."""
    monkeypatch.delenv("WIKI_SYNC_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return tmp_path


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


def _resolved(paths):
    return [p.resolve() for p in paths]


# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("WIKI_HOST", "wiki.example.com")
        assert interpolate_env_vars("https://${WIKI_HOST}") == (
            "https://wiki.example.com"
        )

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        monkeypatch.delenv("NOPE_NOT_SET", raising=False)
        assert interpolate_env_vars("a${NOPE_NOT_SET}b") == "ab"

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("NOPE_NOT_SET", raising=False)
        assert (
            interpolate_env_vars("${NOPE_NOT_SET:-http://localhost:3000}")
            == "http://localhost:3000"
        )

    def test_default_ignored_when_set(self, monkeypatch):
        monkeypatch.setenv("WIKI_PORT", "8080")
        assert interpolate_env_vars("${WIKI_PORT:-3000}") == "8080"

    def test_empty_env_var_uses_default(self, monkeypatch):
        monkeypatch.setenv("WIKI_PORT", "")
        assert interpolate_env_vars("${WIKI_PORT:-3000}") == "3000"

    def test_literal_dollar_brace_no_closing(self):
        assert interpolate_env_vars("cost ${oops") == "cost ${oops"


# -------------------------------------------------------------------------
# Convention-based file discovery
# -------------------------------------------------------------------------


class TestDiscoverConfigFiles:
    def test_env_var_takes_highest_precedence(self, isolated, monkeypatch):
        custom = _write(isolated / "custom.yml", "api: {}\n")
        _write(isolated / ".wiki_sync" / "config.yml", "api: {}\n")
        monkeypatch.setenv("WIKI_SYNC_CONFIG", str(custom))

        result = discover_config_files()
        assert result[0] == custom.resolve()
        assert len(result) == 2

    def test_project_before_global(self, isolated):
        proj = _write(isolated / ".wiki_sync" / "config.yml", "a: 1\n")
        glob = _write(
            isolated / "home" / ".config" / "wiki_sync" / "config.yml",
            "a: 2\n",
        )

        assert _resolved(discover_config_files()) == [
            proj.resolve(),
            glob.resolve(),
        ]

    def test_yaml_extension_accepted(self, isolated):
        proj = _write(isolated / ".wiki_sync" / "config.yaml", "a: 1\n")
        assert _resolved(discover_config_files()) == [proj.resolve()]

    def test_missing_files_excluded(self, isolated):
        assert discover_config_files() == []


# -------------------------------------------------------------------------
# Hierarchical merge
# -------------------------------------------------------------------------


class TestLoadHierarchicalConfig:
    def test_zero_config(self, isolated):
        assert load_hierarchical_config() == {}

    def test_global_only_loaded(self, isolated):
        _write(
            isolated / "home" / ".config" / "wiki_sync" / "config.yml",
            """\
            api:
              base_url: https://global.example.com
            """,
        )
        result = load_hierarchical_config()
        assert result["api"]["base_url"] == "https://global.example.com"

    def test_project_overrides_global_at_section_level(self, isolated):
        _write(
            isolated / "home" / ".config" / "wiki_sync" / "config.yml",
            """\
            api:
              base_url: https://global.example.com
              api_key: global-key
            logging:
              level: DEBUG
            """,
        )
        _write(
            isolated / ".wiki_sync" / "config.yml",
            """\
            api:
              base_url: https://project.example.com
            """,
        )

        result = load_hierarchical_config()

        # Whole section replaced, not deep-merged
        assert result["api"] == {"base_url": "https://project.example.com"}
        assert result["logging"] == {"level": "DEBUG"}

    def test_env_var_interpolation_after_merge(self, isolated, monkeypatch):
        monkeypatch.setenv("WIKI_TOKEN", "s3cret")
        _write(
            isolated / ".wiki_sync" / "config.yml",
            """\
            api:
              api_key: ${WIKI_TOKEN}
            export:
              exclude:
                - ${EXCLUDED_ROOT:-/drafts}/*
            """,
        )

        result = load_hierarchical_config()

        assert result["api"]["api_key"] == "s3cret"
        assert result["export"]["exclude"] == ["/drafts/*"]

    def test_non_dict_root_skipped(self, isolated, caplog):
        _write(isolated / ".wiki_sync" / "config.yml", "- just\n- a list\n")
        assert load_hierarchical_config() == {}
        assert "non-dict root" in caplog.text

    def test_invalid_yaml_raises(self, isolated):
        _write(isolated / ".wiki_sync" / "config.yml", "api: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_hierarchical_config()
