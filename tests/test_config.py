"""
Tests for config.py module - AnnotationSettings.

Tests cover:
- Defaults
- from_cli_args / to_cli_args round trip
- Environment override of the join policy
"""

import pytest
from revmark.config import (
    CLI_ARG_MAP,
    ENV_JOIN_POLICY,
    FIELD_TO_CLI,
    AnnotationSettings,
)
from revmark.flatten import JoinPolicy


class TestAnnotationSettingsDefaults:
    """Test AnnotationSettings defaults."""

    def test_default_construction(self):
        settings = AnnotationSettings()
        assert settings.join_policy is JoinPolicy.ALNUM
        assert settings.require_token_boundary is True
        assert settings.red_variants == ("C00000", "E00000", "FF0000")
        assert settings.exact_color == "FF0000"
        assert settings.added_color == "7B3F00"
        assert settings.underline == "single"

    def test_join_policy_string_is_parsed(self):
        assert AnnotationSettings(join_policy="Never").join_policy is JoinPolicy.NEVER

    def test_invalid_join_policy(self):
        with pytest.raises(ValueError):
            AnnotationSettings(join_policy="sometimes")


class TestAnnotationSettingsCliArgs:
    """Test from_cli_args() and to_cli_args()."""

    def test_empty_args(self):
        assert AnnotationSettings.from_cli_args([]) == AnnotationSettings()

    def test_disable_token_boundary(self):
        settings = AnnotationSettings.from_cli_args(["--no-token-boundary"])
        assert settings.require_token_boundary is False

    def test_join_policy_flag(self):
        settings = AnnotationSettings.from_cli_args(["--join-policy", "always"])
        assert settings.join_policy is JoinPolicy.ALWAYS

    def test_unknown_args_ignored(self):
        settings = AnnotationSettings.from_cli_args(["--frobnicate", "--debug"])
        assert settings == AnnotationSettings()

    def test_base_is_not_mutated(self):
        base = AnnotationSettings(added_color="00AA00")
        settings = AnnotationSettings.from_cli_args(["--no-token-boundary"], base=base)
        assert settings.added_color == "00AA00"
        assert base.require_token_boundary is True

    def test_defaults_produce_no_args(self):
        assert AnnotationSettings().to_cli_args() == []

    def test_round_trip(self):
        original = AnnotationSettings(join_policy="never", require_token_boundary=False)
        args = original.to_cli_args()
        assert args == ["--join-policy", "never", "--no-token-boundary"]
        assert AnnotationSettings.from_cli_args(args) == original

    def test_maps_are_inverse(self):
        for flag, field_name in CLI_ARG_MAP.items():
            assert FIELD_TO_CLI[field_name] == flag


class TestAnnotationSettingsFromEnv:
    """Test from_env()."""

    def test_env_sets_join_policy(self, monkeypatch):
        monkeypatch.setenv(ENV_JOIN_POLICY, "always")
        assert AnnotationSettings.from_env().join_policy is JoinPolicy.ALWAYS

    def test_env_unset(self, monkeypatch):
        monkeypatch.delenv(ENV_JOIN_POLICY, raising=False)
        assert AnnotationSettings.from_env().join_policy is JoinPolicy.ALNUM

    def test_env_invalid(self, monkeypatch):
        monkeypatch.setenv(ENV_JOIN_POLICY, "bogus")
        with pytest.raises(ValueError):
            AnnotationSettings.from_env()
