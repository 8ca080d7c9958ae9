"""Tests for httperform.config -- XDG paths, atomic writes, profiles, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from httperform.config import (
    _atomic_write,
    default_verbosity,
    get_cache_dir,
    get_config_dir,
    get_data_dir,
    get_profiles_dir,
    list_profiles,
    load_global_config,
    load_profile,
    load_project_config,
    resolve_config,
    resolve_credential,
    save_global_config,
    save_profile,
)
from httperform.exceptions import ConfigError, ValidationError
from httperform.models import AuthConfig, CacheConfig, GlobalConfig, Profile, RetryConfig
from httperform.request import request_from_profile


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _make_profile(name: str = "test", base_url: str = "https://api.example.com") -> Profile:
    return Profile(name=name, base_url=base_url)


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_xdg_custom_dirs(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("httperform.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "c"))
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "k"))
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "d"))
        assert get_config_dir() == tmp_path / "c" / "httperform"
        assert get_cache_dir() == tmp_path / "k" / "httperform"
        assert get_data_dir() == tmp_path / "d" / "httperform"
        assert get_data_dir().is_dir()

    def test_xdg_defaults_under_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("httperform.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        assert get_config_dir() == tmp_path / ".config" / "httperform"
        assert get_data_dir() == tmp_path / ".local" / "share" / "httperform"

    def test_fallback_dirs(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("httperform.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        assert get_config_dir() == tmp_path / ".httperform"
        assert get_cache_dir() == tmp_path / ".httperform" / "cache"
        assert get_data_dir() == tmp_path / ".httperform" / "data"

    def test_profiles_dir_is_inside_config_dir(self, isolated_config: Path) -> None:
        assert get_profiles_dir() == get_config_dir() / "profiles"
        assert get_profiles_dir().is_dir()


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_and_parents(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "file.json"
        _atomic_write(target, '{"k": 1}')
        assert target.read_text() == '{"k": 1}'

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "file.txt"
        target.write_text("old")
        _atomic_write(target, "new")
        assert target.read_text() == "new"

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        _atomic_write(tmp_path / "file.txt", "x")
        assert [p.name for p in tmp_path.iterdir()] == ["file.txt"]

    def test_mode_applied(self, tmp_path: Path) -> None:
        target = tmp_path / "secret"
        _atomic_write(target, "x", mode=0o600)
        assert target.stat().st_mode & 0o777 == 0o600


# ---------------------------------------------------------------------------
# Global config and profiles
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_load_returns_defaults_when_missing(self, isolated_config: Path) -> None:
        config = load_global_config()
        assert config == GlobalConfig()
        assert config.cache.enabled is True
        assert config.output.verbosity == 0

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        config = GlobalConfig(default_profile="p", cache=CacheConfig(ttl_seconds=5, use_on_error=True))
        save_global_config(config)
        assert load_global_config() == config

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        (get_config_dir() / "config.json").write_text("{nope")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_load_invalid_schema_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(get_config_dir() / "config.json", {"output": {"verbosity": 9}})
        with pytest.raises(ConfigError):
            load_global_config()


class TestProfiles:
    def test_save_list_load(self, isolated_config: Path) -> None:
        profile = Profile(
            name="api",
            base_url="https://api.example.com",
            auth=AuthConfig(type="bearer", source="env:TOKEN"),
            retry=RetryConfig(max_tries=3, breaker_threshold=2),
        )
        save_profile(profile)
        assert list_profiles() == ["api"]
        assert load_profile("api") == profile

    def test_load_nonexistent_raises_config_error(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_profile("ghost")

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        (get_profiles_dir() / "bad.json").write_text("[")
        with pytest.raises(ConfigError):
            load_profile("bad")


class TestProjectConfig:
    def test_missing(self, isolated_config: Path) -> None:
        assert load_project_config() is None

    def test_valid(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "httperform.json", {"default_profile": "x"})
        assert load_project_config() == {"default_profile": "x"}

    def test_invalid_json(self, isolated_config: Path) -> None:
        (isolated_config / "httperform.json").write_text("{")
        with pytest.raises(ConfigError):
            load_project_config()


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestResolveConfig:
    @pytest.fixture(autouse=True)
    def _profiles(self, isolated_config: Path) -> None:
        save_profile(_make_profile("alpha", "https://alpha.example.com"))
        save_profile(_make_profile("beta", "https://beta.example.com"))

    def test_defaults_no_profile(self) -> None:
        config, profile = resolve_config()
        assert profile is None
        assert config.output.verbosity == 0

    def test_global_default_profile(self) -> None:
        save_global_config(GlobalConfig(default_profile="alpha"))
        assert resolve_config()[1].name == "alpha"

    def test_project_overrides_global(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(default_profile="alpha"))
        _write_json(isolated_config / "httperform.json", {"default_profile": "beta"})
        assert resolve_config()[1].name == "beta"

    def test_env_overrides_project(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(isolated_config / "httperform.json", {"default_profile": "beta"})
        monkeypatch.setenv("HTTPERFORM_PROFILE", "alpha")
        assert resolve_config()[1].name == "alpha"

    def test_cli_overrides_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HTTPERFORM_PROFILE", "alpha")
        assert resolve_config(cli_profile="beta")[1].name == "beta"

    def test_base_url_precedence(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HTTPERFORM_BASE_URL", "https://env.example.com")
        assert resolve_config(cli_profile="alpha")[1].base_url == "https://env.example.com"
        profile = resolve_config(cli_profile="alpha", cli_base_url="https://cli.example.com")[1]
        assert profile.base_url == "https://cli.example.com"

    def test_auto_select_single_profile(self) -> None:
        (get_profiles_dir() / "beta.json").unlink()
        assert resolve_config()[1].name == "alpha"

    def test_auto_select_skipped_when_multiple(self) -> None:
        assert resolve_config()[1] is None

    def test_nonexistent_profile_raises_config_error(self) -> None:
        with pytest.raises(ConfigError):
            resolve_config(cli_profile="gamma")

    def test_verbosity_precedence(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        save_global_config(GlobalConfig.model_validate({"output": {"verbosity": 1}}))
        assert resolve_config()[0].output.verbosity == 1
        _write_json(isolated_config / "httperform.json", {"verbosity": 3})
        assert resolve_config()[0].output.verbosity == 3
        monkeypatch.setenv("HTTPERFORM_VERBOSITY", "2")
        assert resolve_config()[0].output.verbosity == 2
        assert resolve_config(cli_verbosity=0)[0].output.verbosity == 0

    def test_invalid_verbosity_rejected(self) -> None:
        with pytest.raises(ValidationError):
            resolve_config(cli_verbosity=7)


class TestDefaultVerbosity:
    def test_fallback(self) -> None:
        assert default_verbosity(2) == 2

    def test_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HTTPERFORM_VERBOSITY", "3")
        assert default_verbosity(0) == 3

    def test_env_not_integer(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HTTPERFORM_VERBOSITY", "loud")
        with pytest.raises(ValidationError):
            default_verbosity()


# ---------------------------------------------------------------------------
# Profiles to requests
# ---------------------------------------------------------------------------


class TestRequestFromProfile:
    def test_url_joined_and_options_copied(self) -> None:
        profile = Profile.model_validate(
            {
                "name": "p",
                "base_url": "https://api.example.com/v1/",
                "request": {"timeout": 5, "verify_ssl": False, "user_agent": "bot/1"},
                "retry": {"max_tries": 4, "transient_statuses": [502], "breaker_threshold": 2},
            }
        )
        req = request_from_profile(profile, "/users", method="post")
        assert req.url == "https://api.example.com/v1/users"
        assert req.method == "POST"
        assert req.options == {
            "timeout": 5,
            "verify": False,
            "follow_redirects": True,
            "useragent": "bot/1",
        }
        assert req.policies.max_tries == 4
        assert req.policies.transient_statuses == frozenset({502})
        assert req.policies.breaker_threshold == 2
        assert req.policies.auth is None

    def test_absolute_url_ignores_base(self) -> None:
        req = request_from_profile(_make_profile(), "https://other.example.com/x")
        assert req.url == "https://other.example.com/x"

    def test_signer_attached(self) -> None:
        from httperform.auth.manager import create_default_manager

        profile = Profile(
            name="p", base_url="https://x", auth=AuthConfig(type="bearer", source="env:T")
        )
        req = request_from_profile(profile, "/", auth_manager=create_default_manager())
        assert req.policies.auth is not None
        assert req.policies.auth.plugin.auth_type == "bearer"


# ---------------------------------------------------------------------------
# Credential sources
# ---------------------------------------------------------------------------


class TestResolveCredential:
    def test_env_source(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_SECRET", "s3cret")
        assert resolve_credential("env:MY_SECRET") == "s3cret"

    def test_env_source_missing_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NOPE_NOT_SET", raising=False)
        with pytest.raises(ConfigError, match="NOPE_NOT_SET"):
            resolve_credential("env:NOPE_NOT_SET")

    def test_file_source(self, tmp_path: Path) -> None:
        secret = tmp_path / "token"
        secret.write_text("  abc  \n")
        assert resolve_credential(f"file:{secret}") == "abc"

    def test_file_source_missing_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            resolve_credential(f"file:{tmp_path / 'missing'}")

    def test_prompt_source_with_tty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: True)
        monkeypatch.setattr("getpass.getpass", lambda prompt="": "typed")
        assert resolve_credential("prompt") == "typed"

    def test_prompt_source_non_tty_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: False)
        with pytest.raises(ConfigError, match="not a TTY"):
            resolve_credential("prompt")

    def test_unknown_source_raises(self) -> None:
        with pytest.raises(ConfigError, match="Unknown credential source"):
            resolve_credential("vault:x")
