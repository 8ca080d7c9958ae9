"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for httperform:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.httperform/`` on macOS and Windows. The cache directory holds the
  response cache, the data directory holds stored OAuth tokens and crash
  logs.
* **Global config** -- a single :class:`~httperform.models.GlobalConfig`
  JSON file storing output and cache defaults.
* **Profiles** -- one JSON file per API, each deserialised into a
  :class:`~httperform.models.Profile`.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and global config.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars, files, interactive prompts, or the token store.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional

from httperform.exceptions import ConfigError, ValidationError
from httperform.models import GlobalConfig, Profile

_APP_NAME = "httperform"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "httperform.json"

ENV_PROFILE = "HTTPERFORM_PROFILE"
ENV_BASE_URL = "HTTPERFORM_BASE_URL"
ENV_VERBOSITY = "HTTPERFORM_VERBOSITY"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    return Path.home().joinpath(*default_segments)


def _ensure(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/httperform/`` (default ``~/.config/httperform/``).
    On macOS/Windows: ``~/.httperform/``.
    """
    if _is_xdg_platform():
        return _ensure(_xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME)
    return _ensure(_fallback_base_dir())


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Holds the disk response cache. Its contents can be deleted at any time.

    On Linux/BSD: ``$XDG_CACHE_HOME/httperform/`` (default ``~/.cache/httperform/``).
    On macOS/Windows: ``~/.httperform/cache/``.
    """
    if _is_xdg_platform():
        return _ensure(_xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME)
    return _ensure(_fallback_base_dir() / "cache")


def get_data_dir() -> Path:
    """Return the data directory (stored tokens, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/httperform/`` (default ``~/.local/share/httperform/``).
    On macOS/Windows: ``~/.httperform/data/``.
    """
    if _is_xdg_platform():
        return _ensure(_xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME)
    return _ensure(_fallback_base_dir() / "data")


def get_profiles_dir() -> Path:
    """Return the profiles directory (``<config_dir>/profiles/``), creating it if necessary."""
    return _ensure(get_config_dir() / "profiles")


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file lives in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX. When *mode* is given the
    permissions are applied before any content is written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration, or defaults when no file exists.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    data = _read_json(path, "global config")
    try:
        return GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Profiles ---


def _profile_path(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    """Return all profile names found in the profiles directory, sorted alphabetically."""
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def load_profile(name: str) -> Profile:
    """Load and validate a profile from disk.

    Raises:
        ConfigError: If the profile file does not exist, contains invalid
            JSON, or fails Pydantic validation.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    data = _read_json(path, f"profile '{name}'")
    try:
        return Profile.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid profile '{name}' at {path}: {exc}") from exc


def save_profile(profile: Profile) -> None:
    """Persist a profile atomically to the profiles directory."""
    data = profile.model_dump(mode="json")
    _atomic_write(_profile_path(profile.name), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./httperform.json``.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    return _read_json(path, "project config")


# --- Precedence resolution ---


def resolve_config(
    cli_profile: Optional[str] = None,
    cli_base_url: Optional[str] = None,
    cli_verbosity: Optional[int] = None,
) -> tuple[GlobalConfig, Optional[Profile]]:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_profile``, ``cli_base_url``, ``cli_verbosity``)
        2. Environment variables (``HTTPERFORM_PROFILE``,
           ``HTTPERFORM_BASE_URL``, ``HTTPERFORM_VERBOSITY``)
        3. Project config (``./httperform.json``)
        4. User config (``~/.config/httperform/config.json``)
        5. Defaults

    Returns:
        A tuple of ``(global_config, active_profile_or_None)``.

    Raises:
        ValidationError: If the resolved verbosity is not 0, 1, 2, or 3.
    """
    global_cfg = load_global_config()

    project = load_project_config() or {}
    resolved_profile_name: Optional[str] = global_cfg.default_profile
    if project.get("default_profile") is not None:
        resolved_profile_name = project["default_profile"]
    env_profile = os.environ.get(ENV_PROFILE)
    if env_profile:
        resolved_profile_name = env_profile
    if cli_profile is not None:
        resolved_profile_name = cli_profile

    if resolved_profile_name is None and global_cfg.auto_select_single_profile:
        profiles = list_profiles()
        if len(profiles) == 1:
            resolved_profile_name = profiles[0]

    profile: Optional[Profile] = None
    if resolved_profile_name is not None:
        profile = load_profile(resolved_profile_name)

    if profile is not None:
        env_base_url = os.environ.get(ENV_BASE_URL)
        if cli_base_url is not None:
            profile.base_url = cli_base_url
        elif env_base_url:
            profile.base_url = env_base_url

    if cli_verbosity is not None:
        verbosity: Any = cli_verbosity
    else:
        verbosity = default_verbosity(project.get("verbosity", global_cfg.output.verbosity))
    from httperform.verbosity import check_verbosity

    global_cfg.output.verbosity = check_verbosity(verbosity)

    return global_cfg, profile


def default_verbosity(fallback: int = 0) -> int:
    """Return the verbosity from ``HTTPERFORM_VERBOSITY``, else *fallback*.

    Raises:
        ValidationError: If the environment variable is not an integer.
    """
    raw = os.environ.get(ENV_VERBOSITY)
    if raw is None or raw == "":
        return fallback
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError(
            f"{ENV_VERBOSITY} must be 0, 1, 2, or 3 (got {raw!r})"
        ) from exc


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts user interactively (requires a TTY)
        - ``"store:NAME"`` -- reads the access token stored under ``NAME``

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Enter credential: ")

    if source.startswith("store:"):
        name = source[6:]
        from httperform.auth.token_store import DiskTokenCache

        token = DiskTokenCache().get(name)
        if token is None or token.has_expired():
            raise ConfigError(
                f"No valid token in store under '{name}' (source: {source})"
            )
        return token.access_token

    raise ConfigError(f"Unknown credential source format: {source}")
