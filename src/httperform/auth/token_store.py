"""Token caches for OAuth plugins.

:class:`TokenCache` is an in-memory, process-wide cache keyed by credential
identity (token URL, client id, scopes). It is what lets a re-signed request
in one perform call reuse the token fetched by another.

:class:`DiskTokenCache` persists tokens under
``~/.local/share/httperform/tokens/<name>.json`` (XDG) so that they survive
between CLI invocations. Files are written atomically with ``0o600``
permissions so that secrets are never world-readable, even momentarily.
"""

from __future__ import annotations

import hashlib
import json
import re
import threading
from pathlib import Path
from typing import Iterable, Optional

from httperform.auth.token import OAuthToken
from httperform.config import _atomic_write, get_data_dir

_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]")


def token_key(*parts: Optional[str], scopes: Iterable[str] = ()) -> str:
    """Derive a stable cache key from the pieces that identify a credential.

    The key is a digest so that client ids never appear in file names.
    """
    material = "\x1f".join(p or "" for p in parts) + "\x1e" + " ".join(sorted(scopes))
    return hashlib.sha256(material.encode("utf-8")).hexdigest()[:32]


class TokenCache:
    """Thread-safe in-memory token cache."""

    def __init__(self) -> None:
        self._tokens: dict[str, OAuthToken] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[OAuthToken]:
        with self._lock:
            return self._tokens.get(key)

    def set(self, key: str, token: OAuthToken) -> None:
        with self._lock:
            self._tokens[key] = token

    def delete(self, key: str) -> None:
        with self._lock:
            self._tokens.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._tokens.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)


_default_cache = TokenCache()


def default_token_cache() -> TokenCache:
    """Return the process-wide :class:`TokenCache`."""
    return _default_cache


class DiskTokenCache:
    """Read/write OAuth tokens stored on disk, one JSON file per name.

    Args:
        directory: Where token files live. Defaults to ``<data_dir>/tokens``.

    Example::

        store = DiskTokenCache()
        store.set("my-api", OAuthToken.create("tok123", expires_in=3600))
        assert store.get("my-api").access_token == "tok123"
    """

    def __init__(self, directory: Optional[Path] = None) -> None:
        self._dir = directory if directory is not None else get_data_dir() / "tokens"

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, name: str) -> Path:
        return self._dir / f"{_SAFE_NAME.sub('_', name)}.json"

    def set(self, name: str, token: OAuthToken) -> None:
        """Persist *token* atomically with ``0o600`` permissions."""
        text = json.dumps(token.model_dump(mode="json"), indent=2) + "\n"
        _atomic_write(self.path_for(name), text, mode=0o600)

    def get(self, name: str) -> Optional[OAuthToken]:
        """Load a stored token, or ``None`` if missing or unreadable."""
        path = self.path_for(name)
        if not path.is_file():
            return None
        try:
            return OAuthToken.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValueError, OSError):
            return None

    def delete(self, name: str) -> None:
        path = self.path_for(name)
        if path.is_file():
            path.unlink()

    def names(self) -> list[str]:
        if not self._dir.is_dir():
            return []
        return sorted(p.stem for p in self._dir.glob("*.json"))
