"""OAuth access tokens.

An :class:`OAuthToken` is what an OAuth token endpoint returns, plus the
absolute time it expires. Times are POSIX timestamps (seconds) so that the
expiry check is a pure comparison and easy to drive from tests.
"""

from __future__ import annotations

import time
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from httperform.exceptions import AuthError

_REDACTED = "<REDACTED>"
_KNOWN_FIELDS = {"access_token", "token_type", "refresh_token", "id_token", "expires_in"}


class OAuthToken(BaseModel):
    """An OAuth 2.0 access token.

    Attributes:
        access_token: The bearer credential.
        token_type: Usually ``"bearer"``.
        refresh_token: Long-lived token used to obtain new access tokens.
        id_token: OpenID Connect identity token, if issued.
        issued_at: When the token was obtained.
        expires_at: ``issued_at + expires_in``, or ``None`` for a token with
            no declared lifetime.
        extras: Any other fields from the token response.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    issued_at: float = Field(default_factory=time.time)
    expires_at: Optional[float] = None
    extras: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def create(
        cls,
        access_token: str,
        token_type: str = "bearer",
        expires_in: Optional[float] = None,
        refresh_token: Optional[str] = None,
        id_token: Optional[str] = None,
        now: Optional[float] = None,
        **extras: Any,
    ) -> OAuthToken:
        """Create a token, turning a relative ``expires_in`` into ``expires_at``."""
        issued_at = time.time() if now is None else now
        expires_at = None if expires_in is None else issued_at + float(expires_in)
        return cls(
            access_token=access_token,
            token_type=token_type or "bearer",
            refresh_token=refresh_token,
            id_token=id_token,
            issued_at=issued_at,
            expires_at=expires_at,
            extras=extras,
        )

    @classmethod
    def from_response(
        cls, data: Mapping[str, Any], now: Optional[float] = None
    ) -> OAuthToken:
        """Build a token from a parsed token-endpoint response.

        Raises:
            AuthError: If ``access_token`` is missing or ``expires_in`` is
                not a number.
        """
        if "access_token" not in data:
            raise AuthError("Token response missing 'access_token' field")
        expires_in = data.get("expires_in")
        if expires_in is not None:
            try:
                expires_in = float(expires_in)
            except (TypeError, ValueError) as exc:
                raise AuthError(
                    f"Token response has non-numeric 'expires_in': {expires_in!r}"
                ) from exc
        extras = {k: v for k, v in data.items() if k not in _KNOWN_FIELDS}
        return cls.create(
            access_token=data["access_token"],
            token_type=data.get("token_type") or "bearer",
            expires_in=expires_in,
            refresh_token=data.get("refresh_token"),
            id_token=data.get("id_token"),
            now=now,
            **extras,
        )

    def has_expired(self, now: Optional[float] = None) -> bool:
        """Return True once *now* reaches ``expires_at``. Tokens without a lifetime never expire."""
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return current >= self.expires_at

    def authorization_header(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def with_refresh_token(self, refresh_token: Optional[str]) -> OAuthToken:
        """Return a copy carrying *refresh_token* when this one has none.

        Refresh responses may omit the refresh token, in which case the
        previous one stays valid.
        """
        if self.refresh_token or not refresh_token:
            return self
        return self.model_copy(update={"refresh_token": refresh_token})

    def __repr_args__(self):
        for name, value in super().__repr_args__():
            if name in ("access_token", "refresh_token", "id_token") and value is not None:
                value = _REDACTED
            yield name, value

    def __str__(self) -> str:
        return self.__repr__()
