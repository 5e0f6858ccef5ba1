from __future__ import annotations

import hmac
import secrets
from pathlib import Path

from fastapi import Header, Request

from shared.constants import ensure_dirs, sandbox_home

from .runtime import EngineError

TOKEN_HEADER_NAME = "X-Local-Token"
_TOKEN_FILE_NAME = "token.txt"


def token_file_path() -> Path:
    """Return `%LOCALAPPDATA%\\Sandboxd\\config\\token.txt` path."""
    return sandbox_home() / "config" / _TOKEN_FILE_NAME


def read_token(token_path: Path | None = None) -> str:
    """Read the shared token; the client calls this before every request."""
    return (token_path or token_file_path()).read_text(encoding="utf-8").strip()


def get_or_create_token() -> str:
    """Load local token from disk, creating it if missing or empty."""
    ensure_dirs()
    token_path = token_file_path()

    if token_path.exists():
        token = read_token(token_path)
        if token:
            return token

    token = secrets.token_urlsafe(32)
    token_path.write_text(token + "\n", encoding="utf-8")
    return token


class TokenGuard:
    """Holds the daemon's token in memory once startup has persisted it."""

    def __init__(self) -> None:
        self._token: str | None = None

    @property
    def enabled(self) -> bool:
        return self._token is not None

    def load(self) -> str:
        self._token = get_or_create_token()
        return self._token

    def matches(self, provided: str | None) -> bool:
        if not provided:
            return False
        expected = self._token or self.load()
        return hmac.compare_digest(provided, expected)


async def require_token(request: Request, x_local_token: str | None = Header(default=None)) -> str:
    """FastAPI dependency for every route except /health."""
    guard: TokenGuard = request.app.state.token_guard
    if not guard.matches(x_local_token):
        raise EngineError(
            error="invalid_or_missing_token",
            detail=f"send the {TOKEN_HEADER_NAME} header",
            status_code=401,
        )
    return x_local_token or ""
