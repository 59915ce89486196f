"""Credential resolution.

A credential is either a fixed bearer token or a provider callable that
returns a fresh one (sync or async).  Only provider-backed credentials can
be refreshed; the HTTP transport uses that to retry a rejected call once.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import Union

from tabspine.core.errors import SchemaError

TokenProvider = Callable[[], Union[str, Awaitable[str]]]
CredentialSource = Union[str, TokenProvider]


class Credentials:
    """Fixed token or refreshable provider.

    The provider is called lazily on first use and again on ``refresh()``;
    the last token is cached in between.
    """

    def __init__(self, source: CredentialSource) -> None:
        if not source:
            raise SchemaError("Credential source must be a non-empty token or a provider")
        if not isinstance(source, str) and not callable(source):
            raise SchemaError(f"Unsupported credential source: {type(source).__name__}")
        self._source = source
        self._token: str | None = source if isinstance(source, str) else None

    @property
    def refreshable(self) -> bool:
        return not isinstance(self._source, str)

    async def token(self) -> str:
        if self._token is None:
            self._token = await self._call_provider()
        return self._token

    async def refresh(self) -> str:
        """Request a fresh token from the provider.  Fixed tokens are returned as-is."""
        if not self.refreshable:
            return await self.token()
        self._token = await self._call_provider()
        return self._token

    async def _call_provider(self) -> str:
        result = self._source()  # type: ignore[operator]
        if inspect.isawaitable(result):
            result = await result
        return str(result)

    def __repr__(self) -> str:
        kind = "provider" if self.refreshable else "token"
        return f"Credentials({kind})"
