from __future__ import annotations

from collections.abc import AsyncGenerator, Generator

import httpx
from pydantic import BaseModel, Field


class SupabaseAuth(httpx.Auth, BaseModel):
    """Supabase gateway authentication.

    Every request carries the project key in ``apikey``. ``Authorization`` carries the
    signed-in user's access token when one is known, otherwise the project key itself,
    so row-level security sees the manager's role.

    Args:
        api_key: Supabase project (anon or service) key
        access_token: Optional user session JWT

    Example:
        >>> auth = SupabaseAuth(api_key=anon_key, access_token=session.access_token)
    """

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    api_key: str = Field(repr=False)
    access_token: str | None = Field(default=None, repr=False)

    def _apply(self, request: httpx.Request) -> None:
        request.headers["apikey"] = self.api_key
        request.headers["Authorization"] = f"Bearer {self.access_token or self.api_key}"

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        self._apply(request)
        yield request

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        self._apply(request)
        yield request
