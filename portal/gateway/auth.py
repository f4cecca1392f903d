from __future__ import annotations

from portal.auth.sessions import LoginResult
from portal.schemas import LoginRequest, LoginResponse

from .http import PortalHTTPClient


class AuthGateway(PortalHTTPClient):
    """Credential login against the portal's own backend (custom session)."""

    async def login(self, username: str, password: str) -> LoginResult:
        payload = self._payload(LoginRequest, username=username, password=password)
        response = await self._request_model("POST", "/auth/login", LoginResponse, json=payload)
        return LoginResult(
            user_id=response.user.id,
            username=response.user.username,
            roles=tuple(response.user.roles),
            access_token=response.token.access_token,
            token_type=response.token.token_type,
            expires_in=response.token.expires_in,
            display_name=response.user.display_name,
        )
