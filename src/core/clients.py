from dataclasses import dataclass
from typing import Any

import httpx
from fastapi import status
from loguru import logger

from src.config.settings import settings
from src.core.errors import AuthenticationError, StoreError

# Statuses the auth service uses for rejected credentials or tokens
_REJECTED_STATUSES = {
    status.HTTP_400_BAD_REQUEST,
    status.HTTP_401_UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN,
    422,  # Unprocessable Content
}


class BaseClient:
    """Base asynchronous client for external API interactions."""

    def __init__(self, base_url: str, headers: dict[str, str] | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = headers or {}
        self.client = httpx.AsyncClient(base_url=self.base_url, headers=self.headers, timeout=15.0)

    async def close(self) -> None:
        await self.client.aclose()


@dataclass(frozen=True)
class AuthSession:
    """Bearer session issued by the auth service after a successful sign-in."""

    auth_id: str
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None


class AuthServiceClient(BaseClient):
    """Adapter for the external authentication service (GoTrue-compatible REST API)."""

    def __init__(self, base_url: str | None = None, api_key: str | None = None) -> None:
        api_key = api_key or settings.BACKEND_ANON_KEY
        headers = {"apikey": api_key, "Authorization": f"Bearer {api_key}", "Accept": "application/json"}
        super().__init__(base_url or settings.BACKEND_URL, headers=headers)

    async def _send(self, method: str, path: str, action: str, **kwargs: Any) -> httpx.Response:
        """Issues a request and maps failures onto the service error taxonomy.

        Raises:
            AuthenticationError: If the service rejects the credentials or token.
            StoreError: If the service is unreachable or fails unexpectedly.
        """
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Auth service unreachable during {action}: {type(e).__name__}: {e}")
            raise StoreError(f"Authentication service unavailable ({action}).") from e

        if response.status_code in _REJECTED_STATUSES:
            detail = self._error_detail(response)
            logger.warning(f"Auth service rejected {action}: HTTP {response.status_code} {detail}")
            raise AuthenticationError(detail or "Invalid credentials.")

        if response.status_code >= status.HTTP_400_BAD_REQUEST:
            logger.error(f"Auth service failed during {action}: HTTP {response.status_code} {response.text}")
            raise StoreError(f"Authentication service error ({action}).")

        return response

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text
        return payload.get("error_description") or payload.get("msg") or payload.get("message") or ""

    @staticmethod
    def _extract_user_id(payload: dict[str, Any]) -> str:
        user = payload.get("user") or payload
        user_id = user.get("id")
        if not user_id:
            raise StoreError("Authentication service returned no user identity.")
        return str(user_id)

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """Exchanges an email/password pair for a bearer session.

        Args:
            email: Account email.
            password: Account password.

        Returns:
            AuthSession: The external identity and its access token.
        """
        response = await self._send(
            "POST",
            "/auth/v1/token",
            "sign-in",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        payload = response.json()
        return AuthSession(
            auth_id=self._extract_user_id(payload),
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_in=payload.get("expires_in"),
        )

    async def sign_up(self, email: str, password: str) -> str:
        """Registers a new identity and returns its external id."""
        response = await self._send("POST", "/auth/v1/signup", "sign-up", json={"email": email, "password": password})
        return self._extract_user_id(response.json())

    async def get_user(self, access_token: str) -> str:
        """Resolves a bearer token to the external identity it belongs to."""
        response = await self._send(
            "GET", "/auth/v1/user", "token lookup", headers={"Authorization": f"Bearer {access_token}"}
        )
        return self._extract_user_id(response.json())

    async def sign_out(self, access_token: str) -> None:
        """Revokes the bearer session on the auth service."""
        await self._send("POST", "/auth/v1/logout", "sign-out", headers={"Authorization": f"Bearer {access_token}"})

    async def ping(self) -> tuple[bool, str]:
        """Verifies connectivity with the auth service.

        Returns:
            tuple[bool, str]: A boolean indicating success, and a status message.
        """
        try:
            response = await self.client.get("/auth/v1/health")
            response.raise_for_status()
            return True, "Connected"
        except httpx.HTTPStatusError as e:
            return False, f"HTTP Error: {e.response.status_code}"
        except httpx.RequestError as e:
            return False, f"Network Error: {e!s}"


_auth_client: AuthServiceClient | None = None


def get_auth_client() -> AuthServiceClient:
    """Dependency returning the process-wide auth service client."""
    global _auth_client
    if _auth_client is None:
        _auth_client = AuthServiceClient()
    return _auth_client


async def close_auth_client() -> None:
    global _auth_client
    if _auth_client is not None:
        await _auth_client.close()
        _auth_client = None
