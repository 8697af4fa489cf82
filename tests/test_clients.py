import json
import unittest
from collections.abc import Callable

import httpx

from src.core import clients
from src.core.clients import AuthServiceClient, close_auth_client, get_auth_client
from src.core.errors import AuthenticationError, StoreError


class TestAuthServiceClient(unittest.IsolatedAsyncioTestCase):
    """Test suite for the external authentication service adapter."""

    def _client(self, handler: Callable[[httpx.Request], httpx.Response]) -> AuthServiceClient:
        client = AuthServiceClient(base_url="https://auth.jeuxboard.io", api_key="anon-key")
        client.client = httpx.AsyncClient(
            base_url=client.base_url, headers=client.headers, transport=httpx.MockTransport(handler)
        )
        return client

    async def test_sign_in_with_password(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"access_token": "jwt", "refresh_token": "r", "expires_in": 3600, "user": {"id": "u-1"}}
            )

        client = self._client(handler)
        session = await client.sign_in_with_password("dev@jeuxboard.io", "secret123")
        await client.close()

        self.assertEqual(session.auth_id, "u-1")
        self.assertEqual(session.access_token, "jwt")
        request = seen[0]
        self.assertEqual(request.url.path, "/auth/v1/token")
        self.assertEqual(request.url.params["grant_type"], "password")
        self.assertEqual(request.headers["apikey"], "anon-key")
        self.assertEqual(json.loads(request.content), {"email": "dev@jeuxboard.io", "password": "secret123"})

    async def test_rejected_credentials_raise_authentication_error(self) -> None:
        client = self._client(
            lambda request: httpx.Response(400, json={"error_description": "Invalid login credentials"})
        )

        with self.assertRaises(AuthenticationError) as ctx:
            await client.sign_in_with_password("dev@jeuxboard.io", "wrong")
        await client.close()

        self.assertEqual(ctx.exception.message, "Invalid login credentials")

    async def test_unprocessable_sign_up_raises_authentication_error(self) -> None:
        client = self._client(
            lambda request: httpx.Response(422, json={"msg": "Password should be at least 6 characters"})
        )

        with self.assertRaises(AuthenticationError) as ctx:
            await client.sign_up("new@jeuxboard.io", "123")
        await client.close()

        self.assertEqual(ctx.exception.status_code, 401)

    async def test_server_error_raises_store_error(self) -> None:
        client = self._client(lambda request: httpx.Response(502, text="bad gateway"))

        with self.assertRaises(StoreError):
            await client.sign_up("new@jeuxboard.io", "secret123")
        await client.close()

    async def test_transport_failure_raises_store_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = self._client(handler)
        with self.assertRaises(StoreError):
            await client.get_user("jwt")
        await client.close()

    async def test_sign_up_reads_top_level_identity(self) -> None:
        client = self._client(lambda request: httpx.Response(200, json={"id": "u-2", "email": "new@jeuxboard.io"}))

        self.assertEqual(await client.sign_up("new@jeuxboard.io", "secret123"), "u-2")
        await client.close()

    async def test_missing_identity_is_a_store_error(self) -> None:
        client = self._client(lambda request: httpx.Response(200, json={}))

        with self.assertRaises(StoreError):
            await client.get_user("jwt")
        await client.close()

    async def test_user_token_overrides_api_key_bearer(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        client = self._client(handler)
        await client.sign_out("user-jwt")
        await client.close()

        self.assertEqual(seen[0].headers["Authorization"], "Bearer user-jwt")

    async def test_ping(self) -> None:
        healthy = self._client(lambda request: httpx.Response(200, json={"name": "GoTrue"}))
        failing = self._client(lambda request: httpx.Response(503))

        self.assertEqual(await healthy.ping(), (True, "Connected"))
        self.assertEqual(await failing.ping(), (False, "HTTP Error: 503"))
        await healthy.close()
        await failing.close()


class TestAuthClientSingleton(unittest.IsolatedAsyncioTestCase):
    async def asyncTearDown(self) -> None:
        await close_auth_client()

    async def test_get_auth_client_is_process_wide(self) -> None:
        self.assertIs(get_auth_client(), get_auth_client())

    async def test_close_resets_singleton(self) -> None:
        first = get_auth_client()
        await close_auth_client()

        self.assertIsNone(clients._auth_client)
        self.assertIsNot(get_auth_client(), first)


if __name__ == "__main__":
    unittest.main()
