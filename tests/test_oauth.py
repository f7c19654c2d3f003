"""Unit tests for GoogleIdentityProvider with a mocked HTTP transport."""

import json
import unittest
from urllib.parse import parse_qs, urlparse

import httpx

from tessera.services.errors import IdentityProviderError
from tessera.services.oauth import (
    GOOGLE_TOKEN_URL,
    GOOGLE_USERINFO_URL,
    GoogleIdentityProvider,
)
from tests.helpers import make_settings


def _provider(handler, **overrides: object) -> GoogleIdentityProvider:
    values = {"GOOGLE_CLIENT_ID": "client-id", "GOOGLE_CLIENT_SECRET": "client-secret"}
    values.update(overrides)
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return GoogleIdentityProvider(make_settings(**values), client=client)


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


class TestAuthorizationUrl(unittest.TestCase):
    def test_url_carries_client_and_state(self) -> None:
        url, state = _provider(_unreachable).get_authorization_url()
        query = parse_qs(urlparse(url).query)
        self.assertEqual(query["client_id"], ["client-id"])
        self.assertEqual(query["state"], [state])
        self.assertEqual(query["response_type"], ["code"])
        self.assertEqual(
            query["redirect_uri"], ["http://localhost:3000/auth/oauth/google/callback"]
        )
        self.assertIn("email", query["scope"][0])

    def test_state_is_random(self) -> None:
        provider = _provider(_unreachable)
        self.assertNotEqual(provider.get_authorization_url()[1], provider.get_authorization_url()[1])

    def test_not_configured(self) -> None:
        provider = _provider(_unreachable, GOOGLE_CLIENT_ID=None, GOOGLE_CLIENT_SECRET=None)
        with self.assertRaises(IdentityProviderError) as ctx:
            provider.get_authorization_url()
        self.assertEqual(ctx.exception.status_code, 503)


class TestExchangeCode(unittest.TestCase):
    def test_success(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "google-token"})

        self.assertEqual(_provider(handler).exchange_code("the-code"), "google-token")
        self.assertEqual(str(seen[0].url), GOOGLE_TOKEN_URL)
        form = parse_qs(seen[0].content.decode())
        self.assertEqual(form["code"], ["the-code"])
        self.assertEqual(form["grant_type"], ["authorization_code"])

    def test_rejected_code_is_400(self) -> None:
        provider = _provider(lambda r: httpx.Response(400, json={"error": "invalid_grant"}))
        with self.assertRaises(IdentityProviderError) as ctx:
            provider.exchange_code("bad")
        self.assertEqual(ctx.exception.status_code, 400)

    def test_upstream_error_is_502(self) -> None:
        provider = _provider(lambda r: httpx.Response(500, text="oops"))
        with self.assertRaises(IdentityProviderError) as ctx:
            provider.exchange_code("code")
        self.assertEqual(ctx.exception.status_code, 502)

    def test_missing_access_token_is_502(self) -> None:
        provider = _provider(lambda r: httpx.Response(200, json={"token_type": "Bearer"}))
        with self.assertRaises(IdentityProviderError) as ctx:
            provider.exchange_code("code")
        self.assertEqual(ctx.exception.status_code, 502)

    def test_malformed_json_is_502(self) -> None:
        provider = _provider(lambda r: httpx.Response(200, text="<html>"))
        with self.assertRaises(IdentityProviderError) as ctx:
            provider.exchange_code("code")
        self.assertEqual(ctx.exception.status_code, 502)

    def test_timeout_is_503(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with self.assertRaises(IdentityProviderError) as ctx:
            _provider(handler).exchange_code("code")
        self.assertEqual(ctx.exception.status_code, 503)


class TestGetProfile(unittest.TestCase):
    def test_success(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(str(request.url), GOOGLE_USERINFO_URL)
            self.assertEqual(request.headers["Authorization"], "Bearer google-token")
            body = {
                "email": "grace@example.com",
                "given_name": "Grace",
                "family_name": "Hopper",
                "picture": "https://img.example.com/g.png",
            }
            return httpx.Response(200, content=json.dumps(body))

        profile = _provider(handler).get_profile("google-token")
        self.assertEqual(profile.email, "grace@example.com")
        self.assertEqual(profile.given_name, "Grace")
        self.assertEqual(profile.family_name, "Hopper")
        self.assertEqual(profile.picture_url, "https://img.example.com/g.png")

    def test_missing_email(self) -> None:
        provider = _provider(lambda r: httpx.Response(200, json={"given_name": "Grace"}))
        with self.assertRaises(IdentityProviderError):
            provider.get_profile("google-token")


if __name__ == "__main__":
    unittest.main()
