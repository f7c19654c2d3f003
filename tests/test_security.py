"""Unit tests for tessera.core.security: bcrypt hashing and JWT access tokens."""

import unittest
import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import bcrypt
import jwt

from tessera.core.security import PasswordHasher, TokenSigner, generate_opaque_token
from tests.helpers import TEST_JWT_SECRET, make_settings


class TestPasswordHasher(unittest.TestCase):
    def setUp(self) -> None:
        self.hasher = PasswordHasher(rounds=4)

    def test_verify_matches_own_hash(self) -> None:
        hashed = self.hasher.hash("Passw0rd!")
        self.assertTrue(self.hasher.verify(hashed, "Passw0rd!"))
        self.assertFalse(self.hasher.verify(hashed, "passw0rd!"))

    def test_hash_is_salted(self) -> None:
        self.assertNotEqual(self.hasher.hash("same"), self.hasher.hash("same"))

    def test_malformed_hash_never_matches(self) -> None:
        self.assertFalse(self.hasher.verify("not-a-bcrypt-hash", "Passw0rd!"))
        self.assertFalse(self.hasher.verify("", "Passw0rd!"))

    def test_input_truncated_to_72_bytes(self) -> None:
        prefix = "x" * 72
        hashed = self.hasher.hash(prefix + "first")
        self.assertTrue(self.hasher.verify(hashed, prefix + "second"))

    def test_dummy_verify_runs_bcrypt_at_same_cost_and_never_matches(self) -> None:
        with patch("tessera.core.security.bcrypt.checkpw", wraps=bcrypt.checkpw) as checkpw:
            self.assertFalse(self.hasher.verify_dummy("Passw0rd!"))
            self.assertFalse(self.hasher.verify_dummy(""))
        self.assertEqual(checkpw.call_count, 2)
        dummy = checkpw.call_args.args[1].decode("ascii")
        self.assertTrue(dummy.startswith("$2b$04$"))


class TestOpaqueToken(unittest.TestCase):
    def test_url_safe_and_unique(self) -> None:
        tokens = {generate_opaque_token() for _ in range(50)}
        self.assertEqual(len(tokens), 50)
        for token in tokens:
            self.assertEqual(len(token), 43)
            self.assertNotIn("=", token)
            self.assertTrue(all(c.isalnum() or c in "-_" for c in token))


class TestTokenSigner(unittest.TestCase):
    def setUp(self) -> None:
        self.signer = TokenSigner.from_settings(make_settings())
        self.user_id = uuid.uuid4()

    def test_issue_and_decode_claims(self) -> None:
        access = self.signer.issue(self.user_id, "a@b.com", "admin")
        claims = self.signer.decode(access.token)
        self.assertEqual(claims["sub"], str(self.user_id))
        self.assertEqual(claims["email"], "a@b.com")
        self.assertEqual(claims["role"], "admin")
        self.assertEqual(claims["iss"], "tessera-api")
        self.assertEqual(claims["aud"], "tessera-client")
        self.assertTrue(claims["jti"])
        self.assertGreater(access.expires_at, datetime.now(UTC))

    def test_every_token_has_its_own_jti(self) -> None:
        first = self.signer.decode(self.signer.issue(self.user_id, "a@b.com", "user").token)
        second = self.signer.decode(self.signer.issue(self.user_id, "a@b.com", "user").token)
        self.assertNotEqual(first["jti"], second["jti"])

    def test_expired_token_rejected(self) -> None:
        past = datetime.now(UTC) - timedelta(hours=2)
        access = self.signer.issue(self.user_id, "a@b.com", "user", now=past)
        with self.assertRaises(jwt.ExpiredSignatureError):
            self.signer.decode(access.token)

    def test_wrong_audience_rejected(self) -> None:
        other = TokenSigner(
            TEST_JWT_SECRET, issuer="tessera-api", audience="someone-else"
        )
        token = other.issue(self.user_id, "a@b.com", "user").token
        with self.assertRaises(jwt.InvalidAudienceError):
            self.signer.decode(token)

    def test_wrong_secret_rejected(self) -> None:
        other = TokenSigner(
            "another-secret-0123456789abcdef0123",
            issuer="tessera-api",
            audience="tessera-client",
        )
        token = other.issue(self.user_id, "a@b.com", "user").token
        with self.assertRaises(jwt.InvalidSignatureError):
            self.signer.decode(token)


if __name__ == "__main__":
    unittest.main()
