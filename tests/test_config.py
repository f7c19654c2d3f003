"""Unit tests for settings validation."""

import unittest

from pydantic import ValidationError

from tests.helpers import make_settings


class TestSettings(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = make_settings()
        self.assertEqual(settings.JWT_EXPIRE_MINUTES, 60)
        self.assertEqual(settings.REFRESH_TOKEN_EXPIRE_DAYS, 7)
        self.assertEqual(settings.TOKEN_RETENTION_DAYS, 7)
        self.assertFalse(settings.cookie_secure)
        self.assertFalse(settings.google_oauth_configured)

    def test_prod_rejects_placeholder_secret(self) -> None:
        with self.assertRaises(ValidationError):
            make_settings(APP_ENV="prod", JWT_SECRET="change-me-in-production")

    def test_prod_with_strong_secret_uses_secure_cookies(self) -> None:
        settings = make_settings(APP_ENV="prod")
        self.assertTrue(settings.cookie_secure)

    def test_non_postgres_url_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            make_settings(DATABASE_URL="mysql://localhost/db")

    def test_unsupported_algorithm_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            make_settings(JWT_ALGORITHM="RS256")

    def test_client_app_url_trailing_slash_stripped(self) -> None:
        settings = make_settings(CLIENT_APP_URL="https://app.example.com/")
        self.assertEqual(settings.CLIENT_APP_URL, "https://app.example.com")

    def test_settings_are_frozen(self) -> None:
        settings = make_settings()
        with self.assertRaises(ValidationError):
            settings.BCRYPT_ROUNDS = 10


if __name__ == "__main__":
    unittest.main()
