"""Tests for RefreshTokenStore against an in-memory database."""

import unittest
from datetime import timedelta

from tessera.models import RefreshToken
from tessera.models.base import utcnow
from tessera.services.errors import TokenAlreadyRevokedError
from tessera.services.refresh_tokens import RefreshTokenStore
from tests.helpers import add_user, make_session


class TestRefreshTokenStore(unittest.TestCase):
    def setUp(self) -> None:
        self.session = make_session()
        self.user = add_user(self.session)
        self.store = RefreshTokenStore(self.session, lifetime=timedelta(days=7))

    def tearDown(self) -> None:
        self.session.close()

    def test_issue_then_find_valid(self) -> None:
        issued = self.store.issue(self.user.id)
        self.session.commit()

        row = self.store.find_valid(issued.token)
        self.assertIsNotNone(row)
        self.assertEqual(row.user_id, self.user.id)
        self.assertTrue(row.is_valid())
        self.assertGreater(issued.expires_at, utcnow() + timedelta(days=6))

    def test_unknown_or_empty_token(self) -> None:
        self.assertIsNone(self.store.find("does-not-exist"))
        self.assertIsNone(self.store.find(""))
        self.assertIsNone(self.store.find_valid("does-not-exist"))

    def test_expired_token_is_invalid(self) -> None:
        issued = self.store.issue(self.user.id, now=utcnow() - timedelta(days=8))
        self.session.commit()
        row = self.store.find(issued.token)
        self.assertIsNotNone(row)
        self.assertFalse(row.is_valid())
        self.assertIsNone(self.store.find_valid(issued.token))

    def test_revoke_twice_raises(self) -> None:
        issued = self.store.issue(self.user.id)
        row = self.store.find(issued.token)
        self.store.revoke(row)
        self.assertTrue(row.is_revoked)
        self.assertIsNone(self.store.find_valid(issued.token))
        with self.assertRaises(TokenAlreadyRevokedError):
            self.store.revoke(row)

    def test_revoke_all_leaves_later_tokens_valid(self) -> None:
        first = self.store.issue(self.user.id)
        second = self.store.issue(self.user.id)
        other_user = add_user(self.session, email="c@d.com")
        other = self.store.issue(other_user.id)
        self.session.commit()

        self.assertEqual(self.store.revoke_all(self.user.id), 2)
        self.session.commit()
        later = self.store.issue(self.user.id)
        self.session.commit()

        self.assertIsNone(self.store.find_valid(first.token))
        self.assertIsNone(self.store.find_valid(second.token))
        self.assertIsNotNone(self.store.find_valid(later.token))
        self.assertIsNotNone(self.store.find_valid(other.token))

    def test_delete_expired(self) -> None:
        now = utcnow()
        old = self.store.issue(self.user.id, now=now - timedelta(days=30))
        revoked = self.store.issue(self.user.id)
        live = self.store.issue(self.user.id)
        # expired two days ago, still inside the 7-day retention window
        recent = self.store.issue(self.user.id, now=now - timedelta(days=9))
        self.store.revoke(self.store.find(revoked.token))
        self.session.commit()

        deleted = self.store.delete_expired(now - timedelta(days=7))
        self.session.commit()

        self.assertEqual(deleted, 2)
        self.assertIsNone(self.store.find(old.token))
        self.assertIsNone(self.store.find(revoked.token))
        self.assertIsNotNone(self.store.find_valid(live.token))
        self.assertIsNotNone(self.store.find(recent.token))
        self.assertEqual(self.session.query(RefreshToken).count(), 2)


if __name__ == "__main__":
    unittest.main()
