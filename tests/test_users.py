"""Tests for UserDirectory reads and writes."""

import unittest
import uuid

from tessera.core.security import PasswordHasher
from tessera.domain.user import UserAccount
from tessera.services.errors import UserAlreadyExistsError, UserNotFoundError
from tessera.services.users import UserDirectory
from tests.helpers import TEST_PASSWORD, add_user, make_session


class TestUserDirectory(unittest.TestCase):
    def setUp(self) -> None:
        self.session = make_session()
        self.users = UserDirectory(self.session)
        self.hasher = PasswordHasher(rounds=4)
        self.user = add_user(self.session)

    def tearDown(self) -> None:
        self.session.close()

    def test_find_by_email_ignores_case_and_whitespace(self) -> None:
        found = self.users.find_by_email("  A@B.COM ")
        self.assertEqual(found.id, self.user.id)
        self.assertIsNone(self.users.find_by_email("nobody@b.com"))

    def test_find_by_id_missing(self) -> None:
        self.assertIsNone(self.users.find_by_id(uuid.uuid4()))

    def test_insert_duplicate_email_rejected(self) -> None:
        duplicate = UserAccount.create("a@b.com", self.hasher.hash(TEST_PASSWORD))
        with self.assertRaises(UserAlreadyExistsError):
            self.users.insert(duplicate)
        self.assertEqual(self.users.find_by_email("a@b.com").id, self.user.id)

    def test_update_password_persists_hash_and_records_event(self) -> None:
        updated = self.users.update_password(self.user, self.hasher.hash("N3wPassword!"))
        self.session.commit()

        self.assertEqual([event.name for event in updated.events], ["user_password_changed"])
        self.assertEqual(updated.events[0].user_id, self.user.id)
        self.assertEqual(self.user.events, ())

        stored = self.users.find_by_id(self.user.id)
        self.assertTrue(self.hasher.verify(stored.password_hash, "N3wPassword!"))
        self.assertFalse(self.hasher.verify(stored.password_hash, TEST_PASSWORD))

    def test_update_password_of_missing_user(self) -> None:
        ghost = UserAccount.create("ghost@b.com", self.hasher.hash(TEST_PASSWORD))
        with self.assertRaises(UserNotFoundError):
            self.users.update_password(ghost, self.hasher.hash("N3wPassword!"))

    def test_update_profile_replaces_fields(self) -> None:
        updated = self.users.update_profile(
            self.user, first_name="Ada", last_name=None, avatar_url=None
        )
        self.session.commit()
        self.assertEqual(updated.first_name, "Ada")
        self.assertEqual(self.users.find_by_id(self.user.id).first_name, "Ada")


if __name__ == "__main__":
    unittest.main()
