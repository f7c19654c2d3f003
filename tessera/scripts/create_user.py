"""
Create a user (e.g. first admin). Run from project root:
  python -m tessera.scripts.create_user EMAIL PASSWORD [role]
Example:
  python -m tessera.scripts.create_user admin@example.com 'S3cure!password' admin
"""
import argparse
import logging
import sys

from tessera.core.config import get_settings
from tessera.core.database import SessionLocal
from tessera.core.security import PasswordHasher
from tessera.core.unit_of_work import commit_or_rollback
from tessera.domain.user import UserAccount, check_password_policy, normalize_email
from tessera.services.errors import AuthServiceError
from tessera.services.users import UserDirectory, publish_events

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a Tessera user from the command line.")
    parser.add_argument("email", help="Email address")
    parser.add_argument("password", help="Password (8-128 chars, upper-case, digit, symbol)")
    parser.add_argument("role", nargs="?", default="user", choices=["user", "admin"])
    args = parser.parse_args()

    try:
        email = normalize_email(args.email)
        check_password_policy(args.password)
    except AuthServiceError as e:
        print(e.message, file=sys.stderr)
        return 1

    hasher = PasswordHasher(get_settings().BCRYPT_ROUNDS)
    db = SessionLocal()
    try:
        users = UserDirectory(db)
        if users.find_by_email(email) is not None:
            print(f"User '{email}' already exists.", file=sys.stderr)
            return 1
        user = users.insert(UserAccount.create(email, hasher.hash(args.password), role=args.role))
        commit_or_rollback(db, "create_user")
        publish_events(user)
        print(f"Created user '{email}' with role '{args.role}'.")
        return 0
    except AuthServiceError as e:
        print(e.message, file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
