"""Create a user (or an admin) from the command line.

Usage: Run from project root directory
    python scripts/create_user.py test@test.com test test123 --phone 1234567890
    python scripts/create_user.py ops@test.com ops secret123 --admin
"""
import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session
from app.auth import create_user
from app.database import engine, create_db_and_tables


def main():
    parser = argparse.ArgumentParser(description="Create a new user")
    parser.add_argument("email", help="Email address, used to log in")
    parser.add_argument("username", help="Unique username (at least 3 characters)")
    parser.add_argument("password", help="Password (at least 6 characters)")
    parser.add_argument("--phone", help="Phone number, visible to teammates only")
    parser.add_argument("--admin", action="store_true", help="Create an operator account")
    args = parser.parse_args()

    if "@" not in args.email:
        parser.error("Invalid email format")
    if len(args.username) < 3:
        parser.error("Username must be at least 3 characters long")
    if len(args.password) < 6:
        parser.error("Password must be at least 6 characters long")

    create_db_and_tables()

    with Session(engine) as db:
        try:
            user = create_user(
                db,
                email=args.email,
                username=args.username,
                password=args.password,
                phone_no=args.phone,
                is_admin=args.admin
            )
        except IntegrityError:
            print("Error: this username or email already exists.")
            sys.exit(1)

        print("User created successfully!")
        print("-" * 40)
        print(f"ID:         {user.id}")
        print(f"Username:   {user.username}")
        print(f"Email:      {user.email}")
        print(f"Admin:      {user.is_admin}")
        print(f"Created At: {user.created_at}")
        print("-" * 40)


if __name__ == "__main__":
    main()
