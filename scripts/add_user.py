#!/usr/bin/env python3
"""Admin script to add or update a user in the TaskWise DB.

Usage:
    python scripts/add_user.py username [password] [--admin] [--email EMAIL]

Omitting the password prompts for it. Existing users get their password,
role and email replaced and their sessions revoked.
"""
import os
import sys
proj_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if proj_root not in sys.path:
    sys.path.insert(0, proj_root)

import argparse
import asyncio
import getpass
from typing import Optional


async def _create_or_update(username: str, password: str, is_admin: bool = False, email: Optional[str] = None):
    # Import app modules lazily so running `-h` doesn't require the runtime stack.
    from taskwise.db import Database
    from taskwise.auth import get_user_by_username, hash_password
    from taskwise.models import User
    from taskwise.sessions import delete_user_sessions

    db = Database()
    await db.init()
    try:
        async with db.session() as sess:
            user = await get_user_by_username(sess, username)
            if user is None:
                user = User(username=username)
            user.password_hash = hash_password(password)
            user.role = 'admin' if is_admin else 'user'
            user.active = True
            if email:
                user.email = email
            sess.add(user)
            try:
                await sess.commit()
            except Exception:
                await sess.rollback()
                print(f"Failed to save user {username}", file=sys.stderr)
                return None
            await sess.refresh(user)
            await delete_user_sessions(sess, user.id)
            return user
    finally:
        await db.dispose()


def parse_args(argv):
    p = argparse.ArgumentParser(description="Create or update a TaskWise user")
    p.add_argument("username", help="username to create/update")
    p.add_argument("password", nargs="?", help="password for the user (omit to prompt)")
    p.add_argument("--admin", action="store_true", help="give the user the admin role")
    p.add_argument("--email", help="email address")
    p.add_argument("--db", help="path to sqlite file (default: DATABASE_URL or ./data/taskwise.db)")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv if argv is not None else sys.argv[1:])
    if args.db:
        # taskwise.config reads DATABASE_URL at import time
        os.environ['DATABASE_URL'] = f"sqlite+aiosqlite:///{args.db}"
    password = args.password
    if not password:
        pw = getpass.getpass("Password: ")
        pw2 = getpass.getpass("Confirm password: ")
        if pw != pw2:
            print("Passwords do not match", file=sys.stderr)
            return 2
        if pw == "":
            print("Empty password not allowed", file=sys.stderr)
            return 2
        password = pw

    user = asyncio.run(_create_or_update(args.username, password, args.admin, args.email))
    if not user:
        print("Operation failed")
        return 2
    print(f"User '{user.username}' ({user.role}) saved with id={user.id}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
