#!/usr/bin/env python3
"""Sync users from config/users.json into the TaskWise DB.

New users are created without a password and choose one on first login.
Existing users get role, email and active flag from the file.

Example config:

    {"users": [{"username": "alice", "role": "admin", "email": "alice@example.com"},
               {"username": "bob", "active": false}]}
"""
import os
import sys
proj_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if proj_root not in sys.path:
    sys.path.insert(0, proj_root)

import argparse
import asyncio


async def _sync(path: str) -> dict:
    from taskwise.db import Database
    from taskwise.user_service import load_user_config, sync_users_from_config

    entries = load_user_config(path)
    print(f"Loaded {len(entries)} users from {path}")
    db = Database()
    await db.init()
    try:
        async with db.session() as sess:
            return await sync_users_from_config(sess, entries)
    finally:
        await db.dispose()


def main(argv=None):
    p = argparse.ArgumentParser(description="Sync users from a JSON config file")
    p.add_argument("--config", help="path to users.json (default: TASKWISE_USERS_CONFIG or config/users.json)")
    args = p.parse_args(argv if argv is not None else sys.argv[1:])
    from taskwise import config
    path = args.config or config.USERS_CONFIG_PATH
    result = asyncio.run(_sync(path))
    print(f"created={result['created']} updated={result['updated']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
