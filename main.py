#!/usr/bin/env python3
"""
authstore -- user registry and session store with an optional HTTP front end.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 9000
  python main.py add-user alice --access 0
  python main.py delete-user alice
  python main.py list-users

Environment variables (all optional, see core/config.py):
  AUTHSTORE_DATABASE_URL   SQLAlchemy URL of the user table (default sqlite:///authstore.sqlite3)
  AUTHSTORE_BACKEND        persistent (default) or memory
  AUTHSTORE_DEBUG          echo store errors in HTTP 500 responses
  AUTHSTORE_MAX_SESSIONS   concurrent sessions per user, 0 = unlimited
"""

import argparse
import getpass
import sys

from auth.errors import AuthError
from auth.factory import open_store
from auth.models import USER
from core.config import get_settings


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "api.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def _cmd_add_user(args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass(f"Password for {args.username}: ")
    store = open_store(get_settings())
    try:
        store.add(args.username, password, args.access)
    except AuthError as e:
        print(f"  [!] Could not add '{args.username}': {e}")
        return 1
    finally:
        store.close()
    print(f"  Added '{args.username}' (access {args.access}).")
    return 0


def _cmd_delete_user(args: argparse.Namespace) -> int:
    store = open_store(get_settings())
    try:
        store.user_from_username(args.username).delete()
    except AuthError as e:
        print(f"  [!] Could not delete '{args.username}': {e}")
        return 1
    finally:
        store.close()
    print(f"  Deleted '{args.username}'.")
    return 0


def _cmd_list_users(args: argparse.Namespace) -> int:
    store = open_store(get_settings())
    try:
        for username in store.usernames():
            print(f"  {username:<32} access={store.user_from_username(username).access}")
    finally:
        store.close()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="authstore",
        description="User registry and session store.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve
  python main.py add-user alice --access 0
  AUTHSTORE_DATABASE_URL=sqlite:///users.db python main.py list-users
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default=None, help="Listen address (default: AUTHSTORE_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Listen port (default: AUTHSTORE_PORT)")
    serve.set_defaults(func=_cmd_serve)

    add = sub.add_parser("add-user", help="Register a user in the configured store")
    add.add_argument("username")
    add.add_argument("--password", default=None, help="Password (prompted for when omitted)")
    add.add_argument(
        "--access",
        type=int,
        default=USER,
        help="Access level, lower is more privileged: 0 admin, 1 user (default: 1)",
    )
    add.set_defaults(func=_cmd_add_user)

    delete = sub.add_parser("delete-user", help="Delete a user and drop its sessions")
    delete.add_argument("username")
    delete.set_defaults(func=_cmd_delete_user)

    listing = sub.add_parser("list-users", help="List registered users")
    listing.set_defaults(func=_cmd_list_users)

    args = parser.parse_args()
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
