"""Create an email/password user.

Usage:
  python scripts/create_user.py --email alice@example.com --password '...' --name Alice --role user

NOTE: This is intended for local/dev. Social accounts are created on first sign-in.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from social_auth.auth.crud import create_user
from social_auth.config import load_config
from social_auth.db import connect, init_db


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--name", required=True)
    ap.add_argument("--role", choices=["user", "admin"], default="user")
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_DSN)

    with connect(cfg.DB_DSN) as conn:
        try:
            u = create_user(
                conn,
                email=args.email,
                password=args.password,
                name=args.name,
                salt=cfg.PASSWORD_SALT,
                role=args.role,
            )
        except ValueError as e:
            raise SystemExit(f"Could not create user: {e}")

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
