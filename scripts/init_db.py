"""
Create tables and seed the permission catalog and default roles.

Usage:
  python scripts/init_db.py
"""
import sys
from pathlib import Path

# Add project root so orgtask is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from orgtask.core.logging import setup_logging
from orgtask.db import session as db_session
from orgtask.db.init_db import init_db


def main():
    setup_logging()
    db = db_session.SessionLocal()
    try:
        init_db(db)
        print("Done.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
