"""
Migration script to fold the legacy `appointments` collection into `bookings`
and rewrite bookings that still carry old camelCase field names.
Safe to run more than once.
"""
import logging
import sys

import config
import database
from bookings import migrate_legacy_appointments


def main() -> int:
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if database.db is None:
        print("DATABASE_URL is not set, nothing to migrate")
        return 1
    print(f"Migrating appointments in '{database.db.name}'...")
    result = migrate_legacy_appointments(database.db)
    print(f"✓ Copied {result['copied']} legacy appointments")
    print(f"✓ Rewrote {result['rewritten']} bookings with old field names")
    return 0


if __name__ == "__main__":
    sys.exit(main())
