"""
Database initialization script.
Run this script to create all raffle engine tables.
"""

import os
import sys

from dotenv import load_dotenv

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from chama_raffle.config import DATABASE_URL
from chama_raffle.database import get_engine, setup_raffle_database, verify_raffle_schema
from chama_raffle.utils.logging_config import setup_logging

# Load environment variables
load_dotenv()


def main():
    setup_logging('chama_raffle')

    print(f"Connecting to database: {DATABASE_URL.split('@')[-1]}" if '@' in DATABASE_URL else DATABASE_URL)
    engine = get_engine()

    print("\n=== Creating tables ===\n")
    if not setup_raffle_database(engine):
        print("\n❌ Error setting up database")
        sys.exit(1)

    status = verify_raffle_schema(engine)
    print("Tables in database:")
    for table, exists in status.items():
        print(f"  {'✓' if exists else '✗'} {table}")

    if not all(status.values()):
        print("\n⚠️ Some tables are missing")
        sys.exit(1)

    print("\n✅ Database is ready for use!")


if __name__ == "__main__":
    main()
