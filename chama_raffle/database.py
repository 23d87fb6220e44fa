"""
Database Schema Setup for the Raffle Engine
Creates all tables and indices needed for settings, cycles and winners
"""

import logging

from sqlalchemy import create_engine, inspect, text

logger = logging.getLogger(__name__)

# SQL schema for the raffle engine. {pk} is filled per dialect.
RAFFLE_SCHEMA_SQL = """
-- ============================================
-- RAFFLE ENGINE DATABASE SCHEMA
-- ============================================

-- Member directory (owned by the portal, created here for standalone installs)
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT,
    phone TEXT,
    avatar_url TEXT,
    role VARCHAR(20) DEFAULT 'member',
    status VARCHAR(20) DEFAULT 'active',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Settings (latest row wins)
CREATE TABLE IF NOT EXISTS raffle_settings (
    id {pk},
    winners_per_period INTEGER NOT NULL DEFAULT 2 CHECK (winners_per_period >= 1),
    active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- One row per (year, month); month is 0-indexed
CREATE TABLE IF NOT EXISTS raffle_cycles (
    id {pk},
    year INTEGER NOT NULL,
    month INTEGER NOT NULL CHECK (month >= 0 AND month <= 11),
    winners_count INTEGER NOT NULL DEFAULT 0,
    is_completed BOOLEAN NOT NULL DEFAULT FALSE,
    drawing_date TIMESTAMP,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(year, month)
);

-- Eligible / drawn membership per cycle, ordered by seq
CREATE TABLE IF NOT EXISTS raffle_cycle_members (
    id {pk},
    cycle_id INTEGER NOT NULL REFERENCES raffle_cycles(id) ON DELETE CASCADE,
    user_id TEXT NOT NULL,
    status VARCHAR(10) NOT NULL CHECK (status IN ('eligible', 'drawn')),
    seq INTEGER NOT NULL,
    UNIQUE(cycle_id, user_id)
);

-- Winners, tagged with the first-of-month raffle period
CREATE TABLE IF NOT EXISTS raffle_winners (
    id {pk},
    raffle_period DATE NOT NULL,
    user_id TEXT NOT NULL,
    position INTEGER NOT NULL CHECK (position >= 1),
    amount NUMERIC(12, 2) NOT NULL,
    payment_status VARCHAR(10) NOT NULL DEFAULT 'pending' CHECK (payment_status IN ('pending', 'paid')),
    payment_date TIMESTAMP,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(raffle_period, position)
);

-- ============================================
-- INDICES
-- ============================================

CREATE INDEX IF NOT EXISTS idx_users_status ON users(status);
CREATE INDEX IF NOT EXISTS idx_cycle_members_lookup ON raffle_cycle_members(cycle_id, status, seq);
CREATE INDEX IF NOT EXISTS idx_raffle_winners_period ON raffle_winners(raffle_period);
CREATE INDEX IF NOT EXISTS idx_raffle_winners_status ON raffle_winners(payment_status);
"""

REQUIRED_TABLES = [
    'users',
    'raffle_settings',
    'raffle_cycles',
    'raffle_cycle_members',
    'raffle_winners',
]

PRIMARY_KEY_TYPES = {
    'sqlite': 'INTEGER PRIMARY KEY AUTOINCREMENT',
    'postgresql': 'SERIAL PRIMARY KEY',
}


def normalize_database_url(database_url):
    """Convert postgres:// to postgresql:// for SQLAlchemy"""
    if database_url and database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def get_engine(database_url=None, **kwargs):
    """
    Create a SQLAlchemy engine for the raffle database

    Args:
        database_url: Connection string (defaults to DATABASE_URL from config)
        **kwargs: Passed through to create_engine

    Returns:
        Engine
    """
    if database_url is None:
        from .config import DATABASE_URL
        database_url = DATABASE_URL
    kwargs.setdefault('pool_pre_ping', True)
    return create_engine(normalize_database_url(database_url), **kwargs)


def split_statements(schema_sql):
    """Split SQL into individual statements (SQLite executes one at a time)"""
    statements = []
    current_statement = []

    for line in schema_sql.split('\n'):
        stripped = line.strip()
        if not stripped or stripped.startswith('--'):
            continue

        current_statement.append(line)

        if stripped.endswith(';'):
            statements.append('\n'.join(current_statement))
            current_statement = []

    return statements


def setup_raffle_database(engine):
    """
    Create all raffle engine tables and indices

    Args:
        engine: SQLAlchemy engine instance

    Returns:
        bool: True if successful, False otherwise
    """
    pk = PRIMARY_KEY_TYPES.get(engine.dialect.name, PRIMARY_KEY_TYPES['postgresql'])
    schema_sql = RAFFLE_SCHEMA_SQL.replace('{pk}', pk)

    try:
        logger.info("Setting up raffle engine database schema...")

        with engine.begin() as conn:
            for statement in split_statements(schema_sql):
                conn.execute(text(statement))

        logger.info("✅ Raffle database schema created successfully")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to setup raffle database: {e}")
        return False


def verify_raffle_schema(engine):
    """
    Verify that all required tables exist

    Args:
        engine: SQLAlchemy engine instance

    Returns:
        dict: Status of each table (True/False)
    """
    existing = set(inspect(engine).get_table_names())
    return {table: table in existing for table in REQUIRED_TABLES}
