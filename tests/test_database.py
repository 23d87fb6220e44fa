"""
Tests for schema setup and database helpers
"""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from chama_raffle.database import (
    REQUIRED_TABLES,
    get_engine,
    normalize_database_url,
    setup_raffle_database,
    split_statements,
    verify_raffle_schema,
)
from chama_raffle.directory import UserDirectory
from chama_raffle.errors import PersistenceError, db_error_handler
from chama_raffle.models import Member, as_decimal


def test_schema_created(engine):
    status = verify_raffle_schema(engine)

    assert set(status) == set(REQUIRED_TABLES)
    assert all(status.values())


def test_setup_is_repeatable(engine):
    assert setup_raffle_database(engine) is True


def test_verify_reports_missing_tables(tmp_path):
    empty = get_engine(f"sqlite:///{tmp_path / 'empty.db'}")

    assert not any(verify_raffle_schema(empty).values())


def test_normalize_database_url():
    assert normalize_database_url("postgres://u:p@host/db") == "postgresql://u:p@host/db"
    assert normalize_database_url("sqlite:///x.db") == "sqlite:///x.db"


def test_split_statements_skips_comments():
    statements = split_statements("-- heading\nCREATE TABLE a (id INT);\n\nCREATE INDEX i ON a(id);\n")

    assert len(statements) == 2
    assert statements[0].startswith("CREATE TABLE a")


def test_db_error_handler_wraps_storage_failures():
    @db_error_handler
    def broken():
        raise SQLAlchemyError("disk I/O error")

    with pytest.raises(PersistenceError) as exc_info:
        broken()

    assert isinstance(exc_info.value.__cause__, SQLAlchemyError)


def test_member_requires_id():
    with pytest.raises(ValueError):
        Member(id='', name='Nobody')
    assert Member.from_dict({'id': 7, 'name': 'Seven'}).id == '7'


def test_as_decimal_quantizes():
    assert str(as_decimal(100)) == '100.00'
    assert str(as_decimal('50.5')) == '50.50'


def test_directory_lookups(engine, add_users):
    add_users('A', 'B')
    add_users('S', status='suspended')
    directory = UserDirectory(engine)

    assert [member.id for member in directory.list_active_users()] == ['A', 'B']
    members = directory.get_members(['S', 'A', 'missing'])
    assert set(members) == {'A', 'S'}
    assert members['S'].status == 'suspended'
    assert directory.get_members([]) == {}
