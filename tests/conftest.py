"""
Shared fixtures for raffle engine tests
Each test gets its own SQLite file with the full schema installed
"""

from datetime import date

import pytest
from sqlalchemy import text

from chama_raffle.database import get_engine, setup_raffle_database

JAN = date(2025, 1, 15)
FEB = date(2025, 2, 15)
MAR = date(2025, 3, 15)
APR = date(2025, 4, 15)
MAY = date(2025, 5, 15)


class FixedOrderRandom:
    """Stands in for random.SystemRandom; shuffle() sorts into a known order"""

    def __init__(self, order):
        self.order = list(order)
        self.calls = 0

    def shuffle(self, items):
        self.calls += 1
        rank = {user_id: i for i, user_id in enumerate(self.order)}
        items.sort(key=lambda user_id: rank.get(user_id, len(rank)))


class RecordingNotifier:
    def __init__(self, delivered=True):
        self.delivered = delivered
        self.announcements = []

    def send_winners_announcement(self, recipients, month, year, winners):
        self.announcements.append({
            'recipients': list(recipients),
            'month': month,
            'year': year,
            'winners': winners,
        })
        return self.delivered


class FailingNotifier:
    def send_winners_announcement(self, recipients, month, year, winners):
        raise ConnectionError("mail relay unreachable")


@pytest.fixture
def engine(tmp_path):
    db_engine = get_engine(f"sqlite:///{tmp_path / 'raffle.db'}")
    assert setup_raffle_database(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def add_users(engine):
    """Insert members in join order: add_users('A', 'B', status='active')"""
    counter = {'n': 0}

    def _add(*user_ids, status='active'):
        with engine.begin() as conn:
            for user_id in user_ids:
                counter['n'] += 1
                conn.execute(text("""
                    INSERT INTO users (id, name, email, phone, role, status, created_at)
                    VALUES (:id, :name, :email, :phone, 'member', :status, :created_at)
                """), {
                    'id': user_id,
                    'name': f"Member {user_id}",
                    'email': f"{user_id.lower()}@chama.test",
                    'phone': f"+2547000000{counter['n']:02d}",
                    'status': status,
                    'created_at': f"2024-12-01 00:00:{counter['n']:02d}",
                })
    return _add


@pytest.fixture
def five_members(add_users):
    add_users('A', 'B', 'C', 'D', 'E')
    return ['A', 'B', 'C', 'D', 'E']


def count_rows(engine, table):
    with engine.connect() as conn:
        return conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar()
