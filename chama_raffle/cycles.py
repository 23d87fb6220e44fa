"""
Raffle Cycle Management
Get-or-create the current month's cycle and keep its eligibility pool
"""

import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from .directory import UserDirectory
from .errors import CycleNotFoundError, ValidationError, db_error_handler
from .models import (
    MEMBER_DRAWN,
    MEMBER_ELIGIBLE,
    Member,
    RaffleCycle,
    as_datetime,
    db_timestamp,
    utcnow,
)
from .periods import CyclePeriod, preceding_months, resolve_period, today

logger = logging.getLogger(__name__)

CYCLE_COLUMNS = "id, year, month, winners_count, is_completed, drawing_date, created_at, updated_at"


def _row_to_cycle(row, eligible_users, drawn_users) -> RaffleCycle:
    return RaffleCycle(
        id=row[0],
        year=row[1],
        month=row[2],
        eligible_users=eligible_users,
        drawn_users=drawn_users,
        winners_count=row[3],
        is_completed=bool(row[4]),
        drawing_date=as_datetime(row[5]),
        created_at=as_datetime(row[6]),
        updated_at=as_datetime(row[7]),
    )


def load_members(conn, cycle_id) -> Tuple[List[str], List[str]]:
    """
    Load a cycle's eligible and drawn member ids

    Returns:
        tuple: (eligible_users, drawn_users), each in seq order
    """
    result = conn.execute(text("""
        SELECT user_id, status
        FROM raffle_cycle_members
        WHERE cycle_id = :cycle_id
        ORDER BY seq, id
    """), {'cycle_id': cycle_id})

    eligible, drawn = [], []
    for user_id, status in result:
        (drawn if status == MEMBER_DRAWN else eligible).append(user_id)
    return eligible, drawn


def fetch_cycle(conn, year, month) -> Optional[RaffleCycle]:
    """Read the cycle for (year, month) without creating it"""
    row = conn.execute(text(f"""
        SELECT {CYCLE_COLUMNS}
        FROM raffle_cycles
        WHERE year = :year AND month = :month
    """), {'year': year, 'month': month}).fetchone()

    if not row:
        return None
    eligible, drawn = load_members(conn, row[0])
    return _row_to_cycle(row, eligible, drawn)


def fetch_cycle_by_id(conn, cycle_id) -> Optional[RaffleCycle]:
    row = conn.execute(text(f"""
        SELECT {CYCLE_COLUMNS}
        FROM raffle_cycles
        WHERE id = :cycle_id
    """), {'cycle_id': cycle_id}).fetchone()

    if not row:
        return None
    eligible, drawn = load_members(conn, row[0])
    return _row_to_cycle(row, eligible, drawn)


def insert_members(conn, cycle_id, user_ids, status, start_seq=1):
    """Attach member ids to a cycle with consecutive seq numbers"""
    if not user_ids:
        return
    conn.execute(text("""
        INSERT INTO raffle_cycle_members (cycle_id, user_id, status, seq)
        VALUES (:cycle_id, :user_id, :status, :seq)
    """), [
        {'cycle_id': cycle_id, 'user_id': user_id, 'status': status, 'seq': seq}
        for seq, user_id in enumerate(user_ids, start=start_seq)
    ])


def _member_id(user) -> str:
    if isinstance(user, Member):
        return user.id
    if isinstance(user, dict):
        user_id = user.get('id')
    else:
        user_id = user
    if user_id is None or str(user_id).strip() == '':
        raise ValidationError("Every user needs a non-empty id")
    return str(user_id)


class CycleManager:
    """Resolves and maintains raffle cycles"""

    def __init__(self, engine: Engine, directory: Optional[UserDirectory] = None):
        self.engine = engine
        self.directory = directory or UserDirectory(engine)

    @db_error_handler
    def get_current_cycle(self, as_of=None) -> RaffleCycle:
        """
        Get the cycle for the month containing as_of, creating it if needed

        First months of a quarter are seeded from all active members. Later
        months inherit drawn members from the most recent earlier cycle of the
        same quarter and keep whoever was not drawn as eligible. The last month
        of a quarter starts with an empty eligible pool.

        Args:
            as_of: date the caller considers "now" (defaults to today)

        Returns:
            RaffleCycle
        """
        period = resolve_period(today(as_of))

        with self.engine.connect() as conn:
            existing = fetch_cycle(conn, period.year, period.month)
        if existing:
            return existing

        eligible_users, drawn_users = self._initial_membership(period)
        now = db_timestamp(utcnow())

        try:
            with self.engine.begin() as conn:
                cycle_id = conn.execute(text("""
                    INSERT INTO raffle_cycles
                        (year, month, winners_count, is_completed, created_at, updated_at)
                    VALUES
                        (:year, :month, 0, :is_completed, :now, :now)
                    RETURNING id
                """), {
                    'year': period.year,
                    'month': period.month,
                    'is_completed': False,
                    'now': now,
                }).scalar()

                insert_members(conn, cycle_id, eligible_users, MEMBER_ELIGIBLE)
                insert_members(conn, cycle_id, drawn_users, MEMBER_DRAWN)

                cycle = fetch_cycle_by_id(conn, cycle_id)

        except IntegrityError:
            # Another request created the same (year, month) first
            logger.warning(f"Raffle cycle {period.year}-{period.month} created concurrently, re-fetching")
            with self.engine.connect() as conn:
                cycle = fetch_cycle(conn, period.year, period.month)
            if cycle is None:
                raise
            return cycle

        logger.info(
            f"✅ Created raffle cycle #{cycle.id} for {period.year}-{period.month:02d} "
            f"(quarter {period.quarter}, eligible={len(cycle.eligible_users)}, drawn={len(cycle.drawn_users)})"
        )
        return cycle

    def _initial_membership(self, period: CyclePeriod) -> Tuple[List[str], List[str]]:
        if period.is_first_month:
            return self._seed_from_directory(), []

        previous = None
        with self.engine.connect() as conn:
            for month in preceding_months(period):
                previous = fetch_cycle(conn, period.year, month)
                if previous:
                    break

        if previous is None:
            logger.warning(
                f"No earlier cycle in quarter {period.quarter} of {period.year}, "
                f"seeding month {period.month} from active members"
            )
            return self._seed_from_directory(), []

        if previous.month != period.month - 1:
            logger.info(f"Gap in cycle history: inheriting month {period.month} from month {previous.month}")

        drawn_users = list(previous.drawn_users)
        if period.is_last_month:
            eligible_users = []
        else:
            eligible_users = previous.remaining_eligible
        return eligible_users, drawn_users

    def _seed_from_directory(self) -> List[str]:
        return [member.id for member in self.directory.list_active_users()]

    @db_error_handler
    def get_cycle(self, year, month) -> Optional[RaffleCycle]:
        """Read-only lookup by (year, month); month is 0-indexed"""
        with self.engine.connect() as conn:
            return fetch_cycle(conn, year, month)

    @db_error_handler
    def get_cycle_by_id(self, cycle_id) -> Optional[RaffleCycle]:
        with self.engine.connect() as conn:
            return fetch_cycle_by_id(conn, cycle_id)

    @db_error_handler
    def list_cycles(self, limit=None) -> List[RaffleCycle]:
        """
        Get cycles newest first

        Args:
            limit: Maximum number of cycles (None = all)
        """
        query = f"""
            SELECT {CYCLE_COLUMNS}
            FROM raffle_cycles
            ORDER BY year DESC, month DESC
        """
        params = {}
        if limit is not None:
            query += " LIMIT :limit"
            params['limit'] = limit

        with self.engine.connect() as conn:
            rows = conn.execute(text(query), params).fetchall()
            return [_row_to_cycle(row, *load_members(conn, row[0])) for row in rows]

    @db_error_handler
    def add_eligible_users(self, cycle_id, users: Iterable) -> dict:
        """
        Append members to a cycle's eligible pool

        Members already attached to the cycle (eligible or drawn) and repeats
        within the batch are skipped. Nothing is ever removed.

        Args:
            cycle_id: Raffle cycle ID
            users: Members, member dicts or plain ids

        Returns:
            dict: {'success': True, 'added_count': n}
        """
        incoming = [_member_id(user) for user in users]

        with self.engine.begin() as conn:
            cycle = fetch_cycle_by_id(conn, cycle_id)
            if cycle is None:
                raise CycleNotFoundError(f"Raffle cycle {cycle_id} not found")

            known = set(cycle.eligible_users) | set(cycle.drawn_users)
            new_users = []
            for user_id in incoming:
                if user_id not in known:
                    known.add(user_id)
                    new_users.append(user_id)

            if new_users:
                last_seq = conn.execute(text("""
                    SELECT COALESCE(MAX(seq), 0)
                    FROM raffle_cycle_members
                    WHERE cycle_id = :cycle_id AND status = :status
                """), {'cycle_id': cycle_id, 'status': MEMBER_ELIGIBLE}).scalar()

                insert_members(conn, cycle_id, new_users, MEMBER_ELIGIBLE, start_seq=last_seq + 1)
                conn.execute(text("""
                    UPDATE raffle_cycles SET updated_at = :now WHERE id = :cycle_id
                """), {'now': db_timestamp(utcnow()), 'cycle_id': cycle_id})

        logger.info(f"Added {len(new_users)} eligible users to raffle cycle #{cycle_id}")
        return {'success': True, 'added_count': len(new_users)}
