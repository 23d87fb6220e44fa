"""
Raffle Winner Records
Historical winner queries, payment confirmation and statistics
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from .cycles import CycleManager
from .errors import ValidationError, WinnerNotFoundError, db_error_handler
from .models import (
    PAYMENT_PAID,
    PAYMENT_STATUSES,
    Member,
    RaffleWinner,
    WinnersResult,
    as_date,
    as_datetime,
    as_decimal,
    db_timestamp,
    utcnow,
)
from .periods import raffle_period_date, resolve_period, today

logger = logging.getLogger(__name__)

NO_CYCLE_MESSAGE = "No raffle cycle found for the selected period."


def _row_to_winner(row) -> RaffleWinner:
    user = None
    if row[7] is not None:
        user = Member(
            id=row[7],
            name=row[8] or "",
            email=row[9] or "",
            phone=row[10] or "",
            avatar_url=row[11],
            role=row[12] or "member",
        )
    return RaffleWinner(
        id=row[0],
        raffle_period=as_date(row[1]),
        user_id=row[2],
        position=row[3],
        amount=as_decimal(row[4]),
        payment_status=row[5],
        payment_date=as_datetime(row[6]),
        user=user,
    )


class WinnerManager:
    """Reads winner history and records payouts"""

    def __init__(self, engine: Engine, cycles: Optional[CycleManager] = None):
        self.engine = engine
        self.cycles = cycles or CycleManager(engine)

    @db_error_handler
    def get_winners(self, year, month) -> WinnersResult:
        """
        Get the winners for a raffle period

        Read-only: a missing cycle is not created, the result just carries an
        informational message instead.

        Args:
            year: Calendar year
            month: 0-indexed month

        Returns:
            WinnersResult: cycle, winners ordered by position, optional message
        """
        cycle = self.cycles.get_cycle(year, month)
        if cycle is None:
            return WinnersResult(cycle=None, winners=[], message=NO_CYCLE_MESSAGE)

        with self.engine.connect() as conn:
            result = conn.execute(text("""
                SELECT
                    rw.id,
                    rw.raffle_period,
                    rw.user_id,
                    rw.position,
                    rw.amount,
                    rw.payment_status,
                    rw.payment_date,
                    u.id,
                    u.name,
                    u.email,
                    u.phone,
                    u.avatar_url,
                    u.role
                FROM raffle_winners rw
                LEFT JOIN users u ON u.id = rw.user_id
                WHERE rw.raffle_period = :raffle_period
                ORDER BY rw.position ASC
            """), {'raffle_period': raffle_period_date(year, month).isoformat()})
            winners = [_row_to_winner(row) for row in result]

        return WinnersResult(cycle=cycle, winners=winners)

    def get_current_winners(self, as_of=None) -> WinnersResult:
        period = resolve_period(today(as_of))
        return self.get_winners(period.year, period.month)

    @db_error_handler
    def update_payment_status(self, winner_id, status) -> dict:
        """
        Update payment status for a winner

        'paid' stamps payment_date with the current time, 'pending' clears it.

        Args:
            winner_id: Raffle winner ID
            status: 'pending' or 'paid'

        Returns:
            dict: {'success': True}
        """
        if status not in PAYMENT_STATUSES:
            raise ValidationError(f"Invalid payment status '{status}' (expected one of {', '.join(PAYMENT_STATUSES)})")

        now = utcnow()
        payment_date = db_timestamp(now) if status == PAYMENT_PAID else None

        with self.engine.begin() as conn:
            updated = conn.execute(text("""
                UPDATE raffle_winners
                SET payment_status = :status,
                    payment_date = :payment_date,
                    updated_at = :now
                WHERE id = :winner_id
            """), {
                'status': status,
                'payment_date': payment_date,
                'now': db_timestamp(now),
                'winner_id': winner_id,
            })
            if updated.rowcount == 0:
                raise WinnerNotFoundError(f"Raffle winner {winner_id} not found")

        logger.info(f"💰 Raffle winner #{winner_id} payment status set to {status}")
        return {'success': True}

    @db_error_handler
    def get_statistics(self, recent_limit=5) -> dict:
        """
        Get raffle statistics

        Args:
            recent_limit: Number of recent cycles to include

        Returns:
            dict: total_winners, total_paid, total_cycles, completed_cycles, recent_cycles
        """
        with self.engine.connect() as conn:
            total_winners = conn.execute(text("SELECT COUNT(*) FROM raffle_winners")).scalar()

            paid_amounts = conn.execute(text("""
                SELECT amount FROM raffle_winners WHERE payment_status = :status
            """), {'status': PAYMENT_PAID}).scalars().all()

            total_cycles, completed_cycles = conn.execute(text("""
                SELECT
                    COUNT(*),
                    COALESCE(SUM(CASE WHEN is_completed THEN 1 ELSE 0 END), 0)
                FROM raffle_cycles
            """)).fetchone()

        total_paid = sum((as_decimal(amount) for amount in paid_amounts), Decimal("0.00"))

        return {
            'total_winners': total_winners,
            'total_paid': total_paid,
            'total_cycles': total_cycles,
            'completed_cycles': completed_cycles,
            'recent_cycles': self.cycles.list_cycles(limit=recent_limit),
        }
