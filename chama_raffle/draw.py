"""
Raffle Draw Logic
Picks the month's winners from the cycle's eligible pool and records them
"""

import logging
import random
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from .utils.logging_config import log_error

from .config import DRAWS_PER_QUARTER, RAFFLE_FIRST_PRIZE, RAFFLE_PRIZE_AMOUNT
from .cycles import CycleManager, fetch_cycle_by_id
from .directory import UserDirectory, fetch_members
from .errors import (
    ConcurrentDrawError,
    CycleAlreadyCompletedError,
    DisabledSystemError,
    InsufficientEligiblePoolError,
    NotificationError,
    db_error_handler,
)
from .models import (
    MEMBER_DRAWN,
    PAYMENT_PENDING,
    DrawResult,
    Member,
    RaffleCycle,
    RaffleWinner,
    db_timestamp,
    utcnow,
)
from .periods import month_name, raffle_period_date, today
from .settings import RaffleSettingsManager

logger = logging.getLogger(__name__)


def prize_for_pick(pick: int) -> Decimal:
    """The first pick of each draw (pick 0) gets the top prize, the rest the standard payout"""
    return RAFFLE_FIRST_PRIZE if pick == 0 else RAFFLE_PRIZE_AMOUNT


def is_cycle_complete(winners_count, drawn_count, pool_size, winners_per_period) -> bool:
    """Quarterly quota reached, or the whole pool has been drawn"""
    return winners_count >= winners_per_period * DRAWS_PER_QUARTER or drawn_count >= pool_size


class RaffleDraw:
    """Handles raffle drawing and winner selection"""

    def __init__(
        self,
        engine: Engine,
        settings: Optional[RaffleSettingsManager] = None,
        cycles: Optional[CycleManager] = None,
        directory: Optional[UserDirectory] = None,
        notifier=None,
        rng=None,
    ):
        """
        Args:
            engine: SQLAlchemy engine
            settings: Settings manager (built from engine if omitted)
            cycles: Cycle manager (built from engine if omitted)
            directory: Member directory used for winner details and announcements
            notifier: Anything with send_winners_announcement(); None disables announcements
            rng: random.Random-like source with shuffle(); SystemRandom if omitted
        """
        self.engine = engine
        self.directory = directory or UserDirectory(engine)
        self.settings = settings or RaffleSettingsManager(engine)
        self.cycles = cycles or CycleManager(engine, self.directory)
        self.notifier = notifier
        self.rng = rng or random.SystemRandom()

    def draw_winners(self, as_of=None, rng=None) -> DrawResult:
        """
        Draw this month's winners

        Preconditions are checked before anything is written: the system must be
        active, the cycle not completed, and at least winners_per_period members
        must remain eligible. The cycle update, member moves and winner rows
        are written in one transaction. The announcement goes out after commit
        and can never fail the draw.

        Args:
            as_of: date the caller considers "now" (defaults to today)
            rng: Override the random source for this draw

        Returns:
            DrawResult: Updated cycle, winning members and winner records

        Raises:
            DisabledSystemError, CycleAlreadyCompletedError,
            InsufficientEligiblePoolError, PersistenceError
        """
        as_of = today(as_of)
        settings = self.settings.get_settings()
        if not settings.active:
            raise DisabledSystemError()

        current = self.cycles.get_current_cycle(as_of)
        cycle, winners, members = self._record_draw(current.id, settings.winners_per_period, rng or self.rng)

        result = DrawResult(cycle=cycle, new_winners=members, winners=winners)
        result.notified = self._announce(cycle, winners)
        return result

    @db_error_handler
    def _record_draw(self, cycle_id, winners_per_period, rng):
        with self.engine.begin() as conn:
            cycle = fetch_cycle_by_id(conn, cycle_id)
            if cycle.is_completed:
                raise CycleAlreadyCompletedError(cycle.year, cycle.month)

            remaining = cycle.remaining_eligible
            if len(remaining) < winners_per_period:
                raise InsufficientEligiblePoolError(winners_per_period, len(remaining))

            shuffled = list(remaining)
            rng.shuffle(shuffled)
            winner_ids = shuffled[:winners_per_period]

            logger.info(f"🎲 Drawing raffle for {cycle.year}-{cycle.month:02d} (cycle #{cycle.id})")
            logger.info(f"   Eligible: {len(remaining)}")
            logger.info(f"   Already drawn this quarter: {len(cycle.drawn_users)}")
            logger.info(f"   Winners to draw: {winners_per_period}")

            drawn_count = len(cycle.drawn_users) + len(winner_ids)
            winners_count = cycle.winners_count + len(winner_ids)
            is_completed = is_cycle_complete(winners_count, drawn_count, cycle.pool_size, winners_per_period)
            drawing_date = db_timestamp(utcnow())

            updated = conn.execute(text("""
                UPDATE raffle_cycles
                SET winners_count = :winners_count,
                    is_completed = :is_completed,
                    drawing_date = :drawing_date,
                    updated_at = :drawing_date
                WHERE id = :cycle_id
                  AND winners_count = :expected_count
                  AND is_completed = :not_completed
            """), {
                'winners_count': winners_count,
                'is_completed': is_completed,
                'drawing_date': drawing_date,
                'cycle_id': cycle.id,
                'expected_count': cycle.winners_count,
                'not_completed': False,
            })
            if updated.rowcount != 1:
                raise ConcurrentDrawError(cycle.id)

            last_seq = conn.execute(text("""
                SELECT COALESCE(MAX(seq), 0)
                FROM raffle_cycle_members
                WHERE cycle_id = :cycle_id AND status = :status
            """), {'cycle_id': cycle.id, 'status': MEMBER_DRAWN}).scalar()

            conn.execute(text("""
                UPDATE raffle_cycle_members
                SET status = :status, seq = :seq
                WHERE cycle_id = :cycle_id AND user_id = :user_id
            """), [
                {'status': MEMBER_DRAWN, 'seq': seq, 'cycle_id': cycle.id, 'user_id': user_id}
                for seq, user_id in enumerate(winner_ids, start=last_seq + 1)
            ])

            winners = self._insert_winners(conn, cycle, winner_ids)

            directory = fetch_members(conn, winner_ids)
            members = [directory.get(user_id) or Member(id=user_id, name=user_id) for user_id in winner_ids]
            for winner in winners:
                winner.user = directory.get(winner.user_id)

            cycle = fetch_cycle_by_id(conn, cycle.id)

        names = ", ".join(f"#{w.position} {w.user.name if w.user else w.user_id}" for w in winners)
        logger.info(f"🎉 Winners: {names}")
        if cycle.is_completed:
            logger.info(f"🏁 Raffle cycle #{cycle.id} completed ({cycle.winners_count} winners)")

        return cycle, winners, members

    def _insert_winners(self, conn, cycle: RaffleCycle, winner_ids) -> List[RaffleWinner]:
        raffle_period = raffle_period_date(cycle.year, cycle.month)

        # Positions stay dense across repeat draws in the same month
        offset = conn.execute(text("""
            SELECT COALESCE(MAX(position), 0)
            FROM raffle_winners
            WHERE raffle_period = :raffle_period
        """), {'raffle_period': raffle_period.isoformat()}).scalar()

        now = db_timestamp(utcnow())
        winners = []
        for pick, user_id in enumerate(winner_ids):
            position = offset + pick + 1
            amount = prize_for_pick(pick)
            winner_id = conn.execute(text("""
                INSERT INTO raffle_winners
                    (raffle_period, user_id, position, amount, payment_status, created_at, updated_at)
                VALUES
                    (:raffle_period, :user_id, :position, :amount, :payment_status, :now, :now)
                RETURNING id
            """), {
                'raffle_period': raffle_period.isoformat(),
                'user_id': user_id,
                'position': position,
                'amount': str(amount),
                'payment_status': PAYMENT_PENDING,
                'now': now,
            }).scalar()

            winners.append(RaffleWinner(
                id=winner_id,
                raffle_period=raffle_period,
                user_id=user_id,
                position=position,
                amount=amount,
                payment_status=PAYMENT_PENDING,
            ))
        return winners

    def _announce(self, cycle: RaffleCycle, winners: List[RaffleWinner]) -> bool:
        """Tell every active member who won. Failures are logged, never raised."""
        if self.notifier is None:
            logger.debug("No notifier configured, skipping winners announcement")
            return False

        try:
            recipients = self.directory.list_active_users()
            delivered = self.notifier.send_winners_announcement(
                recipients,
                month_name(cycle.month),
                cycle.year,
                [
                    {'name': winner.user.name if winner.user else winner.user_id, 'position': winner.position}
                    for winner in winners
                ],
            )
        except Exception as e:
            log_error(logger, NotificationError(str(e)), f"Failed to announce winners for cycle #{cycle.id}")
            return False

        if not delivered:
            logger.warning(f"Winners announcement for cycle #{cycle.id} was not delivered")
        return bool(delivered)
