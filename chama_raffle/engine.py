"""
Raffle Engine
One object wiring settings, cycles, draws and winners to a single database
"""

import logging
from typing import Iterable, Optional

from sqlalchemy.engine import Engine

from .cycles import CycleManager
from .directory import UserDirectory
from .draw import RaffleDraw
from .models import DrawResult, RaffleCycle, RaffleSettings, WinnersResult
from .settings import RaffleSettingsManager
from .winners import WinnerManager

logger = logging.getLogger(__name__)


class RaffleEngine:
    """
    Entry point used by the admin surface

    Usage:
        engine = RaffleEngine(get_engine(), notifier=RaffleRedisPublisher())
        cycle = engine.get_current_cycle()
        result = engine.draw_winners()
    """

    def __init__(self, db_engine: Engine, directory: Optional[UserDirectory] = None, notifier=None, rng=None):
        self.db_engine = db_engine
        self.directory = directory or UserDirectory(db_engine)
        self.settings = RaffleSettingsManager(db_engine)
        self.cycles = CycleManager(db_engine, self.directory)
        self.winners = WinnerManager(db_engine, self.cycles)
        self.draw = RaffleDraw(
            db_engine,
            settings=self.settings,
            cycles=self.cycles,
            directory=self.directory,
            notifier=notifier,
            rng=rng,
        )
        logger.info(f"🎟️ Raffle engine initialized (notifier: {type(notifier).__name__ if notifier else 'none'})")

    # Settings

    def get_settings(self) -> RaffleSettings:
        return self.settings.get_settings()

    def update_settings(self, winners_per_period, active) -> RaffleSettings:
        return self.settings.update_settings(winners_per_period, active)

    # Cycles

    def get_current_cycle(self, as_of=None) -> RaffleCycle:
        return self.cycles.get_current_cycle(as_of)

    def get_cycle(self, year, month) -> Optional[RaffleCycle]:
        return self.cycles.get_cycle(year, month)

    def add_eligible_users(self, cycle_id, users: Iterable) -> dict:
        return self.cycles.add_eligible_users(cycle_id, users)

    # Draws

    def draw_winners(self, as_of=None, rng=None) -> DrawResult:
        return self.draw.draw_winners(as_of, rng=rng)

    # Winners

    def get_winners(self, year, month) -> WinnersResult:
        return self.winners.get_winners(year, month)

    def get_current_winners(self, as_of=None) -> WinnersResult:
        return self.winners.get_current_winners(as_of)

    def update_winner_payment_status(self, winner_id, status) -> dict:
        return self.winners.update_payment_status(winner_id, status)

    def get_statistics(self, recent_limit=5) -> dict:
        return self.winners.get_statistics(recent_limit)
