"""
Raffle Settings Manager
Singleton-ish settings row: winners per draw and the on/off switch
"""

import logging

from sqlalchemy import text
from sqlalchemy.engine import Engine

from .config import DEFAULT_RAFFLE_ACTIVE, DEFAULT_WINNERS_PER_PERIOD
from .errors import ValidationError, db_error_handler
from .models import RaffleSettings, as_datetime, db_timestamp, utcnow

logger = logging.getLogger(__name__)

SETTINGS_COLUMNS = "id, winners_per_period, active, created_at, updated_at"


def _row_to_settings(row) -> RaffleSettings:
    return RaffleSettings(
        id=row[0],
        winners_per_period=row[1],
        active=bool(row[2]),
        created_at=as_datetime(row[3]),
        updated_at=as_datetime(row[4]),
    )


def validate_settings(winners_per_period, active):
    """
    Check settings input before it reaches the database

    Raises:
        ValidationError: winners_per_period is not an int >= 1 or active is not a bool
    """
    if isinstance(winners_per_period, bool) or not isinstance(winners_per_period, int):
        raise ValidationError("winners_per_period must be an integer")
    if winners_per_period < 1:
        raise ValidationError("winners_per_period must be at least 1")
    if not isinstance(active, bool):
        raise ValidationError("active must be true or false")


class RaffleSettingsManager:
    """Reads and updates the raffle settings row"""

    def __init__(self, engine: Engine):
        self.engine = engine

    @db_error_handler
    def get_settings(self) -> RaffleSettings:
        """
        Get the current raffle settings, creating the defaults if none exist

        Returns:
            RaffleSettings: The most recently created settings row
        """
        with self.engine.begin() as conn:
            return self._get_or_create(conn)

    @db_error_handler
    def update_settings(self, winners_per_period, active) -> RaffleSettings:
        """
        Update raffle settings

        Args:
            winners_per_period: Number of winners per monthly draw (>= 1)
            active: Whether drawing is permitted

        Returns:
            RaffleSettings: The updated row
        """
        validate_settings(winners_per_period, active)

        with self.engine.begin() as conn:
            current = self._get_or_create(conn)
            conn.execute(text("""
                UPDATE raffle_settings
                SET winners_per_period = :winners_per_period,
                    active = :active,
                    updated_at = :updated_at
                WHERE id = :id
            """), {
                'winners_per_period': winners_per_period,
                'active': active,
                'updated_at': db_timestamp(utcnow()),
                'id': current.id,
            })
            updated = self._fetch_latest(conn)

        logger.info(
            f"⚙️ Raffle settings updated: winners_per_period={updated.winners_per_period}, "
            f"active={updated.active}"
        )
        return updated

    def _fetch_latest(self, conn):
        row = conn.execute(text(f"""
            SELECT {SETTINGS_COLUMNS}
            FROM raffle_settings
            ORDER BY created_at DESC, id DESC
            LIMIT 1
        """)).fetchone()
        return _row_to_settings(row) if row else None

    def _get_or_create(self, conn) -> RaffleSettings:
        settings = self._fetch_latest(conn)
        if settings:
            return settings

        now = db_timestamp(utcnow())
        row = conn.execute(text(f"""
            INSERT INTO raffle_settings (winners_per_period, active, created_at, updated_at)
            VALUES (:winners_per_period, :active, :now, :now)
            RETURNING {SETTINGS_COLUMNS}
        """), {
            'winners_per_period': DEFAULT_WINNERS_PER_PERIOD,
            'active': DEFAULT_RAFFLE_ACTIVE,
            'now': now,
        }).fetchone()

        logger.info(
            f"Created default raffle settings (winners_per_period={DEFAULT_WINNERS_PER_PERIOD}, "
            f"active={DEFAULT_RAFFLE_ACTIVE})"
        )
        return _row_to_settings(row)
