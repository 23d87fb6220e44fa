"""
Raffle Engine Errors
Every failure the engine reports to its caller derives from RaffleError
"""

import logging
from functools import wraps

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class RaffleError(Exception):
    """Base class for raffle engine failures"""


class ValidationError(RaffleError, ValueError):
    """Bad input (settings values, payment status, member payloads)"""


class DisabledSystemError(RaffleError):
    """Drawing attempted while the raffle system is switched off"""

    def __init__(self, message="Raffle system is currently disabled"):
        super().__init__(message)


class CycleAlreadyCompletedError(RaffleError):
    """Drawing attempted on a cycle whose quarter is exhausted"""

    def __init__(self, year=None, month=None):
        self.year = year
        self.month = month
        super().__init__("Raffle cycle is already completed")


class InsufficientEligiblePoolError(RaffleError):
    """Fewer eligible members remain than winners are required"""

    def __init__(self, required, available):
        self.required = required
        self.available = available
        super().__init__(
            f"Not enough eligible users for drawing. Need {required} but only have {available}"
        )


class CycleNotFoundError(RaffleError, LookupError):
    """No cycle with the given id"""


class WinnerNotFoundError(RaffleError, LookupError):
    """No winner record with the given id"""


class PersistenceError(RaffleError):
    """Storage failure. Fatal for the current call, never retried by the engine"""


class ConcurrentDrawError(PersistenceError):
    """The cycle changed between reading it and writing the draw"""

    def __init__(self, cycle_id):
        self.cycle_id = cycle_id
        super().__init__(f"Raffle cycle {cycle_id} was modified by a concurrent draw")


class NotificationError(RaffleError):
    """Announcement delivery failed. Logged only, never fails a draw"""


def db_error_handler(func):
    """
    Decorator for database operations

    Storage failures are logged and re-raised as PersistenceError so callers
    only ever see the raffle error hierarchy.

    Usage:
        @db_error_handler
        def get_settings(self):
            # Database operations here
            return settings
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(f"Database error in {func.__name__}: {e}", exc_info=True)
            raise PersistenceError(f"{func.__name__} failed: {e}") from e
    return wrapper
