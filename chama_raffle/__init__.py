"""
Chama Raffle Package
Monthly raffle cycles over 4-month quarters for a savings-and-loan group
"""

__version__ = "1.0.0"

# Export main components
from .cycles import CycleManager
from .database import get_engine, setup_raffle_database, verify_raffle_schema
from .directory import UserDirectory
from .draw import RaffleDraw
from .engine import RaffleEngine
from .settings import RaffleSettingsManager
from .winners import WinnerManager

__all__ = [
    'CycleManager',
    'RaffleDraw',
    'RaffleEngine',
    'RaffleSettingsManager',
    'UserDirectory',
    'WinnerManager',
    'get_engine',
    'setup_raffle_database',
    'verify_raffle_schema',
]
