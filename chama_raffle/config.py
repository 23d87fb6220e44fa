"""
Raffle Engine Configuration
All configurable parameters for the monthly raffle cycle engine
"""

import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///chama_raffle.db")

# Heroku/Railway style URLs use the legacy scheme
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# Default settings row (created lazily on first read)
DEFAULT_WINNERS_PER_PERIOD = int(os.getenv("DEFAULT_WINNERS_PER_PERIOD", "2"))
DEFAULT_RAFFLE_ACTIVE = os.getenv("DEFAULT_RAFFLE_ACTIVE", "true").lower() in ("1", "true", "yes", "on")

# Cycle layout
# NOTE: a "quarter" here is 4 months (Jan-Apr, May-Aug, Sep-Dec), not a calendar quarter
MONTHS_PER_QUARTER = 4
DRAWS_PER_QUARTER = 4  # Quota multiplier: winners_per_period * DRAWS_PER_QUARTER

# Payouts
RAFFLE_FIRST_PRIZE = Decimal(os.getenv("RAFFLE_FIRST_PRIZE", "100.00"))
RAFFLE_PRIZE_AMOUNT = Decimal(os.getenv("RAFFLE_PRIZE_AMOUNT", "50.00"))

# Notifications
REDIS_URL = os.getenv("REDIS_URL")
RAFFLE_NOTIFY_CHANNEL = os.getenv("RAFFLE_NOTIFY_CHANNEL", "raffle:winners")

# Roles allowed to change settings, draw and confirm payments
RAFFLE_ADMIN_ROLES = [
    role.strip().lower()
    for role in os.getenv("RAFFLE_ADMIN_ROLES", "treasurer,super-admin,admin").split(",")
    if role.strip()
]

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE")
