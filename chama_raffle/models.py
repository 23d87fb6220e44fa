"""
Raffle Data Shapes
Plain dataclasses for settings, cycles, winners and members
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .periods import raffle_period_date

PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_PAID)

MEMBER_ELIGIBLE = "eligible"
MEMBER_DRAWN = "drawn"

CYCLE_SEEDED = "seeded"
CYCLE_ACTIVE = "active"
CYCLE_COMPLETED = "completed"


def as_datetime(value) -> Optional[datetime]:
    """SQLite hands timestamps back as strings, PostgreSQL as datetimes"""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def as_date(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value)).quantize(Decimal("0.01"))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def db_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Bind timestamps as ISO strings so SQLite and PostgreSQL agree"""
    return value.isoformat() if value is not None else None


def _iso(value):
    return value.isoformat() if value is not None else None


@dataclass
class Member:
    """A chama member as seen by the raffle (read-only directory entry)"""
    id: str
    name: str
    email: str = ""
    phone: str = ""
    avatar_url: Optional[str] = None
    role: str = "member"
    status: str = "active"

    def __post_init__(self):
        if not self.id:
            raise ValueError("member id cannot be empty")
        self.id = str(self.id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Member":
        return cls(
            id=data.get("id"),
            name=data.get("name") or "",
            email=data.get("email") or "",
            phone=data.get("phone") or "",
            avatar_url=data.get("avatar_url"),
            role=data.get("role") or "member",
            status=data.get("status") or "active",
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "avatar_url": self.avatar_url,
            "role": self.role,
        }


@dataclass
class RaffleSettings:
    id: int
    winners_per_period: int
    active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "winners_per_period": self.winners_per_period,
            "active": self.active,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class RaffleCycle:
    """
    One (year, month) drawing period inside a 4-month quarter

    eligible_users and drawn_users are ordered member ids and never overlap.
    Together they make up the quarter's pool as carried into this month.
    """
    id: int
    year: int
    month: int  # 0-indexed
    eligible_users: List[str] = field(default_factory=list)
    drawn_users: List[str] = field(default_factory=list)
    winners_count: int = 0
    is_completed: bool = False
    drawing_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def pool_size(self) -> int:
        return len(self.eligible_users) + len(self.drawn_users)

    @property
    def remaining_eligible(self) -> List[str]:
        drawn = set(self.drawn_users)
        return [user_id for user_id in self.eligible_users if user_id not in drawn]

    @property
    def raffle_period(self) -> date:
        return raffle_period_date(self.year, self.month)

    @property
    def state(self) -> str:
        if self.is_completed:
            return CYCLE_COMPLETED
        if self.winners_count > 0:
            return CYCLE_ACTIVE
        return CYCLE_SEEDED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "year": self.year,
            "month": self.month,
            "raffle_period": self.raffle_period.isoformat(),
            "eligible_users": list(self.eligible_users),
            "drawn_users": list(self.drawn_users),
            "winners_count": self.winners_count,
            "is_completed": self.is_completed,
            "state": self.state,
            "drawing_date": _iso(self.drawing_date),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class RaffleWinner:
    id: int
    raffle_period: date
    user_id: str
    position: int
    amount: Decimal
    payment_status: str = PAYMENT_PENDING
    payment_date: Optional[datetime] = None
    user: Optional[Member] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "raffle_period": self.raffle_period.isoformat(),
            "user_id": self.user_id,
            "position": self.position,
            "amount": str(self.amount),
            "payment_status": self.payment_status,
            "payment_date": _iso(self.payment_date),
            "user": self.user.to_dict() if self.user else None,
        }


@dataclass
class DrawResult:
    cycle: RaffleCycle
    new_winners: List[Member]
    winners: List[RaffleWinner] = field(default_factory=list)
    notified: bool = False

    def to_dict(self) -> dict:
        return {
            "cycle": self.cycle.to_dict(),
            "new_winners": [member.to_dict() for member in self.new_winners],
            "winners": [winner.to_dict() for winner in self.winners],
            "notified": self.notified,
        }


@dataclass
class WinnersResult:
    cycle: Optional[RaffleCycle]
    winners: List[RaffleWinner] = field(default_factory=list)
    message: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "cycle": self.cycle.to_dict() if self.cycle else None,
            "winners": [winner.to_dict() for winner in self.winners],
        }
        if self.message:
            data["message"] = self.message
        return data
