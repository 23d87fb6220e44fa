"""
Member Directory
Read-only view of the portal's users table
"""

import logging
from typing import Dict, Iterable, List

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Engine

from .errors import db_error_handler
from .models import Member

logger = logging.getLogger(__name__)

MEMBER_COLUMNS = "id, name, email, phone, avatar_url, role, status"


def _row_to_member(row) -> Member:
    return Member(
        id=row[0],
        name=row[1] or "",
        email=row[2] or "",
        phone=row[3] or "",
        avatar_url=row[4],
        role=row[5] or "member",
        status=row[6] or "active",
    )


def fetch_members(conn, user_ids) -> Dict[str, Member]:
    """Look up members by id on an open connection"""
    user_ids = [str(user_id) for user_id in user_ids]
    if not user_ids:
        return {}

    query = text(f"""
        SELECT {MEMBER_COLUMNS}
        FROM users
        WHERE id IN :user_ids
    """).bindparams(bindparam('user_ids', expanding=True))

    result = conn.execute(query, {'user_ids': user_ids})
    return {member.id: member for member in map(_row_to_member, result)}


class UserDirectory:
    """Looks up chama members for seeding cycles and announcing winners"""

    def __init__(self, engine: Engine):
        self.engine = engine

    @db_error_handler
    def list_active_users(self) -> List[Member]:
        """
        Get every member whose status is 'active'

        Returns:
            list: Members in join order
        """
        with self.engine.connect() as conn:
            result = conn.execute(text(f"""
                SELECT {MEMBER_COLUMNS}
                FROM users
                WHERE status = 'active'
                ORDER BY created_at, id
            """))
            return [_row_to_member(row) for row in result]

    @db_error_handler
    def get_members(self, user_ids: Iterable[str]) -> Dict[str, Member]:
        """
        Look up members by id (any status)

        Args:
            user_ids: Member ids

        Returns:
            dict: id -> Member for the ids that exist
        """
        with self.engine.connect() as conn:
            return fetch_members(conn, user_ids)
