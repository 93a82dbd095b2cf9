"""
Session store accessor: the only code that touches users.current_refresh_token.

One refresh token is active per user. Login overwrites it, refresh rotates it
with a compare-and-set, logout clears it.
"""
from __future__ import annotations

import logging
from typing import Optional

from models import storage
from models.user import User

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, db=None):
        self.db = db or storage

    def read(self, principal_id: str) -> Optional[str]:
        """Current refresh token for the principal, or None (also for unknown ids)."""
        session = self.db.get_session()
        row = session.query(User.current_refresh_token).filter(User.id == principal_id).first()
        return row[0] if row else None

    def set(self, principal_id: str, token: str) -> bool:
        """Unconditionally store `token`; used at login."""
        return self.db.update_where(User, principal_id, {"current_refresh_token": token}) == 1

    def compare_and_set(self, principal_id: str, expected: str, new: Optional[str]) -> bool:
        """Replace the stored token only if it still equals `expected`."""
        if expected is None:
            return False
        changed = self.db.update_where(
            User,
            principal_id,
            {"current_refresh_token": new},
            expected={"current_refresh_token": expected},
        )
        return changed == 1

    def clear(self, principal_id: str) -> None:
        self.db.update_where(User, principal_id, {"current_refresh_token": None})


def revoke(store: SessionStore, principal_id: str) -> None:
    """Log a principal out server-side. Idempotent.

    Access tokens already issued stay valid until they expire.
    """
    store.clear(principal_id)
    logger.info("refresh token revoked for user %s", principal_id)
