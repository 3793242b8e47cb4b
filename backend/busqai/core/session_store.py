"""
Persistence of the authentication session.

WHAT: Save, load and clear the signed-in user's token
WHY: Only the session token outlives the process
HOW: Single StoredSession row in the local SQLite store
"""

from datetime import datetime

from .database import get_db
from .models import StoredSession
from ..dataservice.types import AuthSession
from ..utils.logger import get_logger

logger = get_logger(__name__)


class SessionTokenStore:
    """Local store for the one active AuthSession."""
    
    def save(self, session: AuthSession) -> None:
        """Overwrite the stored session."""
        with get_db() as db:
            row = db.get(StoredSession, 1)
            if row is None:
                row = StoredSession(id=1)
                db.add(row)
            row.user_id = session.user_id
            row.access_token = session.access_token
            row.refresh_token = session.refresh_token
            row.phone = session.phone
            row.saved_at = datetime.utcnow()
        logger.info(f"Stored session for user {session.user_id}")
    
    def load(self) -> AuthSession | None:
        """Return the stored session, if any."""
        with get_db() as db:
            row = db.get(StoredSession, 1)
            if row is None:
                return None
            return AuthSession(
                user_id=row.user_id,
                access_token=row.access_token,
                phone=row.phone,
                refresh_token=row.refresh_token,
            )
    
    def clear(self) -> None:
        """Forget the stored session."""
        with get_db() as db:
            db.query(StoredSession).delete()
        logger.info("Stored session cleared")
