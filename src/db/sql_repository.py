"""Implementation of (Session)Repository using SQLAlchemy"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.core.models import PeerId, SessionModel
from src.db.schema import DBSession


class SQLSessionRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_session(self, peer_id: PeerId) -> SessionModel | None:
        """Get the session stored for this peer, if record exists."""
        session_db = self._fetch_session(peer_id)
        if session_db:
            return self._to_model(session_db)
        return None

    def save_session(self, session: SessionModel) -> SessionModel:
        """Insert a new record, or overwrite the existing one for the same peer."""
        session_db = self._fetch_session(session.my_peer_id)
        if session_db is None:
            session_db = DBSession(my_peer_id=session.my_peer_id)
            self.db.add(session_db)

        session_db.opponent_id = session.opponent_id
        session_db.role = session.role
        session_db.game_state = session.game_state
        session_db.last_state_hash = session.last_state_hash
        session_db.timestamp_millis = session.timestamp_millis
        session_db.is_connected = session.is_connected
        self.db.commit()
        self.db.refresh(session_db)
        return self._to_model(session_db)

    def delete_session(self, peer_id: PeerId) -> SessionModel | None:
        """Remove a peer's session record."""
        session_db = self._fetch_session(peer_id)
        if not session_db:
            return None
        session_model = self._to_model(session_db)
        self.db.delete(session_db)
        self.db.commit()
        return session_model

    def _fetch_session(self, peer_id: PeerId) -> DBSession | None:
        query = select(DBSession).where(DBSession.my_peer_id == peer_id)
        return self.db.scalar(query)

    def _to_model(self, session_db: DBSession) -> SessionModel:
        """Convert SQLAlchemy model to data transfer model."""
        return SessionModel(
            game_state=session_db.game_state,
            opponent_id=session_db.opponent_id,
            my_peer_id=session_db.my_peer_id,
            role=session_db.role,
            last_state_hash=session_db.last_state_hash,
            timestamp_millis=session_db.timestamp_millis,
            is_connected=session_db.is_connected,
        )
