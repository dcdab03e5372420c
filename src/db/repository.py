"""Protocol repository (the SQL implementation is one option, a browser-like key/value store would be another)"""

from typing import Protocol

from src.core.models import PeerId, SessionModel


class SessionRepository(Protocol):
    """Persistence layer orchestration"""

    def get_session(self, peer_id: PeerId) -> SessionModel | None:
        """Get the session stored for this peer, if record exists."""
        ...

    def save_session(self, session: SessionModel) -> SessionModel:
        """Store the session, replacing whatever was stored for the same peer."""
        ...

    def delete_session(self, peer_id: PeerId) -> SessionModel | None:
        """Remove a peer's session record."""
        ...
