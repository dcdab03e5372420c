"""Orchestration between the sync layer (live PeerState) and the persistence layer (stored SessionModel)."""

import json
import logging
import time
from typing import Optional

from pydantic import ValidationError

from src.api.models import SessionRecord
from src.core.config import SESSION_EXPIRY_MS
from src.core.exceptions import GameStateError, RepositoryError
from src.core.hashing import Crypto
from src.core.models import PeerId, SessionModel
from src.db.repository import SessionRepository
from src.sync.peer import PeerState

logger = logging.getLogger(__name__)


def now_millis() -> int:
    return int(time.time() * 1000)


class SessionService:
    """Save / restore / expire the session of the local peer."""

    def __init__(
        self,
        repository: SessionRepository,
        crypto: Crypto,
        expiry_ms: int = SESSION_EXPIRY_MS,
    ) -> None:
        self.repo = repository
        self.crypto = crypto
        self.expiry_ms = expiry_ms

    def save(self, state: PeerState, timestamp_millis: Optional[int] = None) -> SessionModel:
        """Snapshot the live state (game included) and store it."""
        stamp = now_millis() if timestamp_millis is None else timestamp_millis
        stored = self.repo.save_session(state.to_session_model(stamp))
        logger.debug("Saved session of %s at %s", state.me, stamp)
        return stored

    def restore(self, peer_id: PeerId, now: Optional[int] = None) -> Optional[PeerState]:
        """
        Resume a stored session
        ----

        Returns None when nothing is stored, or when the stored session is too old to resume (it gets cleared then).
        The restored state is marked disconnected: the transport reports when the link is actually back.
        """
        model = self.repo.get_session(peer_id)
        if model is None:
            return None

        if self.is_expired(model, now):
            logger.info("Session of %s expired, clearing it", peer_id)
            self.repo.delete_session(peer_id)
            return None

        try:
            state = PeerState.from_session_model(model, self.crypto)
        except (GameStateError, ValueError) as exc:
            # ValueError: a role this version does not know
            raise RepositoryError(f"Stored session of {peer_id=} is corrupted.") from exc
        state.is_connected = False
        return state

    def is_expired(self, model: SessionModel, now: Optional[int] = None) -> bool:
        current = now_millis() if now is None else now
        return current - model.timestamp_millis > self.expiry_ms

    def clear(self, peer_id: PeerId) -> None:
        self.repo.delete_session(peer_id)

    def mark_connection(self, peer_id: PeerId, is_connected: bool) -> SessionModel:
        model = self._fetch_session(peer_id)
        model.is_connected = is_connected
        return self.repo.save_session(model)

    # --- EXTERNAL STORAGE ---
    def export_record(self, peer_id: PeerId) -> str:
        """The stored session as JSON, with the field names external storage expects."""
        record = SessionRecord.from_model(self._fetch_session(peer_id))
        return record.model_dump_json(by_alias=True)

    def import_record(self, raw: str) -> SessionModel:
        try:
            record = SessionRecord.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise RepositoryError("Not a valid session record.") from exc
        return self.repo.save_session(record.to_model())

    # -- Internal helpers --
    def _fetch_session(self, peer_id: PeerId) -> SessionModel:
        """Attempt to find the session in the repository and raise error if it fails."""
        model = self.repo.get_session(peer_id)
        if model is None:
            raise RepositoryError(f"Session with {peer_id=} not found.")
        return model
