"""
Boundary layer data model(s).

The session record is what gets persisted between page loads / reconnects.
The sync layer produces it, the DB layer stores it, and the Service moves it between the two.
(Decouples the storage schema from the in-memory PeerState.)
"""

from dataclasses import dataclass
from typing import Any, Optional

# Type aliases to make SessionModel easier to read
PeerId = str
GameSnapshot = dict[str, Any]


@dataclass
class SessionModel:
    """Transport-safe representation of a peer session used between Sync, Service, and DB layers."""

    game_state: Optional[GameSnapshot]
    opponent_id: Optional[PeerId]
    my_peer_id: PeerId
    role: str
    last_state_hash: Optional[str]
    timestamp_millis: int
    is_connected: bool
