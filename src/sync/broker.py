"""
Glue between the transport and the protocol.

The transport (an external collaborator) only moves strings between two named peers.
The broker frames / unframes them, feeds them to the PeerState, and sends back whatever the protocol answers.
"""

import logging
from typing import Callable, Optional, Protocol

from src.api.models import PeerMessage
from src.core.exceptions import ProtocolError
from src.core.hashing import Crypto
from src.core.shared_types import PeerCommand
from src.sync.framing import package_peer_message, unpackage_peer_message
from src.sync.peer import PeerState

logger = logging.getLogger(__name__)

DataHandler = Callable[[str, object], None]
ConnectionHandler = Callable[[str], None]


class Transport(Protocol):
    """Just the parts the broker needs. Peers are identified by opaque string ids."""

    def send(self, peer_id: str, data: str) -> None: ...
    def on_data(self, handler: DataHandler) -> None: ...
    def on_connection_open(self, handler: ConnectionHandler) -> None: ...
    def on_connection_close(self, handler: ConnectionHandler) -> None: ...


class PeerBroker:
    """Owns the PeerState of this side of the connection."""

    def __init__(self, transport: Transport, state: PeerState, crypto: Crypto) -> None:
        self.transport = transport
        self.state = state
        self.crypto = crypto
        self.rejected_messages = 0
        transport.on_data(self._on_data)
        transport.on_connection_open(self._on_open)
        transport.on_connection_close(self._on_close)

    @property
    def id(self) -> str:
        return self.state.me

    @property
    def them(self) -> Optional[str]:
        return self.state.them

    def connect(self, peer_id: str) -> None:
        """Start talking to a peer: the client greets first."""
        self.state.them = peer_id
        self.state.is_connected = True
        self.send(self.state.prepare_message(PeerCommand.HELO, self.state.me))

    def play(self, cell_id: int) -> bool:
        """Local click. Sends the move (and a game over notice, when it ended the game)."""
        message = self.state.play(cell_id)
        if message is None:
            return False
        self.send(message)
        game_over = self.state.game_over_message()
        if game_over is not None:
            self.send(game_over)
        return True

    def send(self, message: PeerMessage) -> None:
        peer_id = self.state.them
        if peer_id is None:
            raise ProtocolError("Not connected to a peer.")
        self.transport.send(peer_id, package_peer_message(message, self.id, self.crypto))

    # --- TRANSPORT CALLBACKS ---
    def _on_data(self, sender_id: str, data: object) -> None:
        if self.state.them is None:
            self.state.them = sender_id
        if sender_id != self.state.them:
            logger.warning("Ignoring data from unknown peer %s", sender_id)
            return

        message = unpackage_peer_message(data, sender_id, self.crypto)
        if message is None:
            return

        try:
            reply = self.state.handle_message(message)
        except ProtocolError:
            # recovery is a resync, the same message is never retried
            logger.warning("Protocol error on %s from %s", message.command, sender_id, exc_info=True)
            self.rejected_messages += 1
            self.send(self.state.prepare_message(PeerCommand.HASH_MISMATCH, self.id))
            return

        if reply is not None:
            self.send(reply)

    def _on_open(self, peer_id: str) -> None:
        if self.state.them not in (None, peer_id):
            logger.warning("Connection opened by unexpected peer %s", peer_id)
            return
        self.state.them = peer_id
        reply = self.state.mark_reconnected()
        if reply is not None:
            self.send(reply)

    def _on_close(self, peer_id: str) -> None:
        if peer_id == self.state.them:
            logger.info("Connection to %s closed", peer_id)
            self.state.mark_disconnected()
