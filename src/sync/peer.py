"""
Peer synchronization protocol
----

Every message is bound to the hash chain: it carries the hash the sender was at before it (`state_hash`)
and the hash the sender is at after it (`new_state_hash`).

* MOVE messages: new_state_hash is the hash of the authoritative game state after the move.
* all other messages: new_state_hash is the hash of `sender:recipient:payload`.

The receiver checks both ends of the link. A broken link is a desync, recovered from with a resync
(full snapshot of the game), never by retrying the message.

Host and client share one state record; the role only selects entries of a dispatch table.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Self

from pydantic import ValidationError

from src.api.models import MovePayload, PeerMessage
from src.core.exceptions import (
    DesyncError,
    GameError,
    GameStateError,
    ProtocolError,
    RejectedMoveError,
)
from src.core.hashing import Crypto, get_hash
from src.core.models import SessionModel
from src.core.shared_types import PeerCommand, PeerRole
from src.morris.game import NinePeersMorris
from src.morris.moves import Move
from src.morris.pieces import Player

logger = logging.getLogger(__name__)

# May arrive without a prior hash, as long as no turn has been recorded yet
HANDSHAKE_COMMANDS = frozenset({PeerCommand.HELO, PeerCommand.EHLO})
# Used to repair a broken chain, so they cannot depend on the chain being intact
RECOVERY_COMMANDS = frozenset(
    {PeerCommand.HASH_MISMATCH, PeerCommand.RESYNC_REQUEST, PeerCommand.RESYNC_RESPONSE}
)
# new_state_hash is the hash of the game state, not of the payload
STATE_BOUND_COMMANDS = frozenset({PeerCommand.MOVE})


@dataclass
class PeerState:
    me: str
    role: PeerRole
    crypto: Crypto
    them: Optional[str] = None
    game: Optional[NinePeersMorris] = None
    last_state_hash: Optional[str] = None
    is_connected: bool = False
    blocked: bool = field(default=False, repr=False)

    @property
    def behaviour(self) -> "RoleBehaviour":
        return ROLE_BEHAVIOUR[self.role]

    # --- GAME LIFECYCLE ---
    def start_game(self) -> NinePeersMorris:
        """Both sides build the same game: the host's player is the initiator and moves first."""
        if self.them is None:
            raise ProtocolError("Cannot start a game without an opponent.")
        behaviour = self.behaviour
        me = Player(self.me, behaviour.my_name, is_initiator=behaviour.is_initiator)
        them = Player(self.them, behaviour.their_name, is_initiator=not behaviour.is_initiator)
        self.game = NinePeersMorris(me, them, self.crypto)
        logger.info("Game started between %s (%s) and %s", self.me, self.role, self.them)
        return self.game

    def play(self, cell_id: int) -> Optional[PeerMessage]:
        """Local click. Returns the MOVE message to send when the click executed a move."""
        game = self._require_game()
        move = game.handle_cell_click(cell_id)
        if move is None:
            return None
        return self.send_move(move)

    def send_move(self, move: Move) -> PeerMessage:
        return self.prepare_message(PeerCommand.MOVE, MovePayload.from_move(move).to_json())

    def game_over_message(self) -> Optional[PeerMessage]:
        game = self._require_game()
        if game.winner is None:
            return None
        return self.prepare_message(PeerCommand.GAME_OVER, game.winner.id)

    # --- CONNECTION ---
    def mark_disconnected(self) -> None:
        self.is_connected = False

    def mark_reconnected(self) -> Optional[PeerMessage]:
        """
        Back online: when a game is going on, we may have missed messages, so the client asks for the full state.
        (The host's game is the authoritative one, it waits to be asked.)
        """
        self.is_connected = True
        if self.game is None or not self.behaviour.resync_on_reconnect:
            return None
        return self.request_resync()

    def request_resync(self) -> PeerMessage:
        return self.prepare_message(PeerCommand.RESYNC_REQUEST, self.me)

    # --- PROTOCOL ---
    def prepare_message(self, command: PeerCommand, payload: str = "") -> PeerMessage:
        """
        Outbound
        ----

        The chain is advanced before the message even leaves: a message never references a stale prior hash.
        """
        prior = self.last_state_hash
        if command in STATE_BOUND_COMMANDS:
            new_state_hash = self._require_game().state_hash()
        else:
            new_state_hash = self._fingerprint(self.me, self._require_them(), payload)
        self.last_state_hash = new_state_hash
        return PeerMessage(
            command=command,
            state_hash=prior,
            new_state_hash=new_state_hash,
            data=payload,
        )

    def handle_message(self, message: PeerMessage) -> Optional[PeerMessage]:
        """
        Inbound
        ----

        ----
        1. the prior hash must be our last hash (handshake / recovery exceptions aside)
        2. MOVE: replay the move, then recompute our hash from our own state and compare to the claimed one
        3. other: recompute the fingerprint of the payload (bound to us as recipient) and compare

        Returns the reply to send back, if any. Raises ProtocolError (DesyncError / RejectedMoveError) otherwise.
        """
        self._check_prior_hash(message)

        if message.command in STATE_BOUND_COMMANDS:
            self._handle_move(message)
            return None

        expected = self._fingerprint(self._require_them(), self.me, message.data)
        if message.new_state_hash != expected:
            raise DesyncError(
                f"Fingerprint mismatch on {message.command}: got {message.new_state_hash}, expected {expected}."
            )
        self.last_state_hash = expected

        handler = self.behaviour.replies.get(message.command) or SHARED_REPLIES.get(
            message.command
        )
        if handler is None:
            logger.debug("No reply needed for %s", message.command)
            return None
        return handler(self, message)

    # --- SESSION RECORD ---
    def to_session_model(self, timestamp_millis: int) -> SessionModel:
        return SessionModel(
            game_state=self.game.dehydrate() if self.game else None,
            opponent_id=self.them,
            my_peer_id=self.me,
            role=str(self.role),
            last_state_hash=self.last_state_hash,
            timestamp_millis=timestamp_millis,
            is_connected=self.is_connected,
        )

    @classmethod
    def from_session_model(cls, model: SessionModel, crypto: Crypto) -> Self:
        game = (
            NinePeersMorris.rehydrate(model.game_state, crypto, model.my_peer_id)
            if model.game_state
            else None
        )
        return cls(
            me=model.my_peer_id,
            role=PeerRole(model.role),
            crypto=crypto,
            them=model.opponent_id,
            game=game,
            last_state_hash=model.last_state_hash,
            is_connected=model.is_connected,
        )

    # -- PRIVATE HELPERS ---
    def _fingerprint(self, sender: str, recipient: str, payload: str) -> str:
        return get_hash(self.crypto, f"{sender}:{recipient}:{payload}")

    def _require_game(self) -> NinePeersMorris:
        if self.game is None:
            raise GameStateError("No game in progress.")
        return self.game

    def _require_them(self) -> str:
        if self.them is None:
            raise ProtocolError("Not connected to a peer.")
        return self.them

    def _ledger_is_empty(self) -> bool:
        return self.game is None or not self.game.state_hashes

    def _check_prior_hash(self, message: PeerMessage) -> None:
        if message.state_hash == self.last_state_hash:
            return
        if message.command in RECOVERY_COMMANDS:
            logger.info("Accepting %s on a broken chain", message.command)
            return
        if (
            message.command in HANDSHAKE_COMMANDS
            and message.state_hash is None
            and self._ledger_is_empty()
        ):
            return
        raise DesyncError(
            f"Prior hash mismatch on {message.command}: got {message.state_hash}, expected {self.last_state_hash}."
        )

    def _handle_move(self, message: PeerMessage) -> None:
        game = self.game
        if game is None:
            raise ProtocolError("Received a move without a game in progress.")
        try:
            payload = MovePayload.model_validate_json(message.data)
        except ValidationError as exc:
            raise RejectedMoveError(f"Unparsable move: {message.data!r}") from exc

        if not game.apply_move(payload.to_move()):
            raise RejectedMoveError(f"Move rejected: {message.data}")

        # our own state is the source of truth, the claimed hash is only compared against it
        local_hash = game.state_hash()
        self.last_state_hash = local_hash
        if message.new_state_hash != local_hash:
            raise DesyncError(
                f"Peer claims state {message.new_state_hash} after move, local state is {local_hash}."
            )


# --- REPLY HANDLERS ---
ReplyHandler = Callable[[PeerState, PeerMessage], Optional[PeerMessage]]


def _greet_back(state: PeerState, message: PeerMessage) -> Optional[PeerMessage]:
    return state.prepare_message(PeerCommand.EHLO, state.me)


def _ask_to_play(state: PeerState, message: PeerMessage) -> Optional[PeerMessage]:
    return state.prepare_message(PeerCommand.PLAY_WITH_ME, state.me)


def _accept_game(state: PeerState, message: PeerMessage) -> Optional[PeerMessage]:
    if state.blocked:
        return state.prepare_message(PeerCommand.I_WONT_PLAY_WITH_YOU, state.me)
    state.start_game()
    return state.prepare_message(PeerCommand.I_WILL_PLAY_WITH_YOU, state.me)


def _join_game(state: PeerState, message: PeerMessage) -> Optional[PeerMessage]:
    state.start_game()
    return None


def _push_state(state: PeerState, message: PeerMessage) -> Optional[PeerMessage]:
    """The host's game is authoritative: answer a mismatch with the full state."""
    if state.game is None:
        return None
    return state.prepare_message(PeerCommand.RESYNC_RESPONSE, state.game.to_json())


def _ask_for_state(state: PeerState, message: PeerMessage) -> Optional[PeerMessage]:
    if state.game is None:
        return None
    return state.request_resync()


def _load_state(state: PeerState, message: PeerMessage) -> Optional[PeerMessage]:
    """Replace the game wholesale with the received snapshot."""
    try:
        snapshot = json.loads(message.data)
        game = NinePeersMorris.rehydrate(snapshot, state.crypto, state.me)
    except (json.JSONDecodeError, GameError) as exc:
        raise ProtocolError("Resync payload is not a valid game snapshot.") from exc
    state.game = game
    logger.info("Resynced to turn %s", state.game.turn)
    return None


def _confirm_game_over(state: PeerState, message: PeerMessage) -> Optional[PeerMessage]:
    game = state.game
    winner_id = game.winner.id if game and game.winner else None
    if winner_id != message.data:
        raise DesyncError(
            f"Peer says {message.data!r} won, local game says {winner_id!r}."
        )
    logger.info("Game over, winner: %s", winner_id)
    return None


def _end_session(state: PeerState, message: PeerMessage) -> Optional[PeerMessage]:
    logger.info("Peer %s declined: %s", state.them, message.command)
    state.game = None
    return None


@dataclass(frozen=True)
class RoleBehaviour:
    is_initiator: bool
    my_name: str
    their_name: str
    replies: dict[PeerCommand, ReplyHandler]
    # only the side whose state may be stale asks for a snapshot when the link comes back
    resync_on_reconnect: bool = False


ROLE_BEHAVIOUR: dict[PeerRole, RoleBehaviour] = {
    PeerRole.HOST: RoleBehaviour(
        is_initiator=True,
        my_name="X",
        their_name="O",
        replies={
            PeerCommand.HELO: _greet_back,
            PeerCommand.PLAY_WITH_ME: _accept_game,
            PeerCommand.HASH_MISMATCH: _push_state,
        },
    ),
    PeerRole.CLIENT: RoleBehaviour(
        is_initiator=False,
        my_name="O",
        their_name="X",
        replies={
            PeerCommand.EHLO: _ask_to_play,
            PeerCommand.I_WILL_PLAY_WITH_YOU: _join_game,
            PeerCommand.HASH_MISMATCH: _ask_for_state,
        },
        resync_on_reconnect=True,
    ),
}

SHARED_REPLIES: dict[PeerCommand, ReplyHandler] = {
    PeerCommand.RESYNC_REQUEST: _push_state,
    PeerCommand.RESYNC_RESPONSE: _load_state,
    PeerCommand.GAME_OVER: _confirm_game_over,
    PeerCommand.I_WONT_PLAY_WITH_YOU: _end_session,
    PeerCommand.PEER_BLOCKED: _end_session,
}
