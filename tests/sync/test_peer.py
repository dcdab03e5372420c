"""Unit tests for src/sync/peer.py"""

import pytest

from src.api.models import PeerMessage
from src.core.exceptions import (
    DesyncError,
    InvalidMoveError,
    ProtocolError,
    RejectedMoveError,
)
from src.core.hashing import Sha256Crypto
from src.core.shared_types import GamePhase, PeerCommand, PeerRole
from src.sync.peer import PeerState

HOST = "host-peer"
CLIENT = "client-peer"


def exchange(sender: PeerState, receiver: PeerState, message: PeerMessage) -> None:
    """Deliver a message, and keep delivering replies until the conversation stops."""
    while message is not None:
        reply = receiver.handle_message(message)
        sender, receiver, message = receiver, sender, reply


@pytest.fixture
def host() -> PeerState:
    return PeerState(HOST, PeerRole.HOST, Sha256Crypto(), them=CLIENT, is_connected=True)


@pytest.fixture
def client() -> PeerState:
    return PeerState(CLIENT, PeerRole.CLIENT, Sha256Crypto(), them=HOST, is_connected=True)


@pytest.fixture
def peers(host: PeerState, client: PeerState) -> tuple[PeerState, PeerState]:
    """Handshake done, game started on both sides."""
    exchange(client, host, client.prepare_message(PeerCommand.HELO, CLIENT))
    return host, client


# -- Handshake --
def test_handshake_starts_the_game(peers: tuple[PeerState, PeerState]) -> None:
    host, client = peers
    assert host.game is not None
    assert client.game is not None
    assert host.last_state_hash == client.last_state_hash
    assert host.game.state_hash() == client.game.state_hash()
    assert host.game.is_my_turn()
    assert not client.game.is_my_turn()
    assert host.game.local_player.name == "X"
    assert client.game.local_player.name == "O"


def test_first_greeting_has_no_prior_hash(client: PeerState) -> None:
    message = client.prepare_message(PeerCommand.HELO, CLIENT)
    assert message.state_hash is None
    assert client.last_state_hash == message.new_state_hash


def test_greeting_fingerprint_is_bound_to_recipient(host: PeerState, client: PeerState) -> None:
    """A greeting meant for another peer does not verify."""
    stranger = PeerState(CLIENT, PeerRole.CLIENT, Sha256Crypto(), them="someone-else")
    message = stranger.prepare_message(PeerCommand.HELO, CLIENT)
    with pytest.raises(DesyncError):
        host.handle_message(message)


def test_blocked_host_declines(host: PeerState, client: PeerState) -> None:
    host.blocked = True
    exchange(client, host, client.prepare_message(PeerCommand.HELO, CLIENT))
    assert host.game is None
    assert client.game is None


@pytest.mark.parametrize("command", [PeerCommand.HELO, PeerCommand.EHLO])
def test_greeting_without_prior_hash_before_first_turn(
    peers: tuple[PeerState, PeerState], command: PeerCommand
) -> None:
    """Either side may greet again from scratch while no turn has been played."""
    host, client = peers
    greeting = client.prepare_message(command, CLIENT).model_copy(update={"state_hash": None})
    host.handle_message(greeting)


def test_greeting_without_prior_hash_after_first_turn(peers: tuple[PeerState, PeerState]) -> None:
    host, client = peers
    exchange(host, client, host.play(0))
    greeting = client.prepare_message(PeerCommand.HELO, CLIENT).model_copy(
        update={"state_hash": None}
    )
    with pytest.raises(DesyncError):
        host.handle_message(greeting)


# -- Moves --
def test_moves_keep_the_chain_intact(peers: tuple[PeerState, PeerState]) -> None:
    host, client = peers
    for host_cell, client_cell in [(0, 3), (1, 4)]:
        move = host.play(host_cell)
        assert move is not None
        assert move.command == PeerCommand.MOVE
        assert move.new_state_hash == host.game.state_hash()
        exchange(host, client, move)
        exchange(client, host, client.play(client_cell))

    assert host.last_state_hash == client.last_state_hash == host.game.state_hash()
    assert host.game.state_hashes == client.game.state_hashes


def test_move_is_chained_to_previous_message(peers: tuple[PeerState, PeerState]) -> None:
    host, client = peers
    before = host.last_state_hash
    move = host.play(0)
    assert move is not None
    assert move.state_hash == before


def test_click_that_does_not_move_sends_nothing(peers: tuple[PeerState, PeerState]) -> None:
    host, client = peers
    # not the client's turn
    assert client.play(0) is None
    # no such cell on the board
    with pytest.raises(InvalidMoveError):
        host.play(99)


def test_prior_hash_mismatch(peers: tuple[PeerState, PeerState]) -> None:
    host, client = peers
    move = host.play(0)
    with pytest.raises(DesyncError):
        client.handle_message(move.model_copy(update={"state_hash": "0" * 64}))
    assert client.game.turn == 0


def test_claimed_hash_is_cross_checked(peers: tuple[PeerState, PeerState]) -> None:
    """The move is applied, but a peer claiming a different resulting state is out of sync."""
    host, client = peers
    move = host.play(0)
    with pytest.raises(DesyncError):
        client.handle_message(move.model_copy(update={"new_state_hash": "f" * 64}))
    assert client.game.turn == 1
    # our own state is what the chain continues from
    assert client.last_state_hash == client.game.state_hash()


def test_illegal_move_is_rejected(peers: tuple[PeerState, PeerState]) -> None:
    host, client = peers
    exchange(host, client, host.play(0))
    # the client claims a placement on the cell the host just took
    forged = client.prepare_message(
        PeerCommand.MOVE, '{"action":"place","playerId":"client-peer","toCellId":0}'
    )
    with pytest.raises(RejectedMoveError):
        host.handle_message(forged)


def test_unparsable_move(peers: tuple[PeerState, PeerState]) -> None:
    host, client = peers
    forged = client.prepare_message(PeerCommand.MOVE, "e2e4")
    with pytest.raises(RejectedMoveError):
        host.handle_message(forged)


# -- Recovery --
def test_resync_after_missed_message(peers: tuple[PeerState, PeerState]) -> None:
    """
    The host's move never arrives: the next message breaks the chain,
    the client reports the mismatch and the host answers with its full state.
    """
    host, client = peers
    host.play(0)  # lost on the way
    ping = host.prepare_message(PeerCommand.OK, "still there?")
    with pytest.raises(DesyncError):
        client.handle_message(ping)

    exchange(client, host, client.prepare_message(PeerCommand.HASH_MISMATCH, CLIENT))

    assert client.game.turn == 1
    assert client.game.state_hash() == host.game.state_hash()
    assert client.last_state_hash == host.last_state_hash
    assert client.game.is_my_turn()

    # back to normal
    exchange(client, host, client.play(3))
    assert host.game.state_hash() == client.game.state_hash()


def test_hash_mismatch_reported_to_client(peers: tuple[PeerState, PeerState]) -> None:
    """The client asks the authoritative host for its state."""
    host, client = peers
    exchange(host, client, host.play(0))
    mismatch = host.prepare_message(PeerCommand.HASH_MISMATCH, HOST)
    reply = client.handle_message(mismatch)
    assert reply is not None
    assert reply.command == PeerCommand.RESYNC_REQUEST


def test_resync_response_must_be_a_snapshot(peers: tuple[PeerState, PeerState]) -> None:
    host, client = peers
    bogus = host.prepare_message(PeerCommand.RESYNC_RESPONSE, '{"players": []}')
    with pytest.raises(ProtocolError):
        client.handle_message(bogus)


def test_reconnect(peers: tuple[PeerState, PeerState]) -> None:
    """Only the client asks for the state when the link comes back."""
    host, client = peers
    for peer in peers:
        peer.mark_disconnected()
        assert not peer.is_connected

    assert host.mark_reconnected() is None
    request = client.mark_reconnected()
    assert request is not None
    assert request.command == PeerCommand.RESYNC_REQUEST
    assert client.is_connected
    exchange(client, host, request)
    assert client.game.state_hash() == host.game.state_hash()


def test_reconnect_without_game(client: PeerState) -> None:
    assert client.mark_reconnected() is None


# -- Game over --
def test_game_over_agreement(peers: tuple[PeerState, PeerState]) -> None:
    host, client = peers
    host.game._winner = host.game.local_player  # shortcut to the end of a game
    notice = host.game_over_message()
    assert notice is not None
    # the client's game did not end: the peers disagree
    with pytest.raises(DesyncError):
        client.handle_message(notice)


def test_no_game_over_message_while_playing(peers: tuple[PeerState, PeerState]) -> None:
    host, _ = peers
    assert host.game_over_message() is None


# -- Session record --
def test_session_model_round_trip(peers: tuple[PeerState, PeerState]) -> None:
    host, client = peers
    exchange(host, client, host.play(0))
    model = client.to_session_model(timestamp_millis=123)
    assert model.role == "client"
    assert model.my_peer_id == CLIENT
    assert model.opponent_id == HOST

    restored = PeerState.from_session_model(model, Sha256Crypto())
    assert restored.role == PeerRole.CLIENT
    assert restored.last_state_hash == client.last_state_hash
    assert restored.game is not None
    assert restored.game.phase == GamePhase.PLACEMENT
    assert restored.game.state_hash() == client.game.state_hash()
    assert restored.game.is_my_turn()


def test_session_model_without_game(client: PeerState) -> None:
    model = client.to_session_model(timestamp_millis=0)
    assert model.game_state is None
    assert PeerState.from_session_model(model, Sha256Crypto()).game is None
