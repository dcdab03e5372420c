"""Unit tests for src/api/models.py"""

import json

import pytest
from pydantic import ValidationError

from src.api.models import MovePayload, PeerMessage, SessionRecord
from src.core.models import SessionModel
from src.core.shared_types import GameAction, PeerCommand
from src.morris.moves import Move

HASH = "a" * 64


# -- Validation - PeerMessage --
def test_peer_message_by_alias() -> None:
    message = PeerMessage.model_validate(
        {"command": "HELO", "stateHash": None, "newStateHash": HASH, "data": "me"}
    )
    assert message.command == PeerCommand.HELO
    assert message.state_hash is None
    assert message.new_state_hash == HASH


def test_peer_message_json_uses_aliases() -> None:
    message = PeerMessage(command=PeerCommand.OK, state_hash=HASH, new_state_hash=HASH, data="")
    assert json.loads(message.to_json()) == {
        "command": "OK",
        "stateHash": HASH,
        "newStateHash": HASH,
        "data": "",
    }


def test_empty_state_hash_is_none() -> None:
    message = PeerMessage(command=PeerCommand.OK, state_hash="", new_state_hash=HASH, data="")
    assert message.state_hash is None


@pytest.mark.parametrize(
    "payload",
    [
        {"command": "HELO", "newStateHash": HASH, "data": ""},  # stateHash key missing
        {"command": "HELO", "stateHash": None, "newStateHash": "", "data": ""},  # empty new hash
        {"command": "SHRUG", "stateHash": None, "newStateHash": HASH, "data": ""},  # unknown command
        {"command": "HELO", "stateHash": None, "newStateHash": HASH},  # data missing
    ],
)
def test_invalid_peer_message(payload: dict) -> None:
    with pytest.raises(ValidationError):
        PeerMessage.model_validate(payload)


def test_peer_message_is_immutable() -> None:
    message = PeerMessage(command=PeerCommand.OK, state_hash=None, new_state_hash=HASH, data="")
    with pytest.raises(ValidationError):
        message.data = "changed"


# -- Validation - MovePayload --
def test_move_payload_from_move() -> None:
    move = Move(GameAction.MOVE, "host", 1, piece_id="0", from_cell_id=0)
    payload = MovePayload.from_move(move)
    assert json.loads(payload.to_json()) == {
        "action": "move",
        "playerId": "host",
        "toCellId": 1,
        "pieceId": "0",
        "fromCellId": 0,
    }
    assert MovePayload.model_validate_json(payload.to_json()).to_move() == move


def test_move_needs_origin() -> None:
    with pytest.raises(ValidationError):
        MovePayload.model_validate({"action": "move", "playerId": "host", "toCellId": 1})


@pytest.mark.parametrize("cell_id", [-1, "one", None])
def test_invalid_cell_id(cell_id: object) -> None:
    with pytest.raises(ValidationError):
        MovePayload.model_validate({"action": "place", "playerId": "host", "toCellId": cell_id})


# -- Validation - SessionRecord --
def test_session_record_round_trip() -> None:
    model = SessionModel(
        game_state={"turn": 3},
        opponent_id="client",
        my_peer_id="host",
        role="host",
        last_state_hash=HASH,
        timestamp_millis=1_700_000_000_000,
        is_connected=True,
    )
    record = SessionRecord.from_model(model)
    dumped = json.loads(record.model_dump_json(by_alias=True))
    assert dumped["myPeerId"] == "host"
    assert dumped["timestampMillis"] == 1_700_000_000_000
    assert SessionRecord.model_validate(dumped).to_model() == model


def test_session_record_unknown_role() -> None:
    with pytest.raises(ValidationError):
        SessionRecord.model_validate(
            {
                "gameState": None,
                "opponentId": None,
                "myPeerId": "me",
                "role": "spectator",
                "lastStateHash": None,
                "timestampMillis": 0,
                "isConnected": False,
            }
        )
