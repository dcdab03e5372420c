"""Wire models: everything that crosses the peer connection or leaves the process to external storage"""

from typing import Any, Optional, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.core.models import SessionModel
from src.core.shared_types import GameAction, PeerCommand, PeerRole
from src.morris.moves import Move


# --- PEER MESSAGES ---
class PeerMessage(BaseModel):
    """
    One unit of the protocol
    ----

    * state_hash: the hash the sender's chain was at before this message (None only for a first handshake)
    * new_state_hash: the hash the sender's chain is at after this message
    * data: opaque payload (a move, a snapshot, a greeting ...)
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    command: PeerCommand
    state_hash: Optional[str] = Field(alias="stateHash")
    new_state_hash: str = Field(alias="newStateHash")
    data: str

    @field_validator("new_state_hash")
    @classmethod
    def validate_new_state_hash(cls, value: str) -> str:
        if not value:
            raise ValueError("newStateHash cannot be empty.")
        return value

    @field_validator("state_hash")
    @classmethod
    def empty_state_hash_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class MovePayload(BaseModel):
    """Payload of a MOVE message. Untrusted: the game re-validates the move itself."""

    model_config = ConfigDict(populate_by_name=True)

    action: GameAction
    player_id: str = Field(alias="playerId")
    to_cell_id: int = Field(alias="toCellId", ge=0)
    piece_id: Optional[str] = Field(default=None, alias="pieceId")
    from_cell_id: Optional[int] = Field(default=None, alias="fromCellId", ge=0)
    removed_piece_id: Optional[str] = Field(default=None, alias="removedPieceId")

    @model_validator(mode="after")
    def validate_move_has_origin(self) -> Self:
        if self.action == GameAction.MOVE and self.from_cell_id is None:
            raise ValueError("A move action needs a fromCellId.")
        return self

    @classmethod
    def from_move(cls, move: Move) -> Self:
        return cls(
            action=move.action,
            player_id=move.player_id,
            to_cell_id=move.to_cell_id,
            piece_id=move.piece_id,
            from_cell_id=move.from_cell_id,
            removed_piece_id=move.removed_piece_id,
        )

    def to_move(self) -> Move:
        return Move(
            action=self.action,
            player_id=self.player_id,
            to_cell_id=self.to_cell_id,
            piece_id=self.piece_id,
            from_cell_id=self.from_cell_id,
            removed_piece_id=self.removed_piece_id,
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


# --- EXTERNAL STORAGE ---
class SessionRecord(BaseModel):
    """The persisted session, as handed to / read from external (browser-like) storage."""

    model_config = ConfigDict(populate_by_name=True)

    game_state: Optional[dict[str, Any]] = Field(alias="gameState")
    opponent_id: Optional[str] = Field(alias="opponentId")
    my_peer_id: str = Field(alias="myPeerId")
    role: PeerRole
    last_state_hash: Optional[str] = Field(alias="lastStateHash")
    timestamp_millis: int = Field(alias="timestampMillis", ge=0)
    is_connected: bool = Field(alias="isConnected")

    @classmethod
    def from_model(cls, model: SessionModel) -> Self:
        return cls(
            game_state=model.game_state,
            opponent_id=model.opponent_id,
            my_peer_id=model.my_peer_id,
            role=PeerRole(model.role),
            last_state_hash=model.last_state_hash,
            timestamp_millis=model.timestamp_millis,
            is_connected=model.is_connected,
        )

    def to_model(self) -> SessionModel:
        return SessionModel(
            game_state=self.game_state,
            opponent_id=self.opponent_id,
            my_peer_id=self.my_peer_id,
            role=str(self.role),
            last_state_hash=self.last_state_hash,
            timestamp_millis=self.timestamp_millis,
            is_connected=self.is_connected,
        )
