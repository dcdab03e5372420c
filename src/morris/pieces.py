"""
Cells, pieces, and the players owning them.

(placed in one module as they reference each other)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from src.core.exceptions import CellOccupiedError, CellVacantError, PieceStateError
from src.core.shared_types import PieceState


@dataclass(eq=False)
class Cell:
    """A point on the board. Created once with the board, only ever mutated through occupy/vacate."""

    id: int
    row: int
    col: int
    piece: Optional[GamePiece] = None

    @property
    def is_empty(self) -> bool:
        return self.piece is None

    def occupy(self, piece: GamePiece) -> None:
        if self.piece is not None:
            raise CellOccupiedError(f"Cell {self.id} already occupied.")
        self.piece = piece

    def vacate(self) -> None:
        if self.piece is None:
            raise CellVacantError(f"Cell {self.id} already vacant.")
        self.piece = None

    def dehydrate(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "row": self.row,
            "col": self.col,
            "piece": self.piece.id if self.piece else None,
        }


@dataclass(eq=False)
class GamePiece:
    """
    Lifecycle: unplaced -> placed -> removed.
    Moving keeps it placed. Removed is terminal.
    """

    player: Player
    id: str
    cell: Optional[Cell] = None
    state: PieceState = PieceState.UNPLACED

    def place(self, cell: Cell) -> None:
        if self.state != PieceState.UNPLACED:
            raise PieceStateError(f"Piece {self.id} not available to place (state: {self.state}).")
        self.cell = cell
        self.state = PieceState.PLACED

    def move(self, cell: Cell) -> None:
        if self.state != PieceState.PLACED:
            raise PieceStateError(f"Piece {self.id} not available to move (state: {self.state}).")
        self.cell = cell

    def remove(self) -> None:
        if self.state != PieceState.PLACED:
            raise PieceStateError(f"Piece {self.id} not available to remove (state: {self.state}).")
        self.cell = None
        self.state = PieceState.REMOVED

    def dehydrate(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "playerId": self.player.id,
            "cellId": self.cell.id if self.cell else None,
            "state": str(self.state),
        }


@dataclass(eq=False)
class Player:
    id: str
    name: str
    is_initiator: bool = False
    is_winner: bool = False
    _pieces: list[GamePiece] = field(default_factory=list, repr=False)
    _removed_pieces: list[GamePiece] = field(default_factory=list, repr=False)

    def reset(self) -> None:
        self._pieces = []
        self._removed_pieces = []
        self.is_winner = False

    def add_piece(self, piece: GamePiece) -> None:
        self._pieces.append(piece)

    def add_pieces(self, pieces: list[GamePiece]) -> None:
        self._pieces.extend(pieces)

    def remove_piece(self, piece: GamePiece) -> None:
        """Move a piece from the active pool to the removed pool."""
        self._pieces = [p for p in self._pieces if p is not piece]
        self._removed_pieces.append(piece)

    def piece_by_id(self, piece_id: str) -> Optional[GamePiece]:
        return next(
            (p for p in [*self._pieces, *self._removed_pieces] if p.id == piece_id),
            None,
        )

    # --- read-only views ---
    @property
    def piece_count(self) -> int:
        """Active pieces: the ones still in play or still waiting to be placed."""
        return len(self._pieces)

    @property
    def all_pieces(self) -> tuple[GamePiece, ...]:
        return tuple(self._pieces)

    @property
    def removed_pieces(self) -> tuple[GamePiece, ...]:
        return tuple(self._removed_pieces)

    @property
    def placed_pieces(self) -> tuple[GamePiece, ...]:
        return tuple(p for p in self._pieces if p.state == PieceState.PLACED)

    @property
    def unplaced_pieces(self) -> tuple[GamePiece, ...]:
        return tuple(p for p in self._pieces if p.state == PieceState.UNPLACED)

    @property
    def next_piece(self) -> Optional[GamePiece]:
        return next((p for p in self._pieces if p.state == PieceState.UNPLACED), None)

    def dehydrate(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "pieces": [piece.dehydrate() for piece in self._pieces],
            "isWinner": self.is_winner,
        }
