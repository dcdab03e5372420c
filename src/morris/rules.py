"""
Rules of Nine Men's Morris
----

Pure functions of the board / players handed to them: no hidden state, no side effects.
Safe to call speculatively (ex. to highlight legal cells in a UI).

Applying the outcome of these checks is the job of Game.
"""

from typing import Iterable

from src.core.shared_types import GamePhase, PieceState
from src.morris.board import Board
from src.morris.pieces import Cell, GamePiece, Player

# Standard number of pieces each player starts with
PIECES_PER_PLAYER = 9
# Number of pieces in a row needed to form a mill
MILL_SIZE = 3
# A player with fewer pieces than this has lost
MIN_PIECES_TO_PLAY = 3
# At (or below) this many pieces, a player may fly
FLYING_THRESHOLD = 3


def is_valid_move(from_cell: Cell, to_cell: Cell, board: Board, can_fly: bool) -> bool:
    if to_cell.piece is not None:
        return False
    if can_fly:
        return True
    return board.is_adjacent(from_cell, to_cell)


def can_player_fly(player: Player, threshold: int = FLYING_THRESHOLD) -> bool:
    return player.piece_count <= threshold


def can_fly_on_board(player: Player, board: Board) -> bool:
    """Flying needs both the board variation to allow it, and the player to be low on pieces."""
    return board.fly and can_player_fly(player, board.fly_at)


def is_mill_formed(cell: Cell, board: Board) -> bool:
    return board.check_for_mill(cell)


def get_removable_pieces(opponent: Player, board: Board) -> tuple[GamePiece, ...]:
    """
    Pieces that are part of a mill are protected ... unless there is nothing else to take.
    """
    placed = opponent.placed_pieces
    not_in_mill = tuple(
        piece
        for piece in placed
        if piece.cell is not None and not is_mill_formed(piece.cell, board)
    )
    return not_in_mill or placed


def has_player_won(
    player: Player, opponent: Player, phase: GamePhase, board: Board
) -> bool:
    """
    You win when
    ----

    * (movement or capture phase) your opponent is left with fewer than 3 pieces
    * (movement phase) none of your opponent's pieces can move anywhere
    """
    if phase in (GamePhase.MOVEMENT, GamePhase.CAPTURE):
        if opponent.piece_count < MIN_PIECES_TO_PLAY:
            return True

    if phase == GamePhase.MOVEMENT:
        can_move = any(
            get_valid_moves_for_piece(piece, board) for piece in opponent.placed_pieces
        )
        if not can_move:
            return True

    return False


def get_valid_moves_for_piece(piece: GamePiece, board: Board) -> tuple[Cell, ...]:
    """Empty cells the piece can go to: anywhere when flying, else only next door."""
    if piece.state != PieceState.PLACED or piece.cell is None:
        return ()

    if can_fly_on_board(piece.player, board):
        return tuple(board.empty_cells())
    return tuple(cell for cell in board.neighbors(piece.cell) if cell.is_empty)


def is_valid_placement(cell: Cell, player: Player, phase: GamePhase) -> bool:
    if phase != GamePhase.PLACEMENT:
        return False
    if cell.piece is not None:
        return False
    return player.next_piece is not None


def is_valid_removal(piece: GamePiece, acting_player: Player, board: Board) -> bool:
    # you cannot take your own pieces
    if piece.player.id == acting_player.id:
        return False
    if piece.state != PieceState.PLACED:
        return False
    return piece in get_removable_pieces(piece.player, board)


def get_next_phase(current_phase: GamePhase, players: Iterable[Player]) -> GamePhase:
    """
    Only the placement -> movement transition is decided here (once nobody has anything left to place).
    Capture / game over are driven by the Game itself.
    """
    if current_phase == GamePhase.PLACEMENT:
        if all(not player.unplaced_pieces for player in players):
            return GamePhase.MOVEMENT
    return current_phase
