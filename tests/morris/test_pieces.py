"""Unit tests for src/morris/pieces.py"""

import pytest

from src.core.exceptions import CellOccupiedError, CellVacantError, PieceStateError
from src.core.shared_types import PieceState
from src.morris.pieces import Cell, GamePiece, Player


@pytest.fixture
def player() -> Player:
    player = Player("p1", "X")
    player.add_pieces([GamePiece(player, str(i)) for i in range(3)])
    return player


# -- Cell --
def test_cell_occupy_and_vacate(player: Player) -> None:
    cell = Cell(0, 0, 0)
    piece = player.all_pieces[0]
    assert cell.is_empty
    cell.occupy(piece)
    assert cell.piece is piece
    assert not cell.is_empty
    cell.vacate()
    assert cell.is_empty


def test_cell_double_occupy(player: Player) -> None:
    cell = Cell(0, 0, 0)
    cell.occupy(player.all_pieces[0])
    with pytest.raises(CellOccupiedError):
        cell.occupy(player.all_pieces[1])


def test_cell_double_vacate() -> None:
    with pytest.raises(CellVacantError):
        Cell(0, 0, 0).vacate()


def test_cell_dehydrate(player: Player) -> None:
    cell = Cell(4, 1, 3)
    assert cell.dehydrate() == {"id": 4, "row": 1, "col": 3, "piece": None}
    cell.occupy(player.all_pieces[2])
    assert cell.dehydrate()["piece"] == "2"


# -- GamePiece lifecycle --
def test_piece_lifecycle(player: Player) -> None:
    """unplaced -> placed -> (moved, still placed) -> removed"""
    piece = player.all_pieces[0]
    a, b = Cell(0, 0, 0), Cell(1, 0, 3)
    assert piece.state == PieceState.UNPLACED

    piece.place(a)
    assert piece.state == PieceState.PLACED
    assert piece.cell is a

    piece.move(b)
    assert piece.state == PieceState.PLACED
    assert piece.cell is b

    piece.remove()
    assert piece.state == PieceState.REMOVED
    assert piece.cell is None


def test_piece_illegal_transitions(player: Player) -> None:
    piece = player.all_pieces[0]
    cell = Cell(0, 0, 0)

    # not on the board yet
    with pytest.raises(PieceStateError):
        piece.move(cell)
    with pytest.raises(PieceStateError):
        piece.remove()

    piece.place(cell)
    with pytest.raises(PieceStateError):
        piece.place(cell)

    # removed is terminal
    piece.remove()
    for transition in (piece.remove, lambda: piece.place(cell), lambda: piece.move(cell)):
        with pytest.raises(PieceStateError):
            transition()


def test_piece_dehydrate(player: Player) -> None:
    piece = player.all_pieces[1]
    assert piece.dehydrate() == {
        "id": "1",
        "playerId": "p1",
        "cellId": None,
        "state": "unplaced",
    }
    piece.place(Cell(7, 2, 3))
    assert piece.dehydrate()["cellId"] == 7
    assert piece.dehydrate()["state"] == "placed"


# -- Player --
def test_player_views(player: Player) -> None:
    first, second, third = player.all_pieces
    first.place(Cell(0, 0, 0))

    assert player.piece_count == 3
    assert player.placed_pieces == (first,)
    assert player.unplaced_pieces == (second, third)
    assert player.next_piece is second


def test_player_remove_piece(player: Player) -> None:
    """Removed pieces leave the active pool: they no longer count."""
    piece = player.all_pieces[0]
    piece.place(Cell(0, 0, 0))
    piece.remove()
    player.remove_piece(piece)

    assert player.piece_count == 2
    assert piece not in player.all_pieces
    assert player.removed_pieces == (piece,)
    # still reachable by id
    assert player.piece_by_id("0") is piece


def test_player_views_are_read_only(player: Player) -> None:
    """Mutating a view does not touch the player."""
    pieces = list(player.all_pieces)
    pieces.clear()
    assert player.piece_count == 3


def test_player_reset(player: Player) -> None:
    player.is_winner = True
    player.reset()
    assert player.piece_count == 0
    assert player.removed_pieces == ()
    assert not player.is_winner
    assert player.next_piece is None


def test_player_dehydrate(player: Player) -> None:
    data = player.dehydrate()
    assert data["id"] == "p1"
    assert data["name"] == "X"
    assert data["isWinner"] is False
    assert [p["id"] for p in data["pieces"]] == ["0", "1", "2"]
