"""The Game board implements all rules that effect the `position` (in morris: which piece occupies which cell)"""

from dataclasses import dataclass
from typing import Any, Optional

from src.core.exceptions import (
    BoardConfigError,
    CellOccupiedError,
    InvalidMoveError,
    PieceStateError,
)
from src.core.shared_types import PieceState
from src.morris.graph import Graph
from src.morris.pieces import Cell, GamePiece, Player

# Only two player games are supported.
N_PLAYERS = 2

# Columns per row of the plain grid used when no topology is supplied
DEFAULT_GRID_WIDTH = 3


@dataclass
class BoardOptions:
    cells: int = 24
    pieces: int = 18
    mill_count: int = 3
    fly: bool = False
    fly_at: int = 0


class Board:
    """
    Occupancy and movement rules on top of a Graph.
    ----

    Cells live in an arena (`self.cells`, indexed by cell id); the graph connects cell ids.
    Without a graph, the cells are laid out on a grid of 3 columns without any edges.
    """

    def __init__(
        self,
        players: list[Player],
        options: Optional[BoardOptions] = None,
        cells: Optional[list[Cell]] = None,
        graph: Optional[Graph[int]] = None,
    ) -> None:
        options = options or BoardOptions()
        if len(players) != N_PLAYERS:
            raise BoardConfigError(f"Invalid number of players, expected {N_PLAYERS}.")
        if options.pieces % N_PLAYERS != 0:
            raise BoardConfigError(
                f"Invalid number of pieces ({options.pieces}), must be divisible by {N_PLAYERS}."
            )

        self.players = players
        self.cell_count = options.cells
        self.piece_count = options.pieces
        self.mill_count = options.mill_count
        self.fly = options.fly
        self.fly_at = options.fly_at

        for player in self.players:
            player.reset()
            player.add_pieces(
                [GamePiece(player, str(i)) for i in range(self.piece_count // N_PLAYERS)]
            )

        self.cells = cells or [
            Cell(i, i // DEFAULT_GRID_WIDTH, i % DEFAULT_GRID_WIDTH)
            for i in range(self.cell_count)
        ]
        self.graph = graph or Graph(cell.id for cell in self.cells)
        if len(self.cells) != self.cell_count or self.graph.size != self.cell_count:
            raise BoardConfigError(
                f"Board expects {self.cell_count} cells, got {len(self.cells)} cells and {self.graph.size} vertices."
            )

    # --- QUERIES ---
    def get_cell(self, cell_id: int) -> Cell:
        # negative ids would silently index from the end of the arena
        if not 0 <= cell_id < len(self.cells):
            raise InvalidMoveError(f"No cell with id {cell_id}.")
        return self.cells[cell_id]

    def get_cell_by_row_col(self, row: int, col: int) -> Optional[Cell]:
        return next(
            (cell for cell in self.cells if cell.row == row and cell.col == col), None
        )

    def empty_cells(self) -> list[Cell]:
        return [cell for cell in self.cells if cell.is_empty]

    def neighbors(self, cell: Cell) -> list[Cell]:
        return [self.cells[cell_id] for cell_id in self.graph.neighbors(cell.id)]

    def is_adjacent(self, a: Cell, b: Cell) -> bool:
        return self.graph.is_adjacent(a.id, b.id)

    def check_for_mill(self, cell: Cell) -> bool:
        """
        Does the piece on this cell take part in a mill?
        ----

        ----
        1. collect the cells contiguously connected to `cell`, holding a piece of the same player,
           on the same row OR the same column as `cell`
        2. too few cells? no mill.
        3. split into the row part and the column part: either needs to reach the mill length on its own.

        NOTE: the contiguity is what keeps the two halves of a split line (ex. the middle row of the board) apart.
        """
        if cell.piece is None:
            return False
        player = cell.piece.player

        def _same_line_same_player(cell_id: int) -> bool:
            other = self.cells[cell_id]
            return (
                other.piece is not None
                and other.piece.player is player
                and (other.row == cell.row or other.col == cell.col)
            )

        line_ids = self.graph.contiguous_breadth_first_search(cell.id, _same_line_same_player)
        if len(line_ids) < self.mill_count:
            return False

        line_cells = [self.cells[cell_id] for cell_id in line_ids]
        row_cells = [c for c in line_cells if c.row == cell.row]
        col_cells = [c for c in line_cells if c.col == cell.col]
        return len(row_cells) >= self.mill_count or len(col_cells) >= self.mill_count

    # --- MUTATIONS ---
    # NOTE: every check is done before touching a cell, so a failure never leaves the board half updated.
    def place_piece(self, piece: GamePiece, cell: Cell) -> None:
        if piece.state != PieceState.UNPLACED:
            raise PieceStateError(f"Piece {piece.id} not available to place.")
        cell.occupy(piece)
        piece.place(cell)

    def move_piece(self, piece: GamePiece, cell: Cell) -> None:
        """Regular move: one step along an edge."""
        origin = self._origin(piece)
        if not self.is_adjacent(origin, cell):
            raise InvalidMoveError(f"Invalid move, cells {origin.id} and {cell.id} not adjacent.")
        self._relocate(piece, origin, cell)

    def fly_piece(self, piece: GamePiece, cell: Cell) -> None:
        """Variation where a player low on pieces may move to any empty cell."""
        if not self.fly:
            raise InvalidMoveError("Invalid move, flying not allowed on this board.")
        if piece.player.piece_count > self.fly_at:
            raise InvalidMoveError(
                f"Invalid move, player has {piece.player.piece_count} pieces (flying from {self.fly_at})."
            )
        self._relocate(piece, self._origin(piece), cell)

    def remove_piece(self, piece: GamePiece) -> None:
        origin = self._origin(piece)
        origin.vacate()
        piece.remove()
        piece.player.remove_piece(piece)

    def _origin(self, piece: GamePiece) -> Cell:
        if piece.state != PieceState.PLACED or piece.cell is None:
            raise PieceStateError(f"Piece {piece.id} is not on the board.")
        return piece.cell

    def _relocate(self, piece: GamePiece, origin: Cell, destination: Cell) -> None:
        if destination.piece is not None:
            raise CellOccupiedError(f"Cell {destination.id} already occupied.")
        origin.vacate()
        destination.occupy(piece)
        piece.move(destination)

    def dehydrate(self) -> dict[str, Any]:
        return {
            "players": [player.dehydrate() for player in self.players],
            "graph": self.graph.dehydrate(),
            "cells": [cell.dehydrate() for cell in self.cells],
            "millCount": self.mill_count,
            "pieceCount": self.piece_count,
            "cellCount": self.cell_count,
        }


# Cell coordinates of the standard board on a 7x7 grid
#
#     0----------1----------2
#     |          |          |
#     |   3------4------5   |
#     |   |      |      |   |
#     |   |  6---7---8  |   |
#     |   |  |       |  |   |
#     9--10-11      12-13--14
#     |   |  |       |  |   |
#     |   | 15--16---17 |   |
#     |   |      |      |   |
#     |   18----19-----20   |
#     |          |          |
#    21---------22---------23
NINE_BOARD_COORDINATES: list[tuple[int, int]] = [
    (0, 0), (0, 3), (0, 6),
    (1, 1), (1, 3), (1, 5),
    (2, 2), (2, 3), (2, 4),
    (3, 0), (3, 1), (3, 2), (3, 4), (3, 5), (3, 6),
    (4, 2), (4, 3), (4, 4),
    (5, 1), (5, 3), (5, 5),
    (6, 0), (6, 3), (6, 6),
]  # fmt: skip

# each cell id -> the (higher) cell ids it connects to
NINE_BOARD_EDGES: dict[int, tuple[int, ...]] = {
    0: (1, 9),
    1: (2, 4),
    2: (14,),
    3: (4, 10),
    4: (5, 7),
    5: (13,),
    6: (7, 11),
    7: (8,),
    8: (12,),
    9: (10, 21),
    10: (11, 18),
    11: (15,),
    12: (13, 17),
    13: (14, 20),
    14: (23,),
    15: (16,),
    16: (17, 19),
    18: (19,),
    19: (20, 22),
    21: (22,),
    22: (23,),
}

NINE_BOARD_OPTIONS = BoardOptions(cells=24, pieces=18, mill_count=3, fly=True, fly_at=3)


class NineBoard(Board):
    """Standard Nine Men's Morris board: 24 cells on three nested squares, flying from 3 pieces."""

    def __init__(self, players: list[Player]) -> None:
        cells = [Cell(i, row, col) for i, (row, col) in enumerate(NINE_BOARD_COORDINATES)]
        graph: Graph[int] = Graph(cell.id for cell in cells)
        for src_id, dst_ids in NINE_BOARD_EDGES.items():
            graph.add_edges_by_filter(
                lambda v, src_id=src_id: v == src_id,
                lambda w, dst_ids=dst_ids: w in dst_ids,
            )
        super().__init__(players, NINE_BOARD_OPTIONS, cells=cells, graph=graph)
