"""
Definition of a move: what gets sent to the peer after every turn.

Only structural fields (who, what, from where, to where). The receiving side re-derives the rest.
"""

from dataclasses import dataclass
from typing import Optional

from src.core.shared_types import GameAction


@dataclass(frozen=True)
class Move:
    action: GameAction
    player_id: str
    to_cell_id: int
    piece_id: Optional[str] = None
    from_cell_id: Optional[int] = None
    removed_piece_id: Optional[str] = None
